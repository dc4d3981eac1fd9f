# studyflow/srs_algorithm.py
from datetime import datetime, timedelta
from typing import Dict, Optional
from studyflow.models import Card, Outcome

MIN_EASINESS = 1.3
MASTERY_INTERVAL_DAYS = 21
PASSING_QUALITY = 3

# 0, 2 and 4 are never produced from an outcome.
OUTCOME_QUALITY: Dict[Outcome, int] = {
    'correct': 5,
    'partial': 3,
    'incorrect': 1,
}

def sm2_algorithm(card: Card, quality: int, now: Optional[datetime] = None) -> Card:
    """
    Standard SM-2 scheduling step.
    quality: 0-2 (lapse), 3 (correct with effort) .. 5 (perfect recall)

    Returns an updated copy of the card; the input card is left unchanged.
    Only the scheduling fields are touched: easiness, interval, repetitions,
    status and next_review.
    """
    if now is None:
        now = datetime.now()

    # Callers validate outcomes; this only keeps the formula in range.
    quality = max(0, min(5, int(quality)))

    easiness = card.easiness + (0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02))
    if easiness < MIN_EASINESS:
        easiness = MIN_EASINESS

    if quality >= PASSING_QUALITY:  # --- Correct Answer ---
        if card.repetitions == 0:
            interval = 1
        elif card.repetitions == 1:
            interval = 6
        else:
            # Half-up rounding; intervals are never negative.
            interval = int(card.interval * easiness + 0.5)
        repetitions = card.repetitions + 1
    else:  # --- Incorrect Answer (Lapse) ---
        repetitions = 0
        interval = 1

    if repetitions == 0:
        status = 'new' if card.status == 'new' else 'learning'
    elif interval >= MASTERY_INTERVAL_DAYS:
        status = 'mastered'
    else:
        status = 'learning'

    return card.model_copy(update={
        'easiness': round(easiness, 2),
        'interval': interval,
        'repetitions': repetitions,
        'status': status,
        'next_review': now + timedelta(days=interval),
    })


def quality_for_outcome(outcome: str) -> int:
    """Maps a study outcome to its SM-2 quality, or raises KeyError."""
    return OUTCOME_QUALITY[outcome]
