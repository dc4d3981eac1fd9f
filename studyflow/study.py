# studyflow/study.py

import random
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from studyflow.models import Card


def build_study_queue(
    cards: Sequence[Card],
    max_new: int,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None
) -> List[Card]:
    """
    Selects the cards eligible for a study session right now.

    Reviewed cards are included once their next_review has passed. New cards
    are taken in list order, at most `max_new` of them. The combined list is
    shuffled so the same card does not always come first; pass a seeded
    `random.Random` to make the order reproducible.
    """
    if now is None:
        now = datetime.now()
    if rng is None:
        rng = random

    due_cards = []
    new_cards = []
    for card in cards:
        if card.status == 'new':
            new_cards.append(card)
        elif card.next_review <= now:
            due_cards.append(card)

    study_cards = due_cards + new_cards[:max(0, max_new)]
    rng.shuffle(study_cards)
    return study_cards


def count_statuses(cards: Sequence[Card]) -> Dict[str, int]:
    """Cached deck counters derived from the card list."""
    counts = {'card_count': len(cards), 'new': 0, 'learning': 0, 'mastered': 0}
    for card in cards:
        counts[card.status] += 1
    return counts


def compute_deck_stats(cards: Sequence[Card], now: Optional[datetime] = None) -> Dict[str, float]:
    if now is None:
        now = datetime.now()

    counts = count_statuses(cards)
    total_correct = sum(card.correct_count for card in cards)
    total_incorrect = sum(card.incorrect_count for card in cards)
    total_reviews = total_correct + total_incorrect
    due_now = sum(1 for card in cards if card.next_review <= now)

    accuracy_pct = round(total_correct / total_reviews * 100, 1) if total_reviews else 0.0
    mastery_pct = round(counts['mastered'] / len(cards) * 100, 1) if cards else 0.0

    return {
        'total_cards': len(cards),
        'new': counts['new'],
        'learning': counts['learning'],
        'mastered': counts['mastered'],
        'mastery_pct': mastery_pct,
        'due_now': due_now,
        'total_reviews': total_reviews,
        'total_correct': total_correct,
        'total_incorrect': total_incorrect,
        'accuracy_pct': accuracy_pct,
    }
