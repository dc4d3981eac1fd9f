# studyflow/crud.py

import logging
import random
import threading
import weakref
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Union

from pydantic import ValidationError

from studyflow.database import DocumentStore
from studyflow.exceptions import InvalidArgument, NotFound
from studyflow.models import (
    Card, CardCreate, CardUpdate, Deck, DeckCreate, DeckExport, DeckImport,
    DeckStats, DeckUpdate, ExportedCard, Settings,
)
from studyflow.srs_algorithm import OUTCOME_QUALITY, quality_for_outcome, sm2_algorithm
from studyflow.study import build_study_queue, compute_deck_stats, count_statuses

logger = logging.getLogger(__name__)

COLLECTION_DECKS = "flashcard_decks"
COLLECTION_SETTINGS = "settings"

# --- Per-deck locking ---
# A deck is read, changed and written back as one record, so two writers on
# the same deck must not interleave. Entries vanish once no caller holds
# or waits on the lock.
_deck_locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
_deck_locks_guard = threading.Lock()

@contextmanager
def deck_lock(deck_id: str) -> Iterator[None]:
    with _deck_locks_guard:
        lock = _deck_locks.get(deck_id)
        if lock is None:
            lock = threading.Lock()
            _deck_locks[deck_id] = lock
    with lock:
        yield

# --- Helpers ---
def _clean_tags(tags: Optional[List[Any]]) -> List[str]:
    cleaned = []
    for tag in tags or []:
        tag = str(tag).strip()
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned

def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value]

def _new_card(store: DocumentStore, front: str, back: str, hints: List[str], tags: List[str], now: datetime) -> Card:
    # Fresh cards are due immediately.
    return Card(
        id=store.generate_id(), front=front, back=back, hints=hints, tags=tags,
        next_review=now, created_at=now,
    )

def _save_deck(store: DocumentStore, deck: Deck, now: datetime) -> Deck:
    """Recomputes the cached counters and writes the whole deck record."""
    deck.card_count = len(deck.cards)
    counts = count_statuses(deck.cards)
    deck.new = counts['new']
    deck.learning = counts['learning']
    deck.mastered = counts['mastered']
    deck.updated_at = now
    store.write(COLLECTION_DECKS, deck.id, deck.model_dump(mode="json"))
    return deck

# --- Deck CRUD ---
def _build_deck(store: DocumentStore, user_id: str, deck: DeckCreate, now: datetime) -> Deck:
    name = deck.name.strip()
    if not name:
        raise InvalidArgument("Deck name is required.")
    return Deck(
        id=store.generate_id(),
        user_id=user_id,
        name=name,
        description=deck.description.strip(),
        subject=deck.subject.strip(),
        tags=_clean_tags(deck.tags),
        created_at=now,
    )

def create_deck(store: DocumentStore, user_id: str, deck: DeckCreate, now: Optional[datetime] = None) -> Deck:
    now = now or datetime.now()
    created = _build_deck(store, user_id, deck, now)
    _save_deck(store, created, now)
    logger.info("Created deck %s (%r) for user %s", created.id, created.name, user_id)
    return created

def get_deck(store: DocumentStore, deck_id: str) -> Optional[Deck]:
    record = store.read(COLLECTION_DECKS, deck_id)
    # model_validate builds a private copy, never an alias of the stored record.
    return Deck.model_validate(record) if record else None

def require_deck(store: DocumentStore, deck_id: str) -> Deck:
    deck = get_deck(store, deck_id)
    if deck is None:
        raise NotFound(f"Deck {deck_id} not found.")
    return deck

def get_user_decks(store: DocumentStore, user_id: str) -> List[Deck]:
    records = store.query(COLLECTION_DECKS, lambda record: record.get("user_id") == user_id)
    decks = [Deck.model_validate(record) for record in records]
    return sorted(decks, key=lambda d: d.updated_at, reverse=True)

def update_deck(store: DocumentStore, deck_id: str, deck_update: DeckUpdate, now: Optional[datetime] = None) -> Deck:
    now = now or datetime.now()
    with deck_lock(deck_id):
        deck = require_deck(store, deck_id)
        if deck_update.name is not None:
            name = deck_update.name.strip()
            if not name:
                raise InvalidArgument("Deck name cannot be empty.")
            deck.name = name
        if deck_update.description is not None:
            deck.description = deck_update.description.strip()
        if deck_update.subject is not None:
            deck.subject = deck_update.subject.strip()
        if deck_update.tags is not None:
            deck.tags = _clean_tags(deck_update.tags)
        return _save_deck(store, deck, now)

def delete_deck(store: DocumentStore, deck_id: str) -> bool:
    with deck_lock(deck_id):
        require_deck(store, deck_id)
        deleted = store.delete(COLLECTION_DECKS, deck_id)
    logger.info("Deleted deck %s", deck_id)
    return deleted

# --- Card CRUD ---
def add_card(store: DocumentStore, deck_id: str, card: CardCreate, now: Optional[datetime] = None) -> Card:
    now = now or datetime.now()
    front = card.front.strip()
    back = card.back.strip()
    if not front or not back:
        raise InvalidArgument("Card front and back are required.")

    with deck_lock(deck_id):
        deck = require_deck(store, deck_id)
        created = _new_card(store, front, back, list(card.hints), _clean_tags(card.tags), now)
        deck.cards = deck.cards + [created]
        _save_deck(store, deck, now)
    logger.info("Added card %s to deck %s", created.id, deck_id)
    return created

def update_card(store: DocumentStore, deck_id: str, card_id: str, card_update: CardUpdate, now: Optional[datetime] = None) -> Card:
    now = now or datetime.now()
    changes: Dict[str, Any] = {}
    if card_update.front is not None:
        changes['front'] = card_update.front.strip()
    if card_update.back is not None:
        changes['back'] = card_update.back.strip()
    if changes.get('front') == "" or changes.get('back') == "":
        raise InvalidArgument("Card front and back cannot be empty.")
    if card_update.hints is not None:
        changes['hints'] = list(card_update.hints)
    if card_update.tags is not None:
        changes['tags'] = _clean_tags(card_update.tags)

    with deck_lock(deck_id):
        deck = require_deck(store, deck_id)
        card = deck.find_card(card_id)
        if card is None:
            raise NotFound(f"Card {card_id} not found in deck {deck_id}.")
        updated = card.model_copy(update=changes)
        deck.cards = [updated if c.id == card_id else c for c in deck.cards]
        _save_deck(store, deck, now)
    return updated

def delete_card(store: DocumentStore, deck_id: str, card_id: str, now: Optional[datetime] = None) -> bool:
    now = now or datetime.now()
    with deck_lock(deck_id):
        deck = require_deck(store, deck_id)
        remaining = [c for c in deck.cards if c.id != card_id]
        if len(remaining) == len(deck.cards):
            raise NotFound(f"Card {card_id} not found in deck {deck_id}.")
        deck.cards = remaining
        _save_deck(store, deck, now)
    logger.info("Deleted card %s from deck %s", card_id, deck_id)
    return True

# --- Study ---
def get_study_cards(
    store: DocumentStore,
    deck_id: str,
    max_new: int = 10,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None
) -> List[Card]:
    deck = require_deck(store, deck_id)
    return build_study_queue(deck.cards, max_new, now=now, rng=rng)

def record_card_result(store: DocumentStore, deck_id: str, card_id: str, outcome: str, now: Optional[datetime] = None) -> Card:
    """
    Schedules a card after a study answer and persists the whole deck.

    'correct' counts towards correct_count; 'partial' and 'incorrect' both
    count towards incorrect_count, even though 'partial' schedules as a pass.
    """
    if outcome not in OUTCOME_QUALITY:
        raise InvalidArgument(f"Result must be one of: {', '.join(OUTCOME_QUALITY)}")
    now = now or datetime.now()
    quality = quality_for_outcome(outcome)

    with deck_lock(deck_id):
        deck = require_deck(store, deck_id)
        card = deck.find_card(card_id)
        if card is None:
            raise NotFound(f"Card {card_id} not found in deck {deck_id}.")

        updated = sm2_algorithm(card, quality, now=now)
        if outcome == 'correct':
            updated.correct_count += 1
        else:
            updated.incorrect_count += 1
        updated.last_reviewed = now

        deck.cards = [updated if c.id == card_id else c for c in deck.cards]
        deck.last_studied = now
        _save_deck(store, deck, now)

    logger.info(
        "Recorded %s for card %s in deck %s: interval=%d status=%s",
        outcome, card_id, deck_id, updated.interval, updated.status
    )
    return updated

def get_deck_stats(store: DocumentStore, deck_id: str, now: Optional[datetime] = None) -> DeckStats:
    deck = require_deck(store, deck_id)
    return DeckStats(
        deck_id=deck.id,
        deck_name=deck.name,
        last_studied=deck.last_studied,
        **compute_deck_stats(deck.cards, now=now)
    )

# --- Import / Export ---
def export_deck(store: DocumentStore, deck_id: str, now: Optional[datetime] = None) -> DeckExport:
    deck = require_deck(store, deck_id)
    return DeckExport(
        name=deck.name,
        description=deck.description,
        subject=deck.subject,
        tags=deck.tags,
        exported_at=now or datetime.now(),
        card_count=len(deck.cards),
        cards=[
            ExportedCard(front=c.front, back=c.back, hints=c.hints, tags=c.tags)
            for c in deck.cards
        ],
    )

def import_deck(store: DocumentStore, user_id: str, data: Union[DeckImport, Dict[str, Any]], now: Optional[datetime] = None) -> Deck:
    """
    Creates a deck from exported data.

    Card entries without a non-empty front and back are skipped. If nothing
    usable remains InvalidArgument is raised. The deck is written once, with
    all of its cards, so a failed import stores nothing.
    """
    now = now or datetime.now()
    if not isinstance(data, DeckImport):
        try:
            data = DeckImport.model_validate(data)
        except ValidationError as e:
            raise InvalidArgument(f"Invalid import data format: {e}") from e

    if not data.name.strip():
        raise InvalidArgument("Import data must include a deck name.")
    if not data.cards:
        raise InvalidArgument("Import data must include at least one card.")

    deck = _build_deck(store, user_id, DeckCreate(
        name=data.name, description=data.description, subject=data.subject, tags=data.tags,
    ), now)

    cards = []
    for position, entry in enumerate(data.cards):
        if not isinstance(entry, dict):
            logger.debug("Skipping import entry %d: not an object", position)
            continue
        front = str(entry.get('front') or '').strip()
        back = str(entry.get('back') or '').strip()
        if not front or not back:
            logger.debug("Skipping import entry %d: missing front or back", position)
            continue
        cards.append(_new_card(
            store, front, back, _string_list(entry.get('hints')),
            _clean_tags(_string_list(entry.get('tags'))), now
        ))

    if not cards:
        raise InvalidArgument("No valid cards found in import data.")

    # The ID is fresh, so no other writer can hold this deck yet.
    deck.cards = cards
    _save_deck(store, deck, now)
    logger.info(
        "Imported deck %s with %d of %d cards for user %s",
        deck.id, len(cards), len(data.cards), user_id
    )
    return deck

# --- Settings CRUD ---
def get_setting(store: DocumentStore, setting_name: str) -> Optional[str]:
    record = store.read(COLLECTION_SETTINGS, setting_name)
    return record["setting_value"] if record else None

def set_setting(store: DocumentStore, setting_name: str, setting_value: str) -> Settings:
    setting = Settings(setting_name=setting_name, setting_value=setting_value)
    store.write(COLLECTION_SETTINGS, setting_name, setting.model_dump())
    return setting

def get_all_settings(store: DocumentStore) -> List[Settings]:
    records = store.query(COLLECTION_SETTINGS, lambda record: True)
    return [Settings.model_validate(record) for record in records]
