# studyflow/models.py

from pydantic import BaseModel, Field
from typing import Optional, List, Any, Literal
from datetime import datetime

CardStatus = Literal['new', 'learning', 'mastered']
Outcome = Literal['correct', 'incorrect', 'partial']

# --- Card Models ---

class CardBase(BaseModel):
    front: str
    back: str
    hints: List[str] = []
    tags: List[str] = []

class CardCreate(CardBase):
    pass

class CardUpdate(BaseModel):
    # Only content fields; scheduling state is owned by the recorder.
    front: Optional[str] = None
    back: Optional[str] = None
    hints: Optional[List[str]] = None
    tags: Optional[List[str]] = None

class Card(CardBase):
    id: str
    easiness: float = 2.5
    interval: int = 0
    repetitions: int = 0
    next_review: datetime = Field(default_factory=datetime.now)
    last_reviewed: Optional[datetime] = None
    status: CardStatus = 'new'
    correct_count: int = 0
    incorrect_count: int = 0
    created_at: datetime = Field(default_factory=datetime.now)

    class Config:
        from_attributes = True

# --- Deck Models ---

class DeckBase(BaseModel):
    name: str
    description: str = ""
    subject: str = ""
    tags: List[str] = []

class DeckCreate(DeckBase):
    pass

class DeckUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    subject: Optional[str] = None
    tags: Optional[List[str]] = None

class Deck(DeckBase):
    id: str
    user_id: str
    cards: List[Card] = []
    # Cached counters, always recomputed from `cards` on write.
    card_count: int = 0
    mastered: int = 0
    learning: int = 0
    new: int = 0
    last_studied: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    class Config:
        from_attributes = True

    def find_card(self, card_id: str) -> Optional[Card]:
        for card in self.cards:
            if card.id == card_id:
                return card
        return None

class DeckSummary(DeckBase):
    """A deck without its card list, as shown in deck listings."""
    id: str
    card_count: int = 0
    mastered: int = 0
    learning: int = 0
    new: int = 0
    last_studied: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# --- Study Models ---

class CardResult(BaseModel):
    # Validated by the recorder so that bad values surface as InvalidArgument.
    outcome: str

class DeckStats(BaseModel):
    deck_id: str
    deck_name: str
    total_cards: int
    new: int
    learning: int
    mastered: int
    mastery_pct: float
    due_now: int
    total_reviews: int
    total_correct: int
    total_incorrect: int
    accuracy_pct: float
    last_studied: Optional[datetime] = None

# --- Import / Export Models ---

class ExportedCard(BaseModel):
    front: str
    back: str
    hints: List[str] = []
    tags: List[str] = []

class DeckExport(DeckBase):
    exported_at: datetime
    card_count: int
    cards: List[ExportedCard]

class DeckImport(BaseModel):
    name: str = ""
    description: str = "Imported deck"
    subject: str = ""
    tags: List[str] = ["imported"]
    # Loose on purpose: malformed entries are skipped, not rejected.
    cards: List[Any] = []

# --- Settings Model ---
class Settings(BaseModel):
    setting_name: str
    setting_value: str
