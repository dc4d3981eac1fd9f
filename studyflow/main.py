import json
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Depends, Form, Header, UploadFile, File, Request
from fastapi.responses import JSONResponse, RedirectResponse

from studyflow import crud, models
from studyflow.database import DocumentStore, get_db, create_tables
from studyflow.exceptions import InvalidArgument, NotFound, StoreFailure

logger = logging.getLogger(__name__)

DEFAULT_NEW_CARDS_PER_DAY = 10
MAX_NEW_CARDS_PER_SESSION = 50


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_tables()
    yield

app = FastAPI(title="StudyFlow Flashcards", lifespan=lifespan)

# --- Error mapping ---
@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})

@app.exception_handler(InvalidArgument)
async def invalid_argument_handler(request: Request, exc: InvalidArgument):
    return JSONResponse(status_code=400, content={"detail": str(exc)})

@app.exception_handler(StoreFailure)
async def store_failure_handler(request: Request, exc: StoreFailure):
    logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Storage error."})

# Dependencies
def get_database():
    yield from get_db()

def get_user_id(x_user_id: str = Header(...)) -> str:
    # Sessions live outside this service; the caller passes the user through.
    return x_user_id

def _effective_new_cards(store: DocumentStore, max_new: Optional[int]) -> int:
    if max_new is None:
        max_new = int(crud.get_setting(store, "new_cards_per_day") or DEFAULT_NEW_CARDS_PER_DAY)
    return max(1, min(max_new, MAX_NEW_CARDS_PER_SESSION))

@app.get("/", response_class=RedirectResponse)
async def read_root():
    return RedirectResponse(url="/decks")

@app.get("/health")
async def health_check():
    return {"status": "ok"}

# --- Decks ---
@app.get("/decks", response_model=List[models.DeckSummary])
async def list_decks(user_id: str = Depends(get_user_id), store: DocumentStore = Depends(get_database)):
    """Lists the caller's decks, most recently updated first, without cards."""
    return [models.DeckSummary.model_validate(deck, from_attributes=True) for deck in crud.get_user_decks(store, user_id)]

@app.post("/decks", response_model=models.Deck, status_code=201)
async def create_deck(deck: models.DeckCreate, user_id: str = Depends(get_user_id), store: DocumentStore = Depends(get_database)):
    return crud.create_deck(store, user_id, deck)

@app.post("/decks/import", response_model=models.Deck, status_code=201)
async def import_deck(data: models.DeckImport, user_id: str = Depends(get_user_id), store: DocumentStore = Depends(get_database)):
    return crud.import_deck(store, user_id, data)

@app.post("/decks/import_file", response_model=models.Deck, status_code=201)
async def import_deck_file(
    deck_file: UploadFile = File(...),
    user_id: str = Depends(get_user_id),
    store: DocumentStore = Depends(get_database)
):
    contents = await deck_file.read()
    try:
        data = json.loads(contents)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidArgument(f"Invalid JSON file: {e}") from e
    if not isinstance(data, dict):
        raise InvalidArgument("Invalid import data format.")
    return crud.import_deck(store, user_id, data)

@app.get("/decks/{deck_id}", response_model=models.Deck)
async def get_deck(deck_id: str, store: DocumentStore = Depends(get_database)):
    return crud.require_deck(store, deck_id)

@app.put("/decks/{deck_id}", response_model=models.Deck)
async def update_deck(deck_id: str, deck_update: models.DeckUpdate, store: DocumentStore = Depends(get_database)):
    return crud.update_deck(store, deck_id, deck_update)

@app.delete("/decks/{deck_id}")
async def delete_deck(deck_id: str, store: DocumentStore = Depends(get_database)):
    crud.delete_deck(store, deck_id)
    return {"deleted": True, "deck_id": deck_id}

# --- Cards ---
@app.post("/decks/{deck_id}/cards", response_model=models.Card, status_code=201)
async def add_card(deck_id: str, card: models.CardCreate, store: DocumentStore = Depends(get_database)):
    return crud.add_card(store, deck_id, card)

@app.put("/decks/{deck_id}/cards/{card_id}", response_model=models.Card)
async def update_card(deck_id: str, card_id: str, card_update: models.CardUpdate, store: DocumentStore = Depends(get_database)):
    return crud.update_card(store, deck_id, card_id, card_update)

@app.delete("/decks/{deck_id}/cards/{card_id}")
async def delete_card(deck_id: str, card_id: str, store: DocumentStore = Depends(get_database)):
    crud.delete_card(store, deck_id, card_id)
    return {"deleted": True, "card_id": card_id}

# --- Study ---
@app.get("/decks/{deck_id}/study", response_model=List[models.Card])
async def study_deck(deck_id: str, max_new: Optional[int] = None, store: DocumentStore = Depends(get_database)):
    """Cards to study now: due cards plus a capped number of new ones, shuffled."""
    return crud.get_study_cards(store, deck_id, _effective_new_cards(store, max_new))

@app.post("/decks/{deck_id}/cards/{card_id}/result", response_model=models.Card)
async def record_result(deck_id: str, card_id: str, result: models.CardResult, store: DocumentStore = Depends(get_database)):
    return crud.record_card_result(store, deck_id, card_id, result.outcome)

@app.get("/decks/{deck_id}/stats", response_model=models.DeckStats)
async def deck_stats(deck_id: str, store: DocumentStore = Depends(get_database)):
    return crud.get_deck_stats(store, deck_id)

@app.get("/decks/{deck_id}/export", response_model=models.DeckExport)
async def export_deck(deck_id: str, store: DocumentStore = Depends(get_database)):
    return crud.export_deck(store, deck_id)

# --- Settings ---
@app.get("/settings", response_model=List[models.Settings])
async def settings_page(store: DocumentStore = Depends(get_database)):
    return crud.get_all_settings(store)

@app.post("/settings", response_model=models.Settings)
async def update_settings(new_cards_per_day: int = Form(...), store: DocumentStore = Depends(get_database)):
    # The study endpoint clamps to 1..50, so 0 would silently mean 1.
    if new_cards_per_day < 1:
        raise InvalidArgument("new_cards_per_day must be at least 1.")
    return crud.set_setting(store, "new_cards_per_day", str(new_cards_per_day))
