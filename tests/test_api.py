# tests/test_api.py

import json
import unittest

from fastapi.testclient import TestClient

from studyflow.database import DocumentStore, connect, create_tables
from studyflow.main import app, get_database

USER = {"X-User-Id": "user-1"}

class TestAPI(unittest.TestCase):

    def setUp(self):
        """Point the app at an in-memory store for each test."""
        conn = connect(":memory:")
        create_tables(conn)
        self.store = DocumentStore(conn)
        app.dependency_overrides[get_database] = lambda: self.store
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()
        self.store.close()

    def create_deck(self, name="Spanish"):
        response = self.client.post("/decks", json={"name": name, "tags": ["lang"]}, headers=USER)
        self.assertEqual(response.status_code, 201)
        return response.json()

    def add_card(self, deck_id, front="hola", back="hello"):
        response = self.client.post(f"/decks/{deck_id}/cards", json={"front": front, "back": back})
        self.assertEqual(response.status_code, 201)
        return response.json()

    def test_health(self):
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})

    def test_deck_lifecycle(self):
        deck = self.create_deck()
        self.assertEqual(deck["name"], "Spanish")
        self.assertEqual(deck["cards"], [])

        listing = self.client.get("/decks", headers=USER).json()
        self.assertEqual([d["id"] for d in listing], [deck["id"]])
        self.assertNotIn("cards", listing[0])
        self.assertEqual(self.client.get("/decks", headers={"X-User-Id": "other"}).json(), [])

        response = self.client.put(f"/decks/{deck['id']}", json={"description": "Basics"})
        self.assertEqual(response.json()["description"], "Basics")

        self.assertEqual(self.client.delete(f"/decks/{deck['id']}").status_code, 200)
        self.assertEqual(self.client.get(f"/decks/{deck['id']}").status_code, 404)

    def test_user_header_required(self):
        response = self.client.post("/decks", json={"name": "No user"})
        self.assertEqual(response.status_code, 422)

    def test_invalid_arguments_are_400(self):
        response = self.client.post("/decks", json={"name": "  "}, headers=USER)
        self.assertEqual(response.status_code, 400)
        deck = self.create_deck()
        response = self.client.post(f"/decks/{deck['id']}/cards", json={"front": "q", "back": " "})
        self.assertEqual(response.status_code, 400)

    def test_study_and_record(self):
        deck = self.create_deck()
        card = self.add_card(deck["id"])

        queue = self.client.get(f"/decks/{deck['id']}/study").json()
        self.assertEqual([c["id"] for c in queue], [card["id"]])

        response = self.client.post(f"/decks/{deck['id']}/cards/{card['id']}/result", json={"outcome": "correct"})
        self.assertEqual(response.status_code, 200)
        updated = response.json()
        self.assertEqual(updated["interval"], 1)
        self.assertEqual(updated["status"], "learning")

        # Not due again until tomorrow.
        self.assertEqual(self.client.get(f"/decks/{deck['id']}/study").json(), [])

        stats = self.client.get(f"/decks/{deck['id']}/stats").json()
        self.assertEqual(stats["learning"], 1)
        self.assertEqual(stats["total_correct"], 1)
        self.assertEqual(stats["accuracy_pct"], 100.0)

    def test_unknown_outcome_is_400(self):
        deck = self.create_deck()
        card = self.add_card(deck["id"])
        response = self.client.post(f"/decks/{deck['id']}/cards/{card['id']}/result", json={"outcome": "great"})
        self.assertEqual(response.status_code, 400)
        response = self.client.post(f"/decks/{deck['id']}/cards/missing/result", json={"outcome": "correct"})
        self.assertEqual(response.status_code, 404)

    def test_study_uses_new_cards_setting(self):
        deck = self.create_deck()
        for i in range(4):
            self.add_card(deck["id"], front=f"q{i}")

        self.assertEqual(len(self.client.get(f"/decks/{deck['id']}/study").json()), 4)

        response = self.client.post("/settings", data={"new_cards_per_day": "2"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(self.client.get(f"/decks/{deck['id']}/study").json()), 2)
        self.assertEqual(len(self.client.get(f"/decks/{deck['id']}/study?max_new=3").json()), 3)
        # Clamped to at least one card.
        self.assertEqual(len(self.client.get(f"/decks/{deck['id']}/study?max_new=0").json()), 1)

    def test_new_cards_setting_must_be_positive(self):
        for value in ("0", "-1"):
            response = self.client.post("/settings", data={"new_cards_per_day": value})
            self.assertEqual(response.status_code, 400)
        self.assertEqual(self.client.get("/settings").json(), [])
        self.assertEqual(self.client.post("/settings", data={"new_cards_per_day": "1"}).status_code, 200)

    def test_edit_and_delete_card(self):
        deck = self.create_deck()
        card = self.add_card(deck["id"])
        response = self.client.put(f"/decks/{deck['id']}/cards/{card['id']}", json={"back": "hi"})
        self.assertEqual(response.json()["back"], "hi")
        self.assertEqual(self.client.delete(f"/decks/{deck['id']}/cards/{card['id']}").status_code, 200)
        self.assertEqual(self.client.delete(f"/decks/{deck['id']}/cards/{card['id']}").status_code, 404)

    def test_export_and_import(self):
        deck = self.create_deck()
        self.add_card(deck["id"], front="uno", back="one")
        exported = self.client.get(f"/decks/{deck['id']}/export").json()
        self.assertEqual(exported["cards"], [{"front": "uno", "back": "one", "hints": [], "tags": []}])
        self.assertNotIn("easiness", exported["cards"][0])

        exported["name"] = "Spanish copy"
        response = self.client.post("/decks/import", json=exported, headers=USER)
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["card_count"], 1)

    def test_import_file(self):
        payload = {"name": "From file", "cards": [{"front": "a", "back": "b"}, {"front": "c"}]}
        response = self.client.post(
            "/decks/import_file",
            files={"deck_file": ("deck.json", json.dumps(payload), "application/json")},
            headers=USER,
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(len(response.json()["cards"]), 1)

        response = self.client.post(
            "/decks/import_file",
            files={"deck_file": ("deck.json", "not json", "application/json")},
            headers=USER,
        )
        self.assertEqual(response.status_code, 400)

    def test_import_without_valid_cards(self):
        response = self.client.post("/decks/import", json={"name": "Bad", "cards": [{"front": "x"}]}, headers=USER)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.client.get("/decks", headers=USER).json(), [])
