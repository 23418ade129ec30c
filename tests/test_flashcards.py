import uuid

import pytest

from conftest import NOTES_TEXT, upload_text_document


@pytest.fixture
def document_id(client, auth_user):
    return upload_text_document(client, data={"title": "Astronomy"}).json()["data"]["id"]


def test_generate_flashcards(client, fake_ai, document_id):
    response = client.post("/api/flashcards/generate", json={"documentId": document_id, "count": 5})

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["title"] == "Astronomy Flashcards"
    assert data["cardCount"] == 3
    assert data["cards"][0] == {"question": "Capital of France", "answer": "Paris", "difficulty": "easy"}
    assert data["cards"][2]["difficulty"] == "medium"
    assert fake_ai.calls == [("flashcards", NOTES_TEXT, 5)]


def test_generate_flashcards_limits_card_count(client, document_id):
    response = client.post("/api/flashcards/generate", json={"documentId": document_id, "count": 2})
    assert response.json()["data"]["cardCount"] == 2


def test_generate_flashcards_validates_count(client, document_id):
    response = client.post("/api/flashcards/generate", json={"documentId": document_id, "count": 51})
    assert response.status_code == 400
    assert response.json()["error"][0]["field"] == "count"


def test_generate_flashcards_with_no_usable_cards(client, fake_ai, document_id):
    fake_ai.flashcards = [{"question": "Missing answer"}]

    response = client.post("/api/flashcards/generate", json={"documentId": document_id})

    assert response.status_code == 502
    assert client.get("/api/flashcards").json()["data"]["total"] == 0


def test_generate_flashcards_for_unknown_document(client, auth_user):
    response = client.post("/api/flashcards/generate", json={"documentId": str(uuid.uuid4())})
    assert response.status_code == 404


def test_list_get_and_delete_flashcard_sets(client, document_id):
    set_id = client.post(
        "/api/flashcards/generate", json={"documentId": document_id, "title": "Deck"}
    ).json()["data"]["id"]

    listed = client.get("/api/flashcards", params={"documentId": document_id}).json()["data"]
    assert listed["total"] == 1
    assert listed["flashcardSets"][0]["title"] == "Deck"
    assert "cards" not in listed["flashcardSets"][0]

    fetched = client.get(f"/api/flashcards/{set_id}").json()["data"]
    assert len(fetched["cards"]) == 3

    assert client.delete(f"/api/flashcards/{set_id}").status_code == 200
    assert client.get(f"/api/flashcards/{set_id}").status_code == 404


def test_flashcard_sets_are_private_to_owner(client, register_user, document_id):
    set_id = client.post("/api/flashcards/generate", json={"documentId": document_id}).json()["data"]["id"]

    client.cookies.clear()
    register_user(email="bob@example.com", name="Bobby")

    assert client.get(f"/api/flashcards/{set_id}").status_code == 404
    assert client.get("/api/flashcards").json()["data"]["total"] == 0
