import uuid

import pytest

from conftest import NOTES_TEXT, upload_text_document


@pytest.fixture
def document_id(client, auth_user):
    response = upload_text_document(client, data={"title": "Science"})
    assert response.status_code == 201, response.text
    return response.json()["data"]["id"]


@pytest.fixture
def quiz(client, document_id):
    response = client.post(
        "/api/quiz/generate",
        json={"documentId": document_id, "numQuestions": 3, "difficulty": "easy"},
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _answer(client, quiz_id, index, selected):
    return client.post(
        f"/api/quiz/{quiz_id}/answer",
        json={"questionIndex": index, "selectedAnswer": selected},
    )


def test_generate_quiz_hides_answer_key(client, fake_ai, document_id, quiz):
    assert quiz["title"] == "Science Quiz"
    assert quiz["totalQuestions"] == 3
    assert quiz["score"] == 0
    assert quiz["answerAttempts"] == 0
    assert quiz["completedAt"] is None
    assert quiz["userAnswers"] == []

    first = quiz["questions"][0]
    assert first["options"] == ["Berlin", "Paris", "Rome", "Madrid"]
    assert first["correctAnswer"] is None
    assert first["explanation"] is None

    assert fake_ai.calls == [("quiz", NOTES_TEXT, 3, "easy")]


def test_generate_quiz_with_custom_title(client, document_id):
    response = client.post("/api/quiz/generate", json={"documentId": document_id, "title": "Midterm prep"})
    assert response.status_code == 201
    assert response.json()["data"]["title"] == "Midterm prep"


def test_generate_quiz_truncates_to_requested_count(client, document_id):
    response = client.post("/api/quiz/generate", json={"documentId": document_id, "numQuestions": 2})
    assert response.json()["data"]["totalQuestions"] == 2


def test_generate_quiz_validates_request(client, document_id):
    response = client.post(
        "/api/quiz/generate", json={"documentId": document_id, "numQuestions": 0, "difficulty": "impossible"}
    )
    assert response.status_code == 400
    fields = {err["field"] for err in response.json()["error"]}
    assert fields == {"numQuestions", "difficulty"}


def test_generate_quiz_for_unknown_document(client, auth_user):
    response = client.post("/api/quiz/generate", json={"documentId": str(uuid.uuid4())})
    assert response.status_code == 404


def test_generate_quiz_requires_extracted_text(client, auth_user):
    doc_id = client.post(
        "/api/documents/upload",
        files={"document": ("slides.pptx", b"PK\x03\x04", "application/vnd.openxmlformats-officedocument.presentationml.presentation")},
    ).json()["data"]["id"]

    response = client.post("/api/quiz/generate", json={"documentId": doc_id})

    assert response.status_code == 400
    assert "no extractable text" in response.json()["message"]


def test_generate_quiz_reports_unusable_ai_output(client, fake_ai, document_id):
    fake_ai.questions = [{"question": "Broken", "options": ["only one"], "correct_answer": "only one"}]

    response = client.post("/api/quiz/generate", json={"documentId": document_id})

    assert response.status_code == 502
    assert response.json()["message"] == "Failed to generate quiz questions"
    assert client.get("/api/quiz").json()["data"]["total"] == 0


def test_answer_updates_score(client, quiz):
    response = _answer(client, quiz["id"], 0, "Paris")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data == {
        "questionIndex": 0,
        "selectedAnswer": "Paris",
        "isCorrect": True,
        "score": 1,
        "answeredCount": 1,
        "totalQuestions": 3,
    }


def test_letter_answer_key_is_graded_against_option_text(client, quiz):
    # The generator marked question 2 with the letter "B"
    assert _answer(client, quiz["id"], 1, "4").json()["data"]["isCorrect"] is True
    assert _answer(client, quiz["id"], 1, "b").json()["data"]["isCorrect"] is True
    assert _answer(client, quiz["id"], 1, "3").json()["data"]["isCorrect"] is False


def test_reanswering_replaces_previous_answer(client, quiz):
    _answer(client, quiz["id"], 0, "Paris")
    data = _answer(client, quiz["id"], 0, "Rome").json()["data"]

    assert data["score"] == 0
    assert data["answeredCount"] == 1

    stored = client.get(f"/api/quiz/{quiz['id']}").json()["data"]
    assert stored["userAnswers"] == [{"questionIndex": 0, "selectedAnswer": "Rome", "isCorrect": False}]
    assert stored["answerAttempts"] == 2


def test_score_matches_correct_answers(client, quiz):
    _answer(client, quiz["id"], 2, "Jupiter")
    _answer(client, quiz["id"], 0, "Berlin")
    data = _answer(client, quiz["id"], 1, "4").json()["data"]

    assert data["score"] == 2
    stored = client.get(f"/api/quiz/{quiz['id']}").json()["data"]
    assert [a["questionIndex"] for a in stored["userAnswers"]] == [0, 1, 2]
    assert stored["score"] == sum(a["isCorrect"] for a in stored["userAnswers"])


@pytest.mark.parametrize("index", [-1, 3, 99])
def test_answer_index_out_of_range(client, quiz, index):
    response = _answer(client, quiz["id"], index, "Paris")

    assert response.status_code == 400
    assert response.json()["error"][0]["field"] == "questionIndex"
    assert client.get(f"/api/quiz/{quiz['id']}").json()["data"]["userAnswers"] == []


def test_submit_reveals_results_once(client, quiz):
    _answer(client, quiz["id"], 0, "Paris")

    response = client.post(
        f"/api/quiz/{quiz['id']}/submit",
        json={"answers": [{"questionIndex": 2, "selectedAnswer": "Mars"}]},
    )

    assert response.status_code == 200
    results = response.json()["data"]
    assert results["score"] == 1
    assert results["totalQuestions"] == 3
    assert results["percentage"] == pytest.approx(33.33)
    assert results["completedAt"] is not None
    by_index = {r["questionIndex"]: r for r in results["results"]}
    assert by_index[0]["isCorrect"] is True
    assert by_index[1]["selectedAnswer"] is None
    assert by_index[1]["correctAnswer"] == "4"
    assert by_index[2]["selectedAnswer"] == "Mars"
    assert by_index[2]["explanation"] is None

    again = client.post(f"/api/quiz/{quiz['id']}/submit")
    assert again.status_code == 400
    assert again.json()["message"] == "Quiz has already been submitted"

    assert _answer(client, quiz["id"], 1, "4").status_code == 400


def test_completed_quiz_shows_answer_key(client, quiz):
    client.post(f"/api/quiz/{quiz['id']}/submit")

    stored = client.get(f"/api/quiz/{quiz['id']}").json()["data"]

    assert stored["questions"][0]["correctAnswer"] == "Paris"
    assert stored["questions"][0]["explanation"] == "The notes state Paris is the capital."


def test_results_only_after_submission(client, quiz):
    early = client.get(f"/api/quiz/{quiz['id']}/results")
    assert early.status_code == 400
    assert early.json()["message"] == "Quiz has not been submitted yet"

    client.post(f"/api/quiz/{quiz['id']}/submit", json={"answers": []})
    results = client.get(f"/api/quiz/{quiz['id']}/results")

    assert results.status_code == 200
    assert results.json()["data"]["score"] == 0
    assert len(results.json()["data"]["results"]) == 3


def test_list_quizzes_filtered_by_document(client, auth_user, quiz, document_id):
    other_doc = upload_text_document(client, name="other.txt").json()["data"]["id"]
    client.post("/api/quiz/generate", json={"documentId": other_doc})

    everything = client.get("/api/quiz").json()["data"]
    filtered = client.get("/api/quiz", params={"documentId": document_id}).json()["data"]

    assert everything["total"] == 2
    assert filtered["total"] == 1
    assert filtered["quizzes"][0]["id"] == quiz["id"]
    assert "questions" not in filtered["quizzes"][0]


def test_quiz_is_private_to_owner(client, register_user, quiz):
    client.cookies.clear()
    register_user(email="bob@example.com", name="Bobby")

    assert client.get(f"/api/quiz/{quiz['id']}").status_code == 404
    assert _answer(client, quiz["id"], 0, "Paris").status_code == 404
    assert client.delete(f"/api/quiz/{quiz['id']}").status_code == 404


def test_delete_quiz(client, quiz):
    response = client.delete(f"/api/quiz/{quiz['id']}")

    assert response.status_code == 200
    assert client.get(f"/api/quiz/{quiz['id']}").status_code == 404
