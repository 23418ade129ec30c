import copy
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from ailearn.core.config import Settings
from ailearn.main import create_app
from ailearn.services.openai_service import get_ai_service

STRONG_PASSWORD = "Secret@123"

NOTES_TEXT = (
    "Paris is the capital of France.\n\n"
    "Jupiter is the largest planet in the solar system.\n\n"
    "Two plus two equals four."
)

GENERATED_QUESTIONS = [
    {
        "question": "What is the capital of France?",
        "options": ["Berlin", "Paris", "Rome", "Madrid"],
        "correct_answer": "Paris",
        "explanation": "The notes state Paris is the capital.",
        "difficulty": "easy",
    },
    {
        "question": "What is 2 + 2?",
        "options": ["3", "4", "5", "6"],
        "correct_answer": "B",
        "explanation": "Two plus two equals four.",
        "difficulty": "easy",
    },
    {
        "question": "Which is the largest planet?",
        "options": ["Mars", "Venus", "Jupiter", "Earth"],
        "correct_answer": "Jupiter",
        "difficulty": "medium",
    },
]

GENERATED_FLASHCARDS = [
    {"question": "Capital of France", "answer": "Paris", "difficulty": "easy"},
    {"question": "Largest planet", "answer": "Jupiter", "difficulty": "medium"},
    {"question": "2 + 2", "answer": "4"},
]


class FakeAIService:
    """Stands in for OpenAIService; returns canned generator output."""

    def __init__(self):
        self.questions: List[Dict] = copy.deepcopy(GENERATED_QUESTIONS)
        self.flashcards: List[Dict] = copy.deepcopy(GENERATED_FLASHCARDS)
        self.calls: List[tuple] = []

    def generate_quiz_questions(self, text: str, num_questions: int = 5, difficulty: str = "medium"):
        self.calls.append(("quiz", text, num_questions, difficulty))
        return copy.deepcopy(self.questions)

    def generate_flashcards(self, text: str, count: int = 10):
        self.calls.append(("flashcards", text, count))
        return copy.deepcopy(self.flashcards)


def make_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}",
        UPLOAD_DIR=tmp_path / "uploads",
        SECRET_KEY="test-secret-key",
        ENVIRONMENT="test",
        BCRYPT_ROUNDS=4,
        CSRF_ENABLED=False,
        RATE_LIMIT_REQUESTS=10_000,
        OPENAI_API_KEY="test-key",
        LOG_LEVEL="WARNING",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
def fake_ai() -> FakeAIService:
    return FakeAIService()


@pytest.fixture
def app(settings, fake_ai):
    app = create_app(settings)
    app.dependency_overrides[get_ai_service] = lambda: fake_ai
    return app


@pytest.fixture
def client(app):
    """In-process client; lifespan (DB init/teardown) runs inside the context."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def register_user(client):
    """POST /api/auth/register as a form; leaves the auth cookie on the client."""

    def _register(
        email: str = "alice@example.com",
        name: str = "Alice",
        password: str = STRONG_PASSWORD,
        files: Optional[dict] = None,
        **extra,
    ):
        data = {"name": name, "email": email, "password": password, **extra}
        return client.post("/api/auth/register", data=data, files=files)

    return _register


@pytest.fixture
def auth_user(register_user):
    """Register the default user and return its token."""
    response = register_user()
    assert response.status_code == 201, response.text
    return response.json()["data"]["token"]


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def upload_text_document(client, name: str = "notes.txt", text: str = NOTES_TEXT, **kwargs):
    return client.post(
        "/api/documents/upload",
        files={"document": (name, text.encode(), "text/plain")},
        **kwargs,
    )
