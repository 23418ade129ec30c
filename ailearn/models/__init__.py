"""Database models."""
from ailearn.models.user import User
from ailearn.models.document import Document
from ailearn.models.quiz import Quiz
from ailearn.models.flashcard import FlashcardSet

__all__ = [
    "User",
    "Document",
    "Quiz",
    "FlashcardSet",
]
