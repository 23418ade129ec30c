"""Flashcard set model."""
import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Uuid
from sqlalchemy.orm import relationship
from ailearn.db.base import Base, utcnow


class FlashcardSet(Base):
    """Flashcards generated from one document. Read-only once created."""

    __tablename__ = "flashcard_sets"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    document_id = Column(Uuid, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    cards = Column(JSON, nullable=False, default=list)  # [{question, answer, difficulty}]
    created_at = Column(DateTime(timezone=True), default=utcnow)

    # Relationships
    user = relationship("User", back_populates="flashcard_sets")
    document = relationship("Document", back_populates="flashcard_sets")
