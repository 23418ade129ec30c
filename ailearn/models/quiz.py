"""Quiz model."""
import uuid
from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, JSON, Uuid
from sqlalchemy.orm import relationship
from ailearn.db.base import Base, utcnow


class Quiz(Base):
    """
    A generated quiz and the user's progress through it.

    ``questions`` holds ``{question, options: [{option, is_correct}],
    correct_answer, explanation, difficulty}`` dicts in display order.
    ``user_answers`` holds ``{question_index, selected_answer, is_correct}``
    dicts; ``score`` is kept equal to the number of correct entries.
    Both lists are replaced wholesale on change so the ORM notices the update.
    """

    __tablename__ = "quizzes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    document_id = Column(Uuid, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    questions = Column(JSON, nullable=False, default=list)
    user_answers = Column(JSON, nullable=False, default=list)
    score = Column(Integer, nullable=False, default=0)
    total_questions = Column(Integer, nullable=False)
    answer_attempts = Column(Integer, nullable=False, default=0)
    completed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    user = relationship("User", back_populates="quizzes")
    document = relationship("Document", back_populates="quizzes")

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None
