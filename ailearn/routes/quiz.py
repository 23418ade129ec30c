"""Quiz routes."""
import logging
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy.orm import Session

from ailearn.core.exceptions import AIServiceError, NotFound, ValidationError
from ailearn.core.schemas import ApiResponse, CamelModel, MessageResponse, envelope
from ailearn.core.security import get_current_user_id
from ailearn.db.sessions import get_db
from ailearn.models.quiz import Quiz
from ailearn.routes.documents import get_owned_document
from ailearn.services.openai_service import OpenAIService, get_ai_service
from ailearn.services.quiz_service import build_results, normalize_questions, record_answer, submit_quiz

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/quiz", tags=["Quiz"])


# Request/Response schemas
class GenerateQuizRequest(CamelModel):
    document_id: uuid.UUID
    num_questions: int = Field(default=5, ge=1, le=20)
    difficulty: str = Field(default="medium", pattern="^(easy|medium|hard|mixed)$")
    title: Optional[str] = Field(default=None, max_length=200)


class AnswerRequest(CamelModel):
    question_index: int
    selected_answer: str = Field(min_length=1)


class SubmitQuizRequest(CamelModel):
    answers: List[AnswerRequest] = []


class QuestionResponse(CamelModel):
    """A question; the answer key fields stay empty until the quiz is completed."""

    question: str
    options: List[str]
    difficulty: str
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None


class UserAnswerResponse(CamelModel):
    question_index: int
    selected_answer: str
    is_correct: bool


class QuizSummaryResponse(CamelModel):
    id: uuid.UUID
    document_id: uuid.UUID
    title: str
    score: int
    total_questions: int
    answer_attempts: int
    completed_at: Optional[datetime] = None
    created_at: datetime


class QuizResponse(QuizSummaryResponse):
    questions: List[QuestionResponse]
    user_answers: List[UserAnswerResponse]


class QuizListResponse(CamelModel):
    quizzes: List[QuizSummaryResponse]
    total: int


class AnswerResultResponse(UserAnswerResponse):
    score: int
    answered_count: int
    total_questions: int


class QuestionResultResponse(CamelModel):
    question_index: int
    question: str
    options: List[str]
    correct_answer: str
    explanation: Optional[str] = None
    selected_answer: Optional[str] = None
    is_correct: bool


class QuizResultsResponse(CamelModel):
    quiz_id: uuid.UUID
    title: str
    score: int
    total_questions: int
    percentage: float
    completed_at: Optional[datetime] = None
    results: List[QuestionResultResponse]


def _get_owned_quiz(db: Session, quiz_id: uuid.UUID, user_id: uuid.UUID) -> Quiz:
    quiz = db.query(Quiz).filter(
        Quiz.id == quiz_id,
        Quiz.user_id == user_id
    ).first()
    if not quiz:
        raise NotFound("Quiz not found")
    return quiz


def _quiz_response(quiz: Quiz) -> QuizResponse:
    reveal = quiz.is_completed
    questions = [
        QuestionResponse(
            question=q["question"],
            options=[opt["option"] for opt in q["options"]],
            difficulty=q["difficulty"],
            correct_answer=q["correct_answer"] if reveal else None,
            explanation=(q.get("explanation") or None) if reveal else None,
        )
        for q in quiz.questions
    ]
    summary = QuizSummaryResponse.model_validate(quiz)
    return QuizResponse(
        **summary.model_dump(),
        questions=questions,
        user_answers=[UserAnswerResponse.model_validate(a) for a in quiz.user_answers or []],
    )


@router.post("/generate", response_model=ApiResponse[QuizResponse], status_code=status.HTTP_201_CREATED)
def generate_quiz(
    request: GenerateQuizRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    ai: OpenAIService = Depends(get_ai_service),
):
    """
    Generate a multiple-choice quiz from one of the user's documents.

    Raises:
        404: document not found or not owned by user
        400: document has no extracted text
        502: the AI service failed or produced no usable questions
    """
    document = get_owned_document(db, request.document_id, user_id)
    if not (document.extracted_text or "").strip():
        raise ValidationError("Document has no extractable text to generate a quiz from")

    raw_questions = ai.generate_quiz_questions(
        document.extracted_text,
        num_questions=request.num_questions,
        difficulty=request.difficulty,
    )
    questions = normalize_questions(raw_questions, request.difficulty)[:request.num_questions]
    if not questions:
        raise AIServiceError("Failed to generate quiz questions")

    quiz = Quiz(
        user_id=user_id,
        document_id=document.id,
        title=(request.title or "").strip() or f"{document.title} Quiz",
        questions=questions,
        user_answers=[],
        score=0,
        total_questions=len(questions),
        answer_attempts=0,
    )
    db.add(quiz)
    db.commit()
    db.refresh(quiz)

    logger.info("Generated quiz %s (%d questions) from document %s", quiz.id, len(questions), document.id)
    return envelope("Quiz generated successfully", _quiz_response(quiz))


@router.get("", response_model=ApiResponse[QuizListResponse])
def list_quizzes(
    document_id: Optional[uuid.UUID] = Query(default=None, alias="documentId"),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """List the user's quizzes, optionally only those for one document."""
    query = db.query(Quiz).filter(Quiz.user_id == user_id)
    if document_id:
        query = query.filter(Quiz.document_id == document_id)
    quizzes = query.order_by(Quiz.created_at.desc()).all()

    return envelope(
        "Quizzes fetched successfully",
        QuizListResponse(
            quizzes=[QuizSummaryResponse.model_validate(q) for q in quizzes],
            total=len(quizzes),
        ),
    )


@router.get("/{quiz_id}", response_model=ApiResponse[QuizResponse])
def get_quiz(
    quiz_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Get a quiz. The answer key is only included once it is completed."""
    quiz = _get_owned_quiz(db, quiz_id, user_id)
    return envelope("Quiz fetched successfully", _quiz_response(quiz))


@router.post("/{quiz_id}/answer", response_model=ApiResponse[AnswerResultResponse])
def answer_question(
    quiz_id: uuid.UUID,
    request: AnswerRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Record the answer to one question; answering again replaces it."""
    quiz = _get_owned_quiz(db, quiz_id, user_id)
    answer = record_answer(quiz, request.question_index, request.selected_answer)
    db.commit()
    db.refresh(quiz)

    return envelope(
        "Answer recorded",
        AnswerResultResponse(
            **answer,
            score=quiz.score,
            answered_count=len(quiz.user_answers),
            total_questions=quiz.total_questions,
        ),
    )


@router.post("/{quiz_id}/submit", response_model=ApiResponse[QuizResultsResponse])
def submit_quiz_answers(
    quiz_id: uuid.UUID,
    request: Optional[SubmitQuizRequest] = None,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Record any final answers and complete the quiz. A quiz can be submitted once."""
    quiz = _get_owned_quiz(db, quiz_id, user_id)
    answers = request.answers if request else []
    submit_quiz(quiz, [a.model_dump() for a in answers])
    db.commit()
    db.refresh(quiz)

    return envelope("Quiz submitted successfully", QuizResultsResponse(**build_results(quiz)))


@router.get("/{quiz_id}/results", response_model=ApiResponse[QuizResultsResponse])
def get_quiz_results(
    quiz_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Full results with the answer key; only available after submission."""
    quiz = _get_owned_quiz(db, quiz_id, user_id)
    if not quiz.is_completed:
        raise ValidationError("Quiz has not been submitted yet")
    return envelope("Quiz results fetched successfully", QuizResultsResponse(**build_results(quiz)))


@router.delete("/{quiz_id}", response_model=MessageResponse)
def delete_quiz(
    quiz_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Delete a quiz."""
    quiz = _get_owned_quiz(db, quiz_id, user_id)
    db.delete(quiz)
    db.commit()
    return envelope("Quiz deleted successfully")
