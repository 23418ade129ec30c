"""Flashcard routes."""
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
from ailearn.models.flashcard import FlashcardSet
from ailearn.routes.documents import get_owned_document
from ailearn.services.flashcard_service import normalize_flashcards
from ailearn.services.openai_service import OpenAIService, get_ai_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/flashcards", tags=["Flashcards"])


class GenerateFlashcardsRequest(CamelModel):
    document_id: uuid.UUID
    count: int = Field(default=10, ge=1, le=50)
    title: Optional[str] = Field(default=None, max_length=200)


class FlashcardResponse(CamelModel):
    question: str
    answer: str
    difficulty: str


class FlashcardSetSummaryResponse(CamelModel):
    id: uuid.UUID
    document_id: uuid.UUID
    title: str
    card_count: int
    created_at: datetime


class FlashcardSetResponse(FlashcardSetSummaryResponse):
    cards: List[FlashcardResponse]


class FlashcardSetListResponse(CamelModel):
    flashcard_sets: List[FlashcardSetSummaryResponse]
    total: int


def _summary(flashcard_set: FlashcardSet) -> dict:
    return {
        "id": flashcard_set.id,
        "document_id": flashcard_set.document_id,
        "title": flashcard_set.title,
        "card_count": len(flashcard_set.cards or []),
        "created_at": flashcard_set.created_at,
    }


def _get_owned_set(db: Session, set_id: uuid.UUID, user_id: uuid.UUID) -> FlashcardSet:
    flashcard_set = db.query(FlashcardSet).filter(
        FlashcardSet.id == set_id,
        FlashcardSet.user_id == user_id
    ).first()
    if not flashcard_set:
        raise NotFound("Flashcard set not found")
    return flashcard_set


@router.post("/generate", response_model=ApiResponse[FlashcardSetResponse], status_code=status.HTTP_201_CREATED)
def generate_flashcards(
    request: GenerateFlashcardsRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    ai: OpenAIService = Depends(get_ai_service),
):
    """Generate a flashcard set from one of the user's documents."""
    document = get_owned_document(db, request.document_id, user_id)
    if not (document.extracted_text or "").strip():
        raise ValidationError("Document has no extractable text to generate flashcards from")

    raw_cards = ai.generate_flashcards(document.extracted_text, count=request.count)
    cards = normalize_flashcards(raw_cards, request.count)
    if not cards:
        raise AIServiceError("Failed to generate flashcards")

    flashcard_set = FlashcardSet(
        user_id=user_id,
        document_id=document.id,
        title=(request.title or "").strip() or f"{document.title} Flashcards",
        cards=cards,
    )
    db.add(flashcard_set)
    db.commit()
    db.refresh(flashcard_set)

    logger.info("Generated %d flashcards (set %s) from document %s", len(cards), flashcard_set.id, document.id)
    return envelope(
        "Flashcards generated successfully",
        FlashcardSetResponse(**_summary(flashcard_set), cards=flashcard_set.cards),
    )


@router.get("", response_model=ApiResponse[FlashcardSetListResponse])
def list_flashcard_sets(
    document_id: Optional[uuid.UUID] = Query(default=None, alias="documentId"),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    query = db.query(FlashcardSet).filter(FlashcardSet.user_id == user_id)
    if document_id:
        query = query.filter(FlashcardSet.document_id == document_id)
    sets = query.order_by(FlashcardSet.created_at.desc()).all()

    return envelope(
        "Flashcard sets fetched successfully",
        FlashcardSetListResponse(
            flashcard_sets=[FlashcardSetSummaryResponse(**_summary(s)) for s in sets],
            total=len(sets),
        ),
    )


@router.get("/{set_id}", response_model=ApiResponse[FlashcardSetResponse])
def get_flashcard_set(
    set_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    flashcard_set = _get_owned_set(db, set_id, user_id)
    return envelope(
        "Flashcard set fetched successfully",
        FlashcardSetResponse(**_summary(flashcard_set), cards=flashcard_set.cards),
    )


@router.delete("/{set_id}", response_model=MessageResponse)
def delete_flashcard_set(
    set_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    flashcard_set = _get_owned_set(db, set_id, user_id)
    db.delete(flashcard_set)
    db.commit()
    return envelope("Flashcard set deleted successfully")
