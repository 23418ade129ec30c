"""Document routes."""
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import FileResponse
from pydantic import Field, computed_field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ailearn.core.exceptions import InternalError, NotFound
from ailearn.core.schemas import ApiResponse, CamelModel, MessageResponse, StrictCamelModel, envelope
from ailearn.core.security import get_current_user_id
from ailearn.db.sessions import get_db
from ailearn.models.document import Document
from ailearn.services.file_storage import FileStorage, StoredFile, format_file_size, get_storage
from ailearn.utils.file_processor import FileProcessor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/documents", tags=["Documents"])


# Request/Response schemas
class DocumentUpdateRequest(StrictCamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("title")
    @classmethod
    def title_not_null(cls, value: Optional[str]) -> str:
        if value is None or not value.strip():
            raise ValueError("Title cannot be empty")
        return value.strip()


class DocumentResponse(CamelModel):
    id: uuid.UUID
    title: str
    description: Optional[str] = None
    file_name: str
    file_path: str
    file_size: int
    mime_type: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    @computed_field(alias="fileSizeFormatted")
    @property
    def file_size_formatted(self) -> str:
        return format_file_size(self.file_size)


class DocumentDetailResponse(DocumentResponse):
    extracted_text: Optional[str] = None


class DocumentListResponse(CamelModel):
    documents: List[DocumentResponse]
    total: int


def get_owned_document(db: Session, document_id: uuid.UUID, user_id: uuid.UUID) -> Document:
    """Fetch a document owned by ``user_id`` or raise NotFound."""
    document = db.query(Document).filter(
        Document.id == document_id,
        Document.user_id == user_id
    ).first()
    if not document:
        raise NotFound("Document not found")
    return document


def _extract_text(stored: StoredFile) -> Optional[str]:
    if not FileProcessor.is_supported(stored.path.name):
        return None
    try:
        return FileProcessor.extract_text(str(stored.path)) or None
    except ValueError as e:
        # Keep the upload; generation will report the missing text
        logger.warning("Text extraction failed for %s: %s", stored.original_name, e)
        return None


def _build_document(
    user_id: uuid.UUID, stored: StoredFile, title: Optional[str] = None, description: Optional[str] = None
) -> Document:
    text = _extract_text(stored)
    return Document(
        user_id=user_id,
        title=(title or "").strip() or Path(stored.original_name).stem or stored.original_name,
        description=description,
        file_name=stored.original_name,
        file_path=stored.reference,
        file_size=stored.size,
        mime_type=stored.content_type,
        extracted_text=text,
        status="ready" if text else "stored",
    )


def _persist(db: Session, storage: FileStorage, stored_files: List[StoredFile], documents: List[Document]) -> None:
    """Commit new documents; on failure remove the files that were accepted for them."""
    try:
        db.add_all(documents)
        db.commit()
        for document in documents:
            db.refresh(document)
    except Exception as e:
        db.rollback()
        storage.delete_many(s.reference for s in stored_files)
        if isinstance(e, SQLAlchemyError):
            logger.exception("Failed to save %d document(s)", len(documents))
            raise InternalError("Failed to save document", error=str(e))
        raise


@router.post("/upload", response_model=ApiResponse[DocumentResponse], status_code=status.HTTP_201_CREATED)
async def upload_document(
    document: UploadFile = File(...),
    title: Optional[str] = Form(None, max_length=200),
    description: Optional[str] = Form(None, max_length=2000),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
):
    """
    Upload a single document (PDF, DOC, DOCX, TXT, PPT, PPTX; max 50MB).

    Text is extracted from PDF, DOCX and TXT files for quiz/flashcard generation.
    """
    stored = await storage.save(document, "document", owner_id=user_id)
    try:
        doc = _build_document(user_id, stored, title, description)
    except Exception:
        storage.delete(stored.reference)
        raise
    _persist(db, storage, [stored], [doc])

    logger.info("User %s uploaded document %s", user_id, doc.id)
    return envelope("Document uploaded successfully", DocumentResponse.model_validate(doc))


@router.post("/upload-multiple", response_model=ApiResponse[DocumentListResponse], status_code=status.HTTP_201_CREATED)
async def upload_documents(
    documents: List[UploadFile] = File(...),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
):
    """Upload up to 10 documents at once. Any invalid file rejects the whole batch."""
    stored_files = await storage.save_many(documents, "document", owner_id=user_id)
    try:
        docs = [_build_document(user_id, stored) for stored in stored_files]
    except Exception:
        storage.delete_many(s.reference for s in stored_files)
        raise
    _persist(db, storage, stored_files, docs)

    return envelope(
        "Documents uploaded successfully",
        DocumentListResponse(
            documents=[DocumentResponse.model_validate(d) for d in docs],
            total=len(docs),
        ),
    )


@router.get("", response_model=ApiResponse[DocumentListResponse])
def list_documents(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """List the current user's documents, newest first."""
    docs = db.query(Document).filter(
        Document.user_id == user_id
    ).order_by(Document.created_at.desc()).all()

    return envelope(
        "Documents fetched successfully",
        DocumentListResponse(
            documents=[DocumentResponse.model_validate(d) for d in docs],
            total=len(docs),
        ),
    )


@router.get("/{document_id}", response_model=ApiResponse[DocumentDetailResponse])
def get_document(
    document_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Get one document, including its extracted text."""
    doc = get_owned_document(db, document_id, user_id)
    return envelope("Document fetched successfully", DocumentDetailResponse.model_validate(doc))


@router.get("/{document_id}/download")
def download_document(
    document_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
):
    """Download the stored file (owner-only)."""
    doc = get_owned_document(db, document_id, user_id)

    path = storage.resolve(doc.file_path)
    if path is None or not path.exists():
        raise NotFound("File not found on server")

    return FileResponse(
        path=str(path),
        media_type=doc.mime_type or "application/octet-stream",
        filename=doc.file_name,
    )


@router.put("/{document_id}", response_model=ApiResponse[DocumentResponse])
def update_document(
    document_id: uuid.UUID,
    request: DocumentUpdateRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Update title and/or description."""
    doc = get_owned_document(db, document_id, user_id)

    for field, value in request.model_dump(exclude_unset=True).items():
        setattr(doc, field, value)
    db.commit()
    db.refresh(doc)

    return envelope("Document updated successfully", DocumentResponse.model_validate(doc))


@router.delete("/{document_id}", response_model=MessageResponse)
def delete_document(
    document_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
):
    """
    Delete a document.

    Cascades to quizzes and flashcard sets generated from it; the stored
    file is removed once the rows are gone.
    """
    doc = get_owned_document(db, document_id, user_id)
    file_path = doc.file_path

    db.delete(doc)
    db.commit()

    if not storage.delete(file_path):
        logger.warning("Stored file for document %s was already missing", document_id)

    return envelope("Document deleted successfully")
