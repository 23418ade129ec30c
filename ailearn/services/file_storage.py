"""Upload storage: validation, naming, streaming to disk and cleanup."""
import logging
import os
import random
import re
import time
from dataclasses import dataclass, replace
from pathlib import Path, PurePosixPath
from typing import Dict, FrozenSet, Iterable, List, Optional, Union

import aiofiles
from fastapi import Request, UploadFile

from ailearn.core.exceptions import FileTooLarge, InvalidFileType, ValidationError

logger = logging.getLogger(__name__)

# Public URL prefix the upload root is mounted under
UPLOAD_URL_PREFIX = "uploads"
CHUNK_SIZE = 1024 * 1024

_JPEG = frozenset({"image/jpeg", "image/jpg"})

IMAGE_TYPES: Dict[str, FrozenSet[str]] = {
    ".jpeg": _JPEG,
    ".jpg": _JPEG,
    ".png": frozenset({"image/png"}),
    ".gif": frozenset({"image/gif"}),
    ".webp": frozenset({"image/webp"}),
}

DOCUMENT_TYPES: Dict[str, FrozenSet[str]] = {
    ".pdf": frozenset({"application/pdf"}),
    ".doc": frozenset({"application/msword"}),
    ".docx": frozenset({"application/vnd.openxmlformats-officedocument.wordprocessingml.document"}),
    ".txt": frozenset({"text/plain"}),
    ".ppt": frozenset({"application/vnd.ms-powerpoint"}),
    ".pptx": frozenset({"application/vnd.openxmlformats-officedocument.presentationml.presentation"}),
}


@dataclass(frozen=True)
class FileCategory:
    key: str
    directory: str
    prefix: str
    allowed_types: Dict[str, FrozenSet[str]]
    max_size: int

    @property
    def allowed_extensions(self) -> str:
        return ", ".join(ext.lstrip(".") for ext in self.allowed_types)


PROFILE = FileCategory("profile", "profiles", "profile", IMAGE_TYPES, 5 * 1024 * 1024)
DOCUMENT = FileCategory("document", "documents", "doc", DOCUMENT_TYPES, 50 * 1024 * 1024)

CATEGORIES: Dict[str, FileCategory] = {PROFILE.key: PROFILE, DOCUMENT.key: DOCUMENT}


@dataclass
class StoredFile:
    """A file accepted by :class:`FileStorage`."""

    reference: str  # e.g. "uploads/documents/doc-...pdf", stored on the owning row
    path: Path
    original_name: str
    size: int
    content_type: str


# ==================== PURE HELPERS ====================

def _base_name(original_name: str) -> str:
    # Browsers may send a full client path; keep the last component only
    return original_name.replace("\\", "/").rsplit("/", 1)[-1]


def _media_type(content_type: Optional[str]) -> str:
    return (content_type or "").split(";", 1)[0].strip().lower()


def generate_unique_filename(
    prefix: str,
    owner_id: Optional[object],
    original_name: str,
    timestamp: Optional[int] = None,
    suffix: Optional[int] = None,
) -> str:
    """
    Build a collision-resistant file name.

    Format: ``<prefix>-<owner or "guest">-<epoch ms>-<random>-<sanitized stem><ext>``
    """
    if timestamp is None:
        timestamp = int(time.time() * 1000)
    if suffix is None:
        suffix = random.randint(0, 10 ** 9)

    stem, ext = os.path.splitext(_base_name(original_name))
    sanitized = re.sub(r"[^a-zA-Z0-9.-]", "_", stem)
    owner = owner_id or "guest"
    return f"{prefix}-{owner}-{timestamp}-{suffix}-{sanitized}{ext}"


def storage_path(
    category: Union[str, FileCategory],
    owner_id: Optional[object],
    original_name: str,
    timestamp: Optional[int] = None,
    suffix: Optional[int] = None,
) -> PurePosixPath:
    """Relative storage path (``<category dir>/<unique name>``) for an upload."""
    if isinstance(category, str):
        category = CATEGORIES[category]
    filename = generate_unique_filename(category.prefix, owner_id, original_name, timestamp, suffix)
    return PurePosixPath(category.directory) / filename


def validate_file_type(filename: str, content_type: Optional[str], category: FileCategory) -> bool:
    """Extension and declared content type must both be allowed, and agree with each other."""
    ext = os.path.splitext(_base_name(filename or ""))[1].lower()
    allowed_media_types = category.allowed_types.get(ext)
    if not allowed_media_types:
        return False
    return _media_type(content_type) in allowed_media_types


def format_file_size(num_bytes: int) -> str:
    """Human readable size, e.g. ``1.5 KB``."""
    if num_bytes <= 0:
        return "0 Bytes"
    sizes = ["Bytes", "KB", "MB", "GB"]
    i = 0
    while i < len(sizes) - 1 and num_bytes >= 1024 ** (i + 1):
        i += 1
    value = round(num_bytes / (1024 ** i), 2)
    return f"{value:g} {sizes[i]}"


def file_exists(path: Union[str, Path]) -> bool:
    return os.path.exists(path)


def delete_file(path: Union[str, Path]) -> bool:
    """Delete a file. Returns False (never raises) when nothing was deleted."""
    try:
        if os.path.exists(path):
            os.remove(path)
            return True
        return False
    except OSError as e:
        logger.error("Error deleting file %s: %s", path, e)
        return False


def delete_files(paths: Iterable[Union[str, Path]]) -> Dict[str, int]:
    paths = list(paths)
    success_count = sum(1 for p in paths if delete_file(p))
    return {
        "success_count": success_count,
        "fail_count": len(paths) - success_count,
        "total": len(paths),
    }


# ==================== STORAGE ====================

class FileStorage:
    """Local-disk storage rooted at the configured upload directory."""

    def __init__(
        self,
        root: Union[str, Path],
        max_profile_size: int = PROFILE.max_size,
        max_document_size: int = DOCUMENT.max_size,
        max_files: int = 10,
    ):
        self.root = Path(root)
        self.max_files = max_files
        self.categories = {
            PROFILE.key: replace(PROFILE, max_size=max_profile_size),
            DOCUMENT.key: replace(DOCUMENT, max_size=max_document_size),
        }

    def ensure_dirs(self) -> None:
        for category in self.categories.values():
            (self.root / category.directory).mkdir(parents=True, exist_ok=True)

    def resolve(self, reference: str) -> Optional[Path]:
        """Map a stored reference back to a path under the root (None if it escapes it)."""
        relative = PurePosixPath(reference)
        if relative.parts and relative.parts[0] == UPLOAD_URL_PREFIX:
            relative = PurePosixPath(*relative.parts[1:])
        path = (self.root / relative).resolve()
        root = self.root.resolve()
        if path != root and root not in path.parents:
            logger.warning("Refusing to resolve reference outside upload root: %s", reference)
            return None
        return path

    async def save(self, upload: UploadFile, category_key: str, owner_id: Optional[object] = None) -> StoredFile:
        """Validate and stream ``upload`` to disk."""
        category = self.categories[category_key]
        original_name = upload.filename or ""

        if not validate_file_type(original_name, upload.content_type, category):
            raise InvalidFileType(
                f"Invalid file type. Only {category.allowed_extensions} files are allowed."
            )

        relative = storage_path(category, owner_id, original_name)
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)

        size = 0
        try:
            async with aiofiles.open(path, "wb") as buffer:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > category.max_size:
                        raise FileTooLarge(
                            f"File too large. Maximum size is {format_file_size(category.max_size)}."
                        )
                    await buffer.write(chunk)
        except Exception:
            delete_file(path)
            raise

        logger.info("Stored %s upload %s (%s)", category.key, relative.name, format_file_size(size))
        return StoredFile(
            reference=f"{UPLOAD_URL_PREFIX}/{relative}",
            path=path,
            original_name=_base_name(original_name),
            size=size,
            content_type=_media_type(upload.content_type),
        )

    async def save_many(
        self, uploads: List[UploadFile], category_key: str, owner_id: Optional[object] = None
    ) -> List[StoredFile]:
        """Save a bounded batch; on any failure the already stored files are removed."""
        if not uploads:
            raise ValidationError("No files provided")
        if len(uploads) > self.max_files:
            raise ValidationError(f"Too many files. Maximum is {self.max_files} per upload.")

        stored: List[StoredFile] = []
        try:
            for upload in uploads:
                stored.append(await self.save(upload, category_key, owner_id))
        except Exception:
            self.delete_many(s.reference for s in stored)
            raise
        return stored

    def delete(self, reference: Optional[str]) -> bool:
        if not reference:
            return False
        path = self.resolve(reference)
        if path is None:
            return False
        return delete_file(path)

    def delete_many(self, references: Iterable[str]) -> Dict[str, int]:
        references = list(references)
        success_count = sum(1 for ref in references if self.delete(ref))
        return {
            "success_count": success_count,
            "fail_count": len(references) - success_count,
            "total": len(references),
        }


def get_storage(request: Request) -> FileStorage:
    """Dependency returning the app's file storage."""
    return request.app.state.storage
