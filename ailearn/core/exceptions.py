"""Application error taxonomy.

Every error raised on purpose by the API derives from :class:`AppError`. The
handlers registered in ``ailearn.main`` translate them into the JSON envelope
``{"success": false, "message": ..., "error": ...}``.
"""
from typing import Any, Dict, List, Optional

from fastapi import status
from pydantic import ValidationError as PydanticValidationError


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, error: Any = None):
        self.message = message or self.message
        self.error = error
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Validation failed"

    @classmethod
    def from_fields(cls, errors: List[Dict[str, str]], message: Optional[str] = None) -> "ValidationError":
        return cls(message, error=errors)

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> "ValidationError":
        return cls(error=field_errors(exc.errors()))


class DuplicateEmail(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Email already registered"


class InvalidCredentials(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Invalid email or password"


class Unauthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "No token provided, authorization denied"


class InvalidToken(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Invalid or expired token"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Resource not found"


class InvalidFileType(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid file type"


class FileTooLarge(AppError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    message = "File too large"


class AIServiceError(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    message = "AI generation failed"


class InternalError(AppError):
    pass


def field_errors(errors) -> List[Dict[str, str]]:
    """Flatten pydantic/FastAPI error dicts into ``[{field, message}]``."""
    flattened = []
    for err in errors:
        # Drop the "body"/"query" location prefix FastAPI adds
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "form")]
        message = err.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        flattened.append({"field": ".".join(loc) or "__root__", "message": message})
    return flattened
