"""Shared request/response schema helpers."""
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base schema: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class StrictCamelModel(CamelModel):
    """Schema for security-sensitive bodies: unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: str
    data: Optional[T] = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str


def envelope(message: str, data: Any = None) -> dict:
    """Build a success envelope."""
    body = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    return body
