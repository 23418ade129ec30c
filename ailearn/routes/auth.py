"""Authentication routes."""
import re
import secrets
import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import EmailStr, Field, ValidationError as PydanticValidationError, field_validator

from ailearn.core.config import Settings, get_settings
from ailearn.core.exceptions import ValidationError
from ailearn.core.middleware import CSRF_COOKIE_NAME
from ailearn.core.schemas import ApiResponse, CamelModel, MessageResponse, StrictCamelModel, envelope
from ailearn.core.security import (
    MAX_PASSWORD_BYTES,
    clear_auth_cookie,
    get_current_user_id,
    password_too_long,
    set_auth_cookie,
)
from ailearn.services.auth_service import AuthService, get_auth_service, strip_protected_fields
from ailearn.services.file_storage import FileStorage, get_storage
from ailearn.utils.request_payload import read_payload, single_file


router = APIRouter(prefix="/api/auth", tags=["Authentication"])

PROFILE_IMAGE_FIELD = "profileImage"

PASSWORD_RULES = [
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter"),
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter"),
    (re.compile(r"[0-9]"), "Password must contain at least one number"),
    (re.compile(r"[@$!%*?&]"), "Password must contain at least one special character (@$!%*?&)"),
]


def _check_name(value: str) -> str:
    value = value.strip()
    if len(value) < 3:
        raise ValueError("Name must be at least 3 characters long")
    if len(value) > 30:
        raise ValueError("Name must be at most 30 characters long")
    return value


# Request/Response schemas
class RegisterRequest(StrictCamelModel):
    name: str
    email: EmailStr
    password: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _check_name(value)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < 8:
            raise ValueError("Password must be at least 8 characters long")
        if len(value) > 30:
            raise ValueError("Password must be at most 30 characters long")
        if password_too_long(value):
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")
        for pattern, message in PASSWORD_RULES:
            if not pattern.search(value):
                raise ValueError(message)
        return value


class LoginRequest(CamelModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class ProfileUpdateRequest(StrictCamelModel):
    name: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> str:
        if value is None:
            raise ValueError("Name cannot be empty")
        return _check_name(value)


class ChangePasswordRequest(CamelModel):
    old_password: str = Field(min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, value: str) -> str:
        if len(value) < 6:
            raise ValueError("New password must be at least 6 characters long")
        if password_too_long(value):
            raise ValueError(f"New password must be at most {MAX_PASSWORD_BYTES} bytes long")
        return value


class UserResponse(CamelModel):
    id: uuid.UUID
    name: str
    email: str
    profile_image: Optional[str] = None
    created_at: datetime


class AuthResponse(CamelModel):
    user: UserResponse
    token: str


class CsrfTokenResponse(CamelModel):
    csrf_token: str


def _validate(model, fields: dict):
    try:
        return model.model_validate(fields)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e)


@router.post("/register", response_model=ApiResponse[AuthResponse], status_code=status.HTTP_201_CREATED)
async def register(
    request: Request,
    response: Response,
    service: AuthService = Depends(get_auth_service),
    storage: FileStorage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
):
    """
    Register a new user.

    Accepts multipart form data (``name``, ``email``, ``password`` and an
    optional ``profileImage`` file) or a JSON body without the image.

    - Creates user account with hashed password
    - Sets the HTTP-only ``token`` cookie and returns the JWT
    """
    fields, files = await read_payload(request)
    upload = single_file(files, PROFILE_IMAGE_FIELD)
    data = _validate(RegisterRequest, fields)

    image = await storage.save(upload, "profile") if upload else None
    user, token = service.register(data.name, data.email, data.password, image)

    set_auth_cookie(response, token, settings)
    return envelope(
        "User registered successfully",
        {"user": UserResponse.model_validate(user), "token": token},
    )


@router.post("/login", response_model=ApiResponse[AuthResponse])
def login(
    request: LoginRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    """
    Login with email and password.

    Unknown email and wrong password get the same response.
    """
    user, token = service.login(request.email, request.password)

    set_auth_cookie(response, token, settings)
    return envelope(
        "User logged in successfully",
        {"user": UserResponse.model_validate(user), "token": token},
    )


@router.post("/logout", response_model=MessageResponse)
def logout(response: Response, settings: Settings = Depends(get_settings)):
    """Clear the auth cookie. The token itself stays valid until it expires."""
    clear_auth_cookie(response, settings)
    return envelope("User logged out successfully")


@router.get("/profile", response_model=ApiResponse[UserResponse])
def get_profile(
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: AuthService = Depends(get_auth_service),
):
    """Get current authenticated user information."""
    user = service.get_profile(user_id)
    return envelope("Profile fetched successfully", UserResponse.model_validate(user))


@router.put("/profile", response_model=ApiResponse[UserResponse])
async def update_profile(
    request: Request,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: AuthService = Depends(get_auth_service),
    storage: FileStorage = Depends(get_storage),
):
    """
    Update the profile (``name``) and optionally replace ``profileImage``.

    ``email`` and ``password`` are silently ignored here.
    """
    fields, files = await read_payload(request)
    upload = single_file(files, PROFILE_IMAGE_FIELD)
    data = _validate(ProfileUpdateRequest, strip_protected_fields(fields))

    image = await storage.save(upload, "profile", owner_id=user_id) if upload else None
    user = service.update_profile(user_id, data.model_dump(exclude_unset=True), image)
    return envelope("Profile updated successfully", UserResponse.model_validate(user))


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    request: ChangePasswordRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: AuthService = Depends(get_auth_service),
):
    """Change password after verifying the old one."""
    service.change_password(user_id, request.old_password, request.new_password)
    return envelope("Password changed successfully")


@router.get("/csrf-token", response_model=ApiResponse[CsrfTokenResponse])
def csrf_token(response: Response, settings: Settings = Depends(get_settings)):
    """Issue a token for the double-submit CSRF check (send it back as ``X-CSRF-Token``)."""
    token = secrets.token_urlsafe(32)
    response.set_cookie(
        key=CSRF_COOKIE_NAME,
        value=token,
        httponly=False,
        secure=settings.is_production,
        samesite="strict",
    )
    return envelope("CSRF token issued", CsrfTokenResponse(csrf_token=token))
