"""Security utilities for JWT, cookies and password hashing."""
import uuid
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request, Response
from jose import JWTError, jwt
from passlib.context import CryptContext

from ailearn.core.config import Settings, get_settings
from ailearn.core.exceptions import InvalidToken, Unauthenticated


# bcrypt only looks at the first 72 bytes of its input
MAX_PASSWORD_BYTES = 72


@lru_cache(maxsize=None)
def get_password_context(rounds: int) -> CryptContext:
    """Return a bcrypt context for the given cost factor."""
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


def password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


def verify_password(plain_password: str, hashed_password: str, rounds: int = 10) -> bool:
    """Verify a plain password against a hashed password. Inputs over 72 bytes never match."""
    if not plain_password or not hashed_password or password_too_long(plain_password):
        return False
    return get_password_context(rounds).verify(plain_password, hashed_password)


def get_password_hash(password: str, rounds: int = 10) -> str:
    """Hash a password.

    Raises:
        ValueError: password longer than 72 UTF-8 bytes
    """
    if password_too_long(password):
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")
    return get_password_context(rounds).hash(password)


def create_access_token(subject: str, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token for ``subject`` (the user id)."""
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {"sub": subject, "iat": now, "exp": now + expires_delta}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str, settings: Settings) -> dict:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise InvalidToken()


def extract_token(request: Request, cookie_name: str) -> Optional[str]:
    """Read the bearer token, preferring the cookie over the Authorization header."""
    token = request.cookies.get(cookie_name)
    if token:
        return token

    auth_header = request.headers.get("Authorization", "")
    scheme, _, credentials = auth_header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


def get_current_user_id(request: Request, settings: Settings = Depends(get_settings)) -> uuid.UUID:
    """
    Dependency resolving the authenticated user id from the request token.

    The token is trusted within its validity window; the user row is not
    looked up here.

    Usage:
        @router.get("/protected")
        def protected_route(user_id: uuid.UUID = Depends(get_current_user_id)):
            return {"user_id": str(user_id)}
    """
    token = extract_token(request, settings.AUTH_COOKIE_NAME)
    if not token:
        raise Unauthenticated()

    payload = decode_token(token, settings)
    subject = payload.get("sub")
    if not subject:
        raise InvalidToken()

    try:
        return uuid.UUID(str(subject))
    except ValueError:
        raise InvalidToken()


def set_auth_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


def clear_auth_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.AUTH_COOKIE_NAME,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )
