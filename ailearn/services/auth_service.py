"""Account lifecycle: registration, login, profile and password changes."""
import logging
import uuid
from typing import Any, Dict, Optional, Tuple

from fastapi import Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ailearn.core.config import Settings, get_settings
from ailearn.core.exceptions import DuplicateEmail, InvalidCredentials, NotFound
from ailearn.core.security import create_access_token, get_password_hash, verify_password
from ailearn.db.sessions import get_db
from ailearn.models.user import User
from ailearn.services.file_storage import FileStorage, StoredFile, get_storage

logger = logging.getLogger(__name__)

# Never writable through the profile update path
PROTECTED_PROFILE_FIELDS = frozenset({"email", "password", "password_hash", "passwordHash"})


def strip_protected_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in payload.items() if k not in PROTECTED_PROFILE_FIELDS}


class AuthService:
    """
    Orchestrates the credential store, token issuer and file storage.

    Every method that receives an already stored upload owns its cleanup:
    if the operation fails, the upload is deleted before the error propagates.
    """

    def __init__(self, db: Session, settings: Settings, storage: FileStorage):
        self.db = db
        self.settings = settings
        self.storage = storage

    def issue_token(self, user: User) -> str:
        return create_access_token(str(user.id), self.settings)

    def _find_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def _get_user(self, user_id: uuid.UUID) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def register(
        self, name: str, email: str, password: str, image: Optional[StoredFile] = None
    ) -> Tuple[User, str]:
        """Create an account and return it with a fresh token."""
        try:
            if self._find_by_email(email):
                raise DuplicateEmail()

            user = User(
                name=name,
                email=email,
                password_hash=get_password_hash(password, self.settings.BCRYPT_ROUNDS),
                profile_image=image.reference if image else None,
            )
            self.db.add(user)
            try:
                self.db.commit()
            except IntegrityError:
                # Lost a race against a concurrent registration with the same email
                raise DuplicateEmail()
            self.db.refresh(user)
        except Exception:
            self.db.rollback()
            if image:
                self.storage.delete(image.reference)
            raise

        logger.info("Registered user %s", user.id)
        return user, self.issue_token(user)

    def login(self, email: str, password: str) -> Tuple[User, str]:
        user = self._find_by_email(email)
        # Same error for unknown email and wrong password
        if user is None or not verify_password(password, user.password_hash, self.settings.BCRYPT_ROUNDS):
            raise InvalidCredentials()

        logger.info("User %s logged in", user.id)
        return user, self.issue_token(user)

    def get_profile(self, user_id: uuid.UUID) -> User:
        return self._get_user(user_id)

    def update_profile(
        self, user_id: uuid.UUID, updates: Dict[str, Any], image: Optional[StoredFile] = None
    ) -> User:
        """
        Apply profile changes; email and password are dropped from ``updates``.

        The previous image is deleted only once the new one is committed.
        """
        updates = strip_protected_fields(updates)
        try:
            user = self._get_user(user_id)
            old_image = user.profile_image

            for field, value in updates.items():
                setattr(user, field, value)
            if image:
                user.profile_image = image.reference

            self.db.commit()
            self.db.refresh(user)
        except Exception:
            self.db.rollback()
            if image:
                self.storage.delete(image.reference)
            raise

        if image and old_image and old_image != image.reference:
            self.storage.delete(old_image)

        logger.info("Updated profile for user %s", user.id)
        return user

    def change_password(self, user_id: uuid.UUID, old_password: str, new_password: str) -> None:
        user = self._get_user(user_id)
        if not verify_password(old_password, user.password_hash, self.settings.BCRYPT_ROUNDS):
            raise InvalidCredentials("Old password is incorrect")

        user.password_hash = get_password_hash(new_password, self.settings.BCRYPT_ROUNDS)
        self.db.commit()
        logger.info("Password changed for user %s", user.id)


def get_auth_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    storage: FileStorage = Depends(get_storage),
) -> AuthService:
    return AuthService(db, settings, storage)
