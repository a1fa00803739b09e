"""User registration, login and token verification."""

from __future__ import annotations

import logging
import re
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import Settings
from .db import User
from .errors import AuthError, ConflictError, NotFoundError, ValidationError
from .security import BCRYPT_MAX_BYTES, create_access_token, decode_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")
MIN_PASSWORD_LENGTH = 6
MAX_NAME_LENGTH = 100

# Same message for unknown email and wrong password.
BAD_CREDENTIALS = "Invalid email or password"


def normalize_email(email: str) -> str:
    return email.strip().lower()


class IdentityService:
    def __init__(self, session: Session, settings: Settings) -> None:
        self.session = session
        self.settings = settings

    def find_by_email(self, email: str) -> Optional[User]:
        return self.session.scalars(select(User).where(User.email == normalize_email(email))).first()

    def register(self, name: Optional[str], email: Optional[str], password: Optional[str]) -> Tuple[str, User]:
        name = (name or "").strip()
        if not name or not email or not password:
            raise ValidationError("Name, email, and password are required")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
            raise ValidationError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes")
        if len(name) > MAX_NAME_LENGTH:
            raise ValidationError(f"Name must be at most {MAX_NAME_LENGTH} characters")
        email = normalize_email(email)
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Please enter a valid email")
        if self.find_by_email(email) is not None:
            raise ConflictError("Email already in use")

        user = User(
            name=name,
            email=email,
            password_hash=hash_password(password, rounds=self.settings.bcrypt_rounds),
        )
        self.session.add(user)
        self.session.commit()
        logger.info("Registered user %s", user.id)
        return create_access_token(user.id, self.settings), user

    def login(self, email: Optional[str], password: Optional[str]) -> Tuple[str, User]:
        if not email or not password:
            raise ValidationError("Email and password are required")
        user = self.find_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            logger.info("Rejected login attempt")
            raise AuthError(BAD_CREDENTIALS)
        return create_access_token(user.id, self.settings), user

    def verify_token(self, token: Optional[str]) -> str:
        return decode_access_token(token or "", self.settings)

    def get_self(self, user_id: str) -> User:
        user = self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user
