from datetime import timedelta

import bcrypt
import jwt

from .config import Settings
from .errors import AuthError
from .utils import now_utc

BCRYPT_MAX_BYTES = 72


def hash_password(password: str, rounds: int = 10) -> str:
    """One-way bcrypt hash of ``password``."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    encoded = password.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        # Older bcrypt releases truncate instead of refusing.
        return False
    try:
        return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash.
        return False


def create_access_token(user_id: str, settings: Settings) -> str:
    """Sign an expiring token identifying ``user_id``."""
    issued = now_utc()
    payload = {
        "userId": user_id,
        "iat": issued,
        "exp": issued + timedelta(days=settings.token_ttl_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> str:
    """Verify the token signature and expiry and return the user id it carries."""
    if not token:
        raise AuthError("No token provided")
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.InvalidTokenError:
        # ExpiredSignatureError is a subclass; both surface the same way.
        raise AuthError("Invalid token")
    user_id = payload.get("userId")
    if not isinstance(user_id, str) or not user_id:
        raise AuthError("Invalid token")
    return user_id
