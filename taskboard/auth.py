from typing import Optional

from fastapi import Header, Request

from .errors import AuthError
from .security import decode_access_token


def get_current_user(request: Request, authorization: Optional[str] = Header(default=None)) -> str:
    """Resolve the caller's user id from an ``Authorization: Bearer <token>`` header."""
    prefix = "Bearer "
    if not authorization or not authorization.startswith(prefix):
        raise AuthError("No token provided")
    token = authorization[len(prefix) :].strip()
    return decode_access_token(token, request.app.state.settings)
