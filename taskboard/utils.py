import uuid
from datetime import datetime, timezone
from urllib.parse import urlsplit, urlunsplit


def now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)


def new_uuid() -> str:
    return str(uuid.uuid4())


def is_uuid(value: str) -> bool:
    """Return True when ``value`` is a canonical identifier as issued by ``new_uuid``."""
    try:
        return str(uuid.UUID(value)) == value
    except (ValueError, AttributeError, TypeError):
        return False


def redact_url(url: str) -> str:
    """Drop the password from a database URL so it can be logged."""
    parts = urlsplit(url)
    if parts.password is None:
        return url
    netloc = parts.netloc.replace(f":{parts.password}@", ":***@")
    return urlunsplit(parts._replace(netloc=netloc))
