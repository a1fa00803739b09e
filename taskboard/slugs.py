import re
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .db import Board
from .utils import is_uuid

FALLBACK_SLUG = "board"

_STRIP = re.compile(r"[^\w\s-]", re.ASCII)
_SEPARATORS = re.compile(r"[\s_]+")
_DASHES = re.compile(r"-+")


def slugify(title: str) -> str:
    """URL-safe form of ``title``: lowercase ASCII letters, digits and single dashes."""
    slug = title.lower().strip()
    slug = _STRIP.sub("", slug)
    slug = _SEPARATORS.sub("-", slug)
    slug = _DASHES.sub("-", slug)
    return slug.strip("-")


def unique_slug(session: Session, title: str, board_id: Optional[str] = None) -> str:
    """Slug for ``title`` not used by any board other than ``board_id``.

    Collisions get ``-1``, ``-2``, ... appended to the base slug.
    """
    base = slugify(title) or FALLBACK_SLUG
    slug = base
    count = 0
    # A slug shaped like an id would never be looked up by slug.
    while is_uuid(slug) or _taken(session, slug, board_id):
        count += 1
        slug = f"{base}-{count}"
    return slug


def _taken(session: Session, slug: str, board_id: Optional[str]) -> bool:
    query = select(Board.id).where(Board.slug == slug)
    if board_id is not None:
        query = query.where(Board.id != board_id)
    return session.scalar(query.limit(1)) is not None
