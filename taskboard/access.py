"""Board access resolution.

A caller's role on a board is derived from two independent facts: the board's
owner reference and an optional ``BoardMember`` row. Nothing is cached; every
request resolves its role again.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .db import Board, BoardMember
from .errors import ForbiddenError, NotFoundError
from .utils import is_uuid


class Role(str, enum.Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def at_least(self, minimum: "Role") -> bool:
        return self.rank >= minimum.rank


_RANKS = {Role.MEMBER: 1, Role.ADMIN: 2, Role.OWNER: 3}

# Roles that may be stored on a membership row; ownership lives on the board.
MEMBER_ROLES = (Role.ADMIN.value, Role.MEMBER.value)


@dataclass
class Access:
    board: Board
    role: Role


def resolve_board(session: Session, id_or_slug: str) -> Optional[Board]:
    """Look a board up by id when ``id_or_slug`` is a well-formed id, else by slug."""
    if not id_or_slug:
        return None
    if is_uuid(id_or_slug):
        return session.get(Board, id_or_slug)
    return session.scalars(select(Board).where(Board.slug == id_or_slug)).first()


def derive_role(board: Board, user_id: str, membership: Optional[BoardMember]) -> Optional[Role]:
    if board.user_id is not None and board.user_id == user_id:
        return Role.OWNER
    if membership is not None and membership.board_id == board.id and membership.user_id == user_id:
        return Role(membership.role)
    return None


def find_membership(session: Session, board_id: str, user_id: str) -> Optional[BoardMember]:
    return session.scalars(
        select(BoardMember).where(BoardMember.board_id == board_id, BoardMember.user_id == user_id)
    ).first()


def check_access(session: Session, id_or_slug: str, user_id: str) -> Optional[Access]:
    board = resolve_board(session, id_or_slug)
    if board is None:
        return None
    membership = None
    if board.user_id != user_id:
        membership = find_membership(session, board.id, user_id)
    role = derive_role(board, user_id, membership)
    if role is None:
        return None
    return Access(board=board, role=role)


def require_access(
    session: Session,
    id_or_slug: str,
    user_id: str,
    minimum: Role = Role.MEMBER,
    not_found: str = "Board not found",
    forbidden: str = "Insufficient permissions for this board",
) -> Access:
    """Like ``check_access`` but raising.

    Boards the caller cannot see are reported exactly like missing boards.
    """
    access = check_access(session, id_or_slug, user_id)
    if access is None:
        raise NotFoundError(not_found)
    if not access.role.at_least(minimum):
        raise ForbiddenError(forbidden)
    return access
