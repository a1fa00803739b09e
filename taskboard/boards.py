"""Board lifecycle and board membership."""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session

from .access import MEMBER_ROLES, Access, Role, require_access
from .config import Settings
from .db import Board, BoardList, BoardMember, Card, User, atomic
from .errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from .identity import normalize_email
from .slugs import unique_slug

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 100


def clean_title(title: Optional[str]) -> str:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Title is required")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Title must be at most {MAX_TITLE_LENGTH} characters")
    return title


def clean_member_role(role: Optional[str]) -> str:
    if role not in MEMBER_ROLES:
        raise ValidationError('Role must be "admin" or "member"')
    return role


class BoardManager:
    def __init__(self, session: Session, settings: Settings) -> None:
        self.session = session
        self.settings = settings

    # === Boards ===

    def list_boards_for(self, user_id: str) -> List[Tuple[Board, Role]]:
        """Owned and shared boards, most recently updated first."""
        memberships = self.session.scalars(select(BoardMember).where(BoardMember.user_id == user_id)).all()
        shared_roles = {m.board_id: Role(m.role) for m in memberships}
        query = (
            select(Board)
            .where(or_(Board.user_id == user_id, Board.id.in_(list(shared_roles))))
            .order_by(Board.updated_at.desc())
        )
        result = []
        for board in self.session.scalars(query):
            if board.user_id is not None and board.user_id == user_id:
                result.append((board, Role.OWNER))
            else:
                result.append((board, shared_roles[board.id]))
        return result

    def create_board(self, user_id: str, title: Optional[str], background: Optional[str] = None) -> Board:
        title = clean_title(title)
        board = Board(
            title=title,
            background=background or self.settings.default_background,
            user_id=user_id,
        )
        board.slug = unique_slug(self.session, title)
        self.session.add(board)
        self.session.commit()
        logger.info("User %s created board %s (%s)", user_id, board.id, board.slug)
        return board

    def get_board(self, id_or_slug: str, user_id: str) -> Access:
        return require_access(self.session, id_or_slug, user_id)

    def update_board(
        self,
        id_or_slug: str,
        user_id: str,
        title: Optional[str] = None,
        background: Optional[str] = None,
    ) -> Access:
        access = require_access(
            self.session, id_or_slug, user_id, Role.ADMIN,
            forbidden="Only owner or admin can edit the board",
        )
        board = access.board
        if title is not None:
            title = clean_title(title)
            if title != board.title or not board.slug:
                board.title = title
                board.slug = unique_slug(self.session, title, board.id)
        if background is not None:
            board.background = background
        self.session.commit()
        return access

    def delete_board(self, id_or_slug: str, user_id: str) -> None:
        access = require_access(
            self.session, id_or_slug, user_id, Role.OWNER,
            forbidden="Only the board owner can delete it",
        )
        board_id = access.board.id
        with atomic(self.session):
            self.session.execute(delete(Card).where(Card.board_id == board_id))
            self.session.execute(delete(BoardList).where(BoardList.board_id == board_id))
            self.session.execute(delete(BoardMember).where(BoardMember.board_id == board_id))
            self.session.delete(access.board)
        logger.info("User %s deleted board %s", user_id, board_id)

    def backfill_slugs(self) -> int:
        """Give every board stored without a slug one derived from its title."""
        boards = self.session.scalars(select(Board).where(or_(Board.slug.is_(None), Board.slug == ""))).all()
        for board in boards:
            board.slug = unique_slug(self.session, board.title, board.id)
            # Each slug must be visible to the uniqueness check of the next one.
            self.session.flush()
        self.session.commit()
        if boards:
            logger.info("Generated slugs for %d existing board(s)", len(boards))
        return len(boards)

    # === Members ===

    def list_members(self, id_or_slug: str, user_id: str) -> Tuple[Optional[User], List[BoardMember]]:
        access = require_access(self.session, id_or_slug, user_id)
        owner = self.session.get(User, access.board.user_id) if access.board.user_id else None
        members = self.session.scalars(
            select(BoardMember)
            .where(BoardMember.board_id == access.board.id)
            .order_by(BoardMember.created_at.asc())
        ).all()
        return owner, list(members)

    def invite_member(
        self,
        id_or_slug: str,
        user_id: str,
        email: Optional[str],
        role: Optional[str] = None,
    ) -> BoardMember:
        access = require_access(
            self.session, id_or_slug, user_id, Role.ADMIN,
            forbidden="Only owner or admin can invite members",
        )
        if not email or not email.strip():
            raise ValidationError("Email is required")
        role = clean_member_role(role or Role.MEMBER.value)

        invitee = self.session.scalars(select(User).where(User.email == normalize_email(email))).first()
        if invitee is None:
            raise NotFoundError("No user found with that email")
        board = access.board
        if board.user_id is not None and invitee.id == board.user_id:
            raise ValidationError("That user is the board owner")
        existing = self.session.scalars(
            select(BoardMember).where(BoardMember.board_id == board.id, BoardMember.user_id == invitee.id)
        ).first()
        if existing is not None:
            raise ConflictError("User is already a member of this board")

        member = BoardMember(board_id=board.id, user_id=invitee.id, role=role)
        self.session.add(member)
        self.session.commit()
        logger.info("User %s added %s to board %s as %s", user_id, invitee.id, board.id, role)
        return member

    def change_role(self, id_or_slug: str, user_id: str, member_id: str, role: Optional[str]) -> BoardMember:
        access = require_access(
            self.session, id_or_slug, user_id, Role.ADMIN,
            forbidden="Only owner or admin can change roles",
        )
        role = clean_member_role(role)
        member = self._member(access.board, member_id)
        member.role = role
        self.session.commit()
        logger.info("User %s set role of member %s on board %s to %s", user_id, member.id, access.board.id, role)
        return member

    def remove_member(self, id_or_slug: str, user_id: str, member_id: str) -> None:
        access = require_access(self.session, id_or_slug, user_id)
        member = self._member(access.board, member_id)
        if member.user_id != user_id and not access.role.at_least(Role.ADMIN):
            raise ForbiddenError("Only owner or admin can remove members")
        self.session.delete(member)
        self.session.commit()
        logger.info("User %s removed member %s from board %s", user_id, member_id, access.board.id)

    def _member(self, board: Board, member_id: str) -> BoardMember:
        member = self.session.get(BoardMember, member_id)
        if member is None or member.board_id != board.id:
            raise NotFoundError("Member not found")
        return member
