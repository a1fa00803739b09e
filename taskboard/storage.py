from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from .access import Access, Role, check_access, require_access
from .db import BoardList, Card, atomic
from .errors import ForbiddenError, NotFoundError, ValidationError
from .ordering import move_cards, next_position, reorder
from .utils import new_uuid, now_utc

logger = logging.getLogger(__name__)

MAX_LIST_TITLE = 200
MAX_CARD_TITLE = 500
MAX_DESCRIPTION = 5000
MAX_COMMENT = 2000

EDIT_FORBIDDEN = "Only owner or admin can edit this board"


def _text(value: Optional[str], field: str, max_length: int) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{field} is required")
    if len(value) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return value


def _checklist(items: Optional[Sequence[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    result = []
    for item in items or []:
        result.append(
            {
                "id": item.get("id") or new_uuid(),
                "text": _text(item.get("text"), "Checklist item text", MAX_CARD_TITLE),
                "completed": bool(item.get("completed", False)),
            }
        )
    return result


def _comments(items: Optional[Sequence[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    result = []
    for item in items or []:
        created_at = item.get("createdAt") or now_utc()
        if isinstance(created_at, datetime):
            created_at = created_at.isoformat()
        result.append(
            {
                "id": item.get("id") or new_uuid(),
                "text": _text(item.get("text"), "Comment text", MAX_COMMENT),
                "createdAt": created_at,
            }
        )
    return result


class Storage:
    """Lists and cards of a board, with their positions."""

    def __init__(self, session: Session) -> None:
        self.session = session

    # === Lookups ===

    def _access_via(self, board_id: str, user_id: str, minimum: Role, not_found: str) -> Access:
        # Anything the caller cannot see looks exactly like something missing.
        access = check_access(self.session, board_id, user_id)
        if access is None:
            raise NotFoundError(not_found)
        if not access.role.at_least(minimum):
            raise ForbiddenError(EDIT_FORBIDDEN)
        return access

    def _list(self, list_id: str, user_id: str, minimum: Role = Role.MEMBER) -> BoardList:
        board_list = self.session.get(BoardList, list_id)
        if board_list is None:
            raise NotFoundError("List not found")
        self._access_via(board_list.board_id, user_id, minimum, "List not found")
        return board_list

    def _card(self, card_id: str, user_id: str, minimum: Role = Role.MEMBER) -> Card:
        card = self.session.get(Card, card_id)
        if card is None:
            raise NotFoundError("Card not found")
        self._access_via(card.board_id, user_id, minimum, "Card not found")
        return card

    # === List operations ===

    def list_lists(self, board_ref: str, user_id: str) -> List[BoardList]:
        access = require_access(self.session, board_ref, user_id)
        query = (
            select(BoardList)
            .where(BoardList.board_id == access.board.id)
            .order_by(BoardList.position.asc(), BoardList.created_at.asc())
        )
        return list(self.session.scalars(query))

    def create_list(self, board_ref: str, user_id: str, title: Optional[str]) -> BoardList:
        access = require_access(self.session, board_ref, user_id, Role.ADMIN, forbidden=EDIT_FORBIDDEN)
        board_id = access.board.id
        board_list = BoardList(
            board_id=board_id,
            title=_text(title, "Title", MAX_LIST_TITLE),
            position=next_position(self.session, BoardList, "board_id", board_id),
        )
        self.session.add(board_list)
        self.session.commit()
        return board_list

    def rename_list(self, list_id: str, user_id: str, title: Optional[str]) -> BoardList:
        board_list = self._list(list_id, user_id, Role.ADMIN)
        board_list.title = _text(title, "Title", MAX_LIST_TITLE)
        self.session.commit()
        return board_list

    def delete_list(self, list_id: str, user_id: str) -> None:
        board_list = self._list(list_id, user_id, Role.ADMIN)
        with atomic(self.session):
            self.session.execute(delete(Card).where(Card.list_id == board_list.id))
            self.session.delete(board_list)
        logger.info("User %s deleted list %s", user_id, list_id)

    # === Card operations ===

    def list_cards(self, board_ref: str, user_id: str) -> List[Card]:
        access = require_access(self.session, board_ref, user_id)
        query = (
            select(Card)
            .where(Card.board_id == access.board.id)
            .order_by(Card.position.asc(), Card.created_at.asc())
        )
        return list(self.session.scalars(query))

    def get_card(self, card_id: str, user_id: str) -> Card:
        return self._card(card_id, user_id)

    def create_card(
        self,
        list_id: str,
        user_id: str,
        title: Optional[str],
        description: Optional[str] = None,
    ) -> Card:
        board_list = self._list(list_id, user_id, Role.ADMIN)
        card = Card(
            title=_text(title, "Title", MAX_CARD_TITLE),
            description=self._description(description),
            list_id=board_list.id,
            board_id=board_list.board_id,
            position=next_position(self.session, Card, "list_id", board_list.id),
            labels=[],
            checklist=[],
            comments=[],
        )
        self.session.add(card)
        self.session.commit()
        return card

    def update_card(self, card_id: str, user_id: str, **changes: Any) -> Card:
        """Replace the supplied fields; anything not supplied is left alone.

        Array fields (labels, checklist, comments) are replaced wholesale.
        """
        card = self._card(card_id, user_id, Role.ADMIN)
        if "title" in changes:
            card.title = _text(changes["title"], "Title", MAX_CARD_TITLE)
        if "description" in changes:
            card.description = self._description(changes["description"])
        if "labels" in changes:
            card.labels = [label for label in (changes["labels"] or []) if label]
        if "due_date" in changes:
            card.due_date = changes["due_date"]
        if "checklist" in changes:
            card.checklist = _checklist(changes["checklist"])
        if "comments" in changes:
            card.comments = _comments(changes["comments"])
        self.session.commit()
        return card

    def delete_card(self, card_id: str, user_id: str) -> None:
        card = self._card(card_id, user_id, Role.ADMIN)
        self.session.delete(card)
        self.session.commit()

    @staticmethod
    def _description(description: Optional[str]) -> str:
        description = description or ""
        if len(description) > MAX_DESCRIPTION:
            raise ValidationError(f"Description must be at most {MAX_DESCRIPTION} characters")
        return description

    # === Reordering ===

    def _board_for_reorder(self, board_ref: Optional[str], fallback_list_id: str, user_id: str) -> Access:
        if board_ref:
            return require_access(self.session, board_ref, user_id, Role.ADMIN, forbidden=EDIT_FORBIDDEN)
        board_list = self.session.get(BoardList, fallback_list_id) if fallback_list_id else None
        if board_list is None:
            raise NotFoundError("List not found")
        return self._access_via(board_list.board_id, user_id, Role.ADMIN, "Board not found")

    def _list_on_board(self, list_id: str, board_id: str) -> BoardList:
        board_list = self.session.get(BoardList, list_id) if list_id else None
        if board_list is None or board_list.board_id != board_id:
            raise NotFoundError("List not found")
        return board_list

    def reorder_lists(self, user_id: str, list_ids: Sequence[str], board_ref: Optional[str] = None) -> None:
        if not board_ref and not list_ids:
            return
        access = self._board_for_reorder(board_ref, list_ids[0] if list_ids else "", user_id)
        with atomic(self.session):
            reorder(
                self.session,
                BoardList,
                list_ids,
                scope_attr="board_id",
                scope_id=access.board.id,
                not_found="List not found",
            )

    def reorder_cards(
        self,
        user_id: str,
        source_list_id: str,
        dest_list_id: str,
        source_ids: Sequence[str],
        dest_ids: Sequence[str],
        board_ref: Optional[str] = None,
    ) -> None:
        access = self._board_for_reorder(board_ref, dest_list_id, user_id)
        board_id = access.board.id
        dest = self._list_on_board(dest_list_id, board_id)
        source = self._list_on_board(source_list_id, board_id)
        with atomic(self.session):
            move_cards(self.session, board_id, source.id, dest.id, source_ids, dest_ids)
        logger.debug(
            "User %s moved cards %s -> %s on board %s", user_id, source.id, dest.id, board_id
        )
