"""Integer positions for lists within a board and cards within a list.

Appends take ``max(position) + 1`` in their scope. Reorders are authoritative
for the ids they name: those items get positions ``0..n-1`` in that order,
whatever was stored before. Items of the scope the request left out follow
them in their previous relative order, so no two items ever share a position.
Callers run reorders inside ``db.atomic`` so a failed batch leaves nothing
renumbered.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .db import Base, Card
from .errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=Base)


def next_position(session: Session, model: Type[M], scope_attr: str, scope_id: str) -> int:
    """Position for an item appended to the end of its scope."""
    scope_column = getattr(model, scope_attr)
    current = session.scalar(select(func.max(model.position)).where(scope_column == scope_id))
    return 0 if current is None else current + 1


def reorder(
    session: Session,
    model: Type[M],
    ordered_ids: Sequence[str],
    scope_attr: str,
    scope_id: str,
    assign: Optional[Dict[str, Any]] = None,
    not_found: str = "Item not found",
    fill: bool = True,
) -> List[M]:
    """Give the items in ``ordered_ids`` positions ``0..n-1``.

    Every item must currently satisfy ``item.<scope_attr> == scope_id``.
    ``assign`` holds extra column values written on every item, used to
    re-parent cards. All items are validated before any position changes.
    With ``fill`` the rest of the scope is appended after the named items.
    """
    if not ordered_ids:
        return []
    if len(set(ordered_ids)) != len(ordered_ids):
        raise ValidationError("Reorder request contains duplicate ids")

    found = session.scalars(select(model).where(model.id.in_(list(ordered_ids)))).all()
    by_id = {item.id: item for item in found}
    for item_id in ordered_ids:
        item = by_id.get(item_id)
        if item is None or getattr(item, scope_attr) != scope_id:
            raise NotFoundError(not_found)

    items = []
    for position, item_id in enumerate(ordered_ids):
        item = by_id[item_id]
        item.position = position
        for column, value in (assign or {}).items():
            setattr(item, column, value)
        items.append(item)
    session.flush()
    if fill:
        append_omitted(session, model, scope_attr, scope_id, ordered_ids)
    logger.debug("Reordered %d %s in %s=%s", len(items), model.__tablename__, scope_attr, scope_id)
    return items


def append_omitted(
    session: Session, model: Type[M], scope_attr: str, scope_id: str, named_ids: Sequence[str]
) -> int:
    """Place the scope's items missing from ``named_ids`` after the named ones."""
    scope_column = getattr(model, scope_attr)
    rest = session.scalars(
        select(model)
        .where(scope_column == scope_id, model.id.not_in(list(named_ids)))
        .order_by(model.position, model.created_at, model.id)
    ).all()
    for offset, item in enumerate(rest):
        item.position = len(named_ids) + offset
    if rest:
        session.flush()
        logger.debug("Appended %d omitted %s in %s=%s", len(rest), model.__tablename__, scope_attr, scope_id)
    return len(rest)


def move_cards(
    session: Session,
    board_id: str,
    source_list_id: str,
    dest_list_id: str,
    source_ids: Sequence[str],
    dest_ids: Sequence[str],
) -> None:
    """Apply a drag-and-drop of cards, possibly across two lists of one board.

    ``dest_ids`` is the destination list's new order; cards in it that came
    from another list are re-parented to the destination. When the lists
    differ, ``source_ids`` is the new order of what remains in the source.
    Cards of either list the request does not name keep their relative order
    after the named ones.
    """
    if source_list_id != dest_list_id and set(source_ids) & set(dest_ids):
        raise ValidationError("A card cannot be in both the source and destination list")

    reorder(
        session,
        Card,
        dest_ids,
        scope_attr="board_id",
        scope_id=board_id,
        assign={"list_id": dest_list_id, "board_id": board_id},
        not_found="Card not found",
        fill=False,
    )
    if dest_ids:
        append_omitted(session, Card, "list_id", dest_list_id, dest_ids)
    if source_list_id != dest_list_id:
        reorder(
            session,
            Card,
            source_ids,
            scope_attr="list_id",
            scope_id=source_list_id,
            not_found="Card not found",
        )
