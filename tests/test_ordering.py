import pytest
from sqlalchemy import select

from taskboard.db import Board, BoardList, Card, atomic
from taskboard.errors import NotFoundError, ValidationError
from taskboard.ordering import move_cards, next_position, reorder
from taskboard.utils import new_uuid


@pytest.fixture
def board(session):
    board = Board(title="Board", slug="board", background="#fff")
    session.add(board)
    session.commit()
    return board


def make_list(session, board, title, position):
    board_list = BoardList(board_id=board.id, title=title, position=position)
    session.add(board_list)
    session.commit()
    return board_list


def make_cards(session, board_list, count, prefix="card"):
    cards = [
        Card(board_id=board_list.board_id, list_id=board_list.id, title=f"{prefix}-{i}", position=i)
        for i in range(count)
    ]
    session.add_all(cards)
    session.commit()
    return cards


def positions(session, model, **scope):
    rows = session.scalars(select(model).filter_by(**scope).order_by(model.position)).all()
    return [(row.id, row.position) for row in rows]


def test_next_position_appends(session, board):
    assert next_position(session, BoardList, "board_id", board.id) == 0
    make_list(session, board, "a", 0)
    make_list(session, board, "b", 4)
    assert next_position(session, BoardList, "board_id", board.id) == 5


def test_reorder_assigns_dense_positions(session, board):
    lists = [make_list(session, board, t, p) for t, p in (("a", 0), ("b", 3), ("c", 7))]
    wanted = [lists[2].id, lists[0].id, lists[1].id]

    with atomic(session):
        reorder(session, BoardList, wanted, scope_attr="board_id", scope_id=board.id)

    assert positions(session, BoardList, board_id=board.id) == [(wanted[i], i) for i in range(3)]


def test_reorder_empty_is_noop(session, board):
    make_list(session, board, "a", 5)
    assert reorder(session, BoardList, [], scope_attr="board_id", scope_id=board.id) == []
    assert [p for _, p in positions(session, BoardList, board_id=board.id)] == [5]


def test_reorder_rejects_duplicates(session, board):
    a = make_list(session, board, "a", 0)
    with pytest.raises(ValidationError):
        reorder(session, BoardList, [a.id, a.id], scope_attr="board_id", scope_id=board.id)


def test_failed_batch_changes_nothing(session, board):
    a = make_list(session, board, "a", 0)
    b = make_list(session, board, "b", 1)

    with pytest.raises(NotFoundError):
        with atomic(session):
            reorder(session, BoardList, [b.id, a.id, new_uuid()], scope_attr="board_id", scope_id=board.id)

    assert positions(session, BoardList, board_id=board.id) == [(a.id, 0), (b.id, 1)]


def test_reorder_refuses_items_of_another_scope(session, board):
    other = Board(title="Other", slug="other", background="#fff")
    session.add(other)
    session.commit()
    mine = make_list(session, board, "mine", 0)
    theirs = make_list(session, other, "theirs", 0)

    with pytest.raises(NotFoundError):
        with atomic(session):
            reorder(session, BoardList, [theirs.id, mine.id], scope_attr="board_id", scope_id=board.id)
    assert session.get(BoardList, theirs.id).board_id == other.id


def test_move_card_across_lists(session, board):
    source = make_list(session, board, "source", 0)
    dest = make_list(session, board, "dest", 1)
    a_cards = make_cards(session, source, 4, "a")
    b_cards = make_cards(session, dest, 3, "b")
    moved = a_cards[1]

    remaining = [c.id for c in a_cards if c is not moved]
    dest_order = [b_cards[0].id, moved.id, b_cards[1].id, b_cards[2].id]
    with atomic(session):
        move_cards(session, board.id, source.id, dest.id, remaining, dest_order)

    assert positions(session, Card, list_id=source.id) == [(cid, i) for i, cid in enumerate(remaining)]
    assert positions(session, Card, list_id=dest.id) == [(cid, i) for i, cid in enumerate(dest_order)]
    card = session.get(Card, moved.id)
    assert card.list_id == dest.id
    assert card.board_id == dest.board_id


def test_move_within_one_list_applies_single_order(session, board):
    only = make_list(session, board, "only", 0)
    cards = make_cards(session, only, 3)
    order = [cards[2].id, cards[0].id, cards[1].id]

    with atomic(session):
        # The source order is ignored when both lists are the same.
        move_cards(session, board.id, only.id, only.id, [cards[0].id], order)

    assert positions(session, Card, list_id=only.id) == [(cid, i) for i, cid in enumerate(order)]


def test_move_rejects_card_in_both_lists(session, board):
    source = make_list(session, board, "source", 0)
    dest = make_list(session, board, "dest", 1)
    card = make_cards(session, source, 1)[0]

    with pytest.raises(ValidationError):
        move_cards(session, board.id, source.id, dest.id, [card.id], [card.id])


def test_move_rejects_stale_source_order(session, board):
    source = make_list(session, board, "source", 0)
    dest = make_list(session, board, "dest", 1)
    moved, stays = make_cards(session, source, 2)
    stranger = make_cards(session, dest, 1, "d")[0]

    with pytest.raises(NotFoundError):
        with atomic(session):
            # ``stranger`` never lived in the source list.
            move_cards(session, board.id, source.id, dest.id, [stays.id, stranger.id], [moved.id])

    assert session.get(Card, moved.id).list_id == source.id


def test_partial_reorder_keeps_the_rest_after_named_items(session, board):
    a, b, c = (make_list(session, board, t, p) for t, p in (("a", 0), ("b", 1), ("c", 2)))

    with atomic(session):
        reorder(session, BoardList, [c.id], scope_attr="board_id", scope_id=board.id)

    assert positions(session, BoardList, board_id=board.id) == [(c.id, 0), (a.id, 1), (b.id, 2)]


def test_partial_move_never_ties_positions(session, board):
    source = make_list(session, board, "source", 0)
    dest = make_list(session, board, "dest", 1)
    x, left = make_cards(session, source, 2, "x")
    y, z = make_cards(session, dest, 2, "y")

    with atomic(session):
        move_cards(session, board.id, source.id, dest.id, [], [x.id])

    assert positions(session, Card, list_id=dest.id) == [(x.id, 0), (y.id, 1), (z.id, 2)]
    assert positions(session, Card, list_id=source.id) == [(left.id, 1)]


def test_partial_move_within_one_list(session, board):
    only = make_list(session, board, "only", 0)
    first, second, third = make_cards(session, only, 3)

    with atomic(session):
        move_cards(session, board.id, only.id, only.id, [], [third.id])

    assert positions(session, Card, list_id=only.id) == [(third.id, 0), (first.id, 1), (second.id, 2)]
