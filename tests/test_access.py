import pytest

from taskboard.access import Role, check_access, derive_role, require_access, resolve_board
from taskboard.db import Board, BoardMember
from taskboard.errors import ForbiddenError, NotFoundError
from taskboard.utils import new_uuid


@pytest.fixture
def users(identity):
    owner = identity.register("Owner", "owner@example.com", "secret123")[1]
    admin = identity.register("Admin", "admin@example.com", "secret123")[1]
    member = identity.register("Member", "member@example.com", "secret123")[1]
    stranger = identity.register("Stranger", "stranger@example.com", "secret123")[1]
    return owner, admin, member, stranger


@pytest.fixture
def board(session, users):
    owner, admin, member, _ = users
    board = Board(title="Roadmap", slug="roadmap", background="#fff", user_id=owner.id)
    session.add(board)
    session.flush()
    session.add_all(
        [
            BoardMember(board_id=board.id, user_id=admin.id, role="admin"),
            BoardMember(board_id=board.id, user_id=member.id, role="member"),
        ]
    )
    session.commit()
    return board


def test_role_order():
    assert Role.OWNER.at_least(Role.ADMIN)
    assert Role.ADMIN.at_least(Role.ADMIN)
    assert Role.ADMIN.at_least(Role.MEMBER)
    assert not Role.MEMBER.at_least(Role.ADMIN)
    assert not Role.ADMIN.at_least(Role.OWNER)
    assert sorted(Role, key=lambda r: r.rank) == [Role.MEMBER, Role.ADMIN, Role.OWNER]


def test_derive_role_is_pure():
    board = Board(id="b1", title="x", user_id="u1")
    membership = BoardMember(board_id="b1", user_id="u2", role="admin")

    assert derive_role(board, "u1", None) is Role.OWNER
    assert derive_role(board, "u2", membership) is Role.ADMIN
    assert derive_role(board, "u3", None) is None
    # A row for some other board grants nothing here.
    assert derive_role(board, "u2", BoardMember(board_id="b2", user_id="u2", role="admin")) is None


def test_resolve_board_by_id_or_slug(session, board):
    assert resolve_board(session, board.id) is board
    assert resolve_board(session, "roadmap") is board
    assert resolve_board(session, "missing") is None
    assert resolve_board(session, new_uuid()) is None
    assert resolve_board(session, "") is None


def test_check_access_roles(session, board, users):
    owner, admin, member, stranger = users

    assert check_access(session, board.id, owner.id).role is Role.OWNER
    assert check_access(session, "roadmap", admin.id).role is Role.ADMIN
    assert check_access(session, board.id, member.id).role is Role.MEMBER
    assert check_access(session, board.id, stranger.id) is None
    assert check_access(session, new_uuid(), stranger.id) is None


def test_orphaned_board_is_not_ownable(session, users):
    _, admin, _, stranger = users
    orphan = Board(title="Legacy", slug="legacy", background="#000", user_id=None)
    session.add(orphan)
    session.flush()
    session.add(BoardMember(board_id=orphan.id, user_id=admin.id, role="admin"))
    session.commit()

    assert check_access(session, orphan.id, stranger.id) is None
    assert check_access(session, orphan.id, admin.id).role is Role.ADMIN


def test_roles_are_read_fresh(session, board, users):
    _, _, member, _ = users
    assert check_access(session, board.id, member.id).role is Role.MEMBER

    row = session.query(BoardMember).filter_by(board_id=board.id, user_id=member.id).one()
    row.role = "admin"
    session.commit()
    assert check_access(session, board.id, member.id).role is Role.ADMIN

    session.delete(row)
    session.commit()
    assert check_access(session, board.id, member.id) is None


def test_require_access(session, board, users):
    owner, admin, member, stranger = users

    assert require_access(session, board.id, admin.id, Role.ADMIN).role is Role.ADMIN
    assert require_access(session, board.id, owner.id, Role.OWNER).role is Role.OWNER
    with pytest.raises(ForbiddenError):
        require_access(session, board.id, member.id, Role.ADMIN)
    with pytest.raises(ForbiddenError):
        require_access(session, board.id, admin.id, Role.OWNER)
    with pytest.raises(NotFoundError):
        require_access(session, board.id, stranger.id)
    with pytest.raises(NotFoundError):
        require_access(session, "no-such-board", owner.id)
