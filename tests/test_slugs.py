import re

import pytest

from taskboard.db import Board
from taskboard.slugs import slugify, unique_slug

URL_SAFE = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")


@pytest.mark.parametrize(
    "title,expected",
    [
        ("Sprint", "sprint"),
        ("My Board", "my-board"),
        ("  Hello,   World!  ", "hello-world"),
        ("snake_case_title", "snake-case-title"),
        ("--edge--case--", "edge-case"),
        ("Q3 / Q4 plans", "q3-q4-plans"),
        ("Café déjà vu", "caf-dj-vu"),
        ("!!!", ""),
    ],
)
def test_slugify(title, expected):
    assert slugify(title) == expected


@pytest.mark.parametrize("title", ["Sprint", "A  b__c", "Ünïcødé ✓ board", "__x__", "123"])
def test_slugs_are_url_safe(session, title):
    assert URL_SAFE.match(unique_slug(session, title))


def test_unique_slug_appends_counter(session):
    session.add_all(
        [
            Board(title="My Board", slug="my-board", background="#fff"),
            Board(title="My Board", slug="my-board-1", background="#fff"),
        ]
    )
    session.commit()

    assert unique_slug(session, "My Board") == "my-board-2"
    assert unique_slug(session, "Other") == "other"


def test_unique_slug_ignores_own_board(session):
    board = Board(title="Plans", slug="plans", background="#fff")
    session.add(board)
    session.commit()

    assert unique_slug(session, "Plans", board.id) == "plans"
    assert unique_slug(session, "Plans") == "plans-1"


def test_empty_slug_falls_back(session):
    assert unique_slug(session, "???") == "board"


def test_id_shaped_title_gets_suffix(session):
    title = "123e4567-e89b-42d3-a456-426614174000"
    assert unique_slug(session, title) == f"{title}-1"
