# tests/test_ordering.py — Position keys and card moves
from datetime import datetime, timedelta, timezone

from models import Card
from ordering import apply_move, sort_by_position

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _card(card_id, position, created_offset=0, list_id="L1"):
    return Card(
        id=card_id, title=card_id, position=position, list_id=list_id,
        created_at=T0 + timedelta(seconds=created_offset),
    )


def test_sort_by_position_with_gaps():
    cards = [_card("c", 10), _card("a", 0), _card("b", 3)]
    assert [c.id for c in sort_by_position(cards)] == ["a", "b", "c"]


def test_ties_break_on_created_at_then_id():
    cards = [_card("z", 1, created_offset=5), _card("y", 1, created_offset=5), _card("x", 1, created_offset=9)]
    assert [c.id for c in sort_by_position(cards)] == ["y", "z", "x"]


def test_naive_timestamps_sort_with_aware_ones():
    naive = _card("n", 2)
    naive.created_at = datetime(2023, 1, 1)
    cards = [_card("a", 2), naive]
    assert [c.id for c in sort_by_position(cards)] == ["n", "a"]


def test_apply_move_changes_only_the_card():
    moved = _card("m", 0)
    sibling = _card("s", 1)
    assert apply_move(moved, "L2", 5) is True
    assert (moved.list_id, moved.position) == ("L2", 5)
    assert (sibling.list_id, sibling.position) == ("L1", 1)


def test_apply_move_to_same_place_is_a_no_op():
    card = _card("m", 2)
    assert apply_move(card, "L1", 2) is False
    assert (card.list_id, card.position) == ("L1", 2)
