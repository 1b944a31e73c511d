# ordering.py — Integer positions for lists within a board and cards within a list
#
# Positions are sort keys, not slots: gaps and ties are allowed and siblings
# are never renumbered. Ties break on created_at, then id, so every read
# returns the same order.

from typing import Iterable, List, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models import BoardList, Card, as_utc, utcnow

T = TypeVar("T", BoardList, Card)

LIST_ORDER = (BoardList.position.asc(), BoardList.created_at.asc(), BoardList.id.asc())
CARD_ORDER = (Card.position.asc(), Card.created_at.asc(), Card.id.asc())


def position_key(item):
    return (item.position, as_utc(item.created_at) or utcnow(), item.id)


def sort_by_position(items: Iterable[T]) -> List[T]:
    return sorted(items, key=position_key)


async def next_list_position(db: AsyncSession, board_id: str) -> int:
    """Append position for a new list: the number of lists already on the board"""
    result = await db.execute(
        select(func.count(BoardList.id)).where(BoardList.board_id == board_id)
    )
    return result.scalar() or 0


async def next_card_position(db: AsyncSession, list_id: str) -> int:
    result = await db.execute(
        select(func.count(Card.id)).where(Card.list_id == list_id)
    )
    return result.scalar() or 0


def apply_move(card: Card, target_list_id: str, position: int) -> bool:
    """Point the card at its new parent and position.

    Only the moved card changes. Returns False when the card is already at
    (target_list_id, position) and nothing needs writing.
    """
    if card.list_id == target_list_id and card.position == position:
        return False
    card.list_id = target_list_id
    card.position = position
    return True
