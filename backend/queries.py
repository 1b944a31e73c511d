# queries.py — Loaders that fetch a resource together with the rows its
# permission checks and projections walk. Async sessions cannot lazy-load,
# so anything a predicate or projection touches is selected up front.

from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models import (
    Board, BoardList, BoardMember, Card, CardComment, CardLabel, Team, TeamMember,
)


# ============================================================
# LOADER OPTIONS
# ============================================================

def _team_options():
    return (
        selectinload(Team.owner),
        selectinload(Team.members).selectinload(TeamMember.user),
    )


def _board_access_options():
    return (
        selectinload(Board.members).selectinload(BoardMember.user),
        selectinload(Board.team).selectinload(Team.members),
    )


def _card_options():
    return (
        selectinload(Card.card_labels).selectinload(CardLabel.label),
        selectinload(Card.comments).selectinload(CardComment.user),
        selectinload(Card.attachments),
        selectinload(Card.assigned_to),
        selectinload(Card.created_by),
    )


# ============================================================
# TEAMS
# ============================================================

async def load_team(db: AsyncSession, team_id: str) -> Optional[Team]:
    stmt = (
        select(Team)
        .where(Team.id == team_id)
        .options(*_team_options())
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def teams_for_user(db: AsyncSession, user_id: str) -> List[Team]:
    member_of = select(TeamMember.team_id).where(
        TeamMember.user_id == user_id,
        TeamMember.is_active.is_(True),
    )
    stmt = (
        select(Team)
        .where(or_(Team.owner_id == user_id, Team.id.in_(member_of)))
        .options(*_team_options())
        .order_by(Team.updated_at.desc(), Team.id)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


# ============================================================
# BOARDS
# ============================================================

async def load_board(db: AsyncSession, board_id: str, detail: bool = False) -> Optional[Board]:
    options = list(_board_access_options())
    if detail:
        options.append(
            selectinload(Board.lists).selectinload(BoardList.cards).options(*_card_options())
        )
        options.append(selectinload(Board.labels))
    stmt = (
        select(Board)
        .where(Board.id == board_id)
        .options(*options)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def boards_for_user(db: AsyncSession, user_id: str) -> List[Board]:
    """Boards the user owns or holds a membership row on. Team visibility is filtered by the caller."""
    member_of = select(BoardMember.board_id).where(
        BoardMember.user_id == user_id,
        BoardMember.is_active.is_(True),
    )
    stmt = (
        select(Board)
        .where(or_(Board.owner_id == user_id, Board.id.in_(member_of)))
        .options(*_board_access_options())
        .order_by(Board.updated_at.desc(), Board.id)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


# ============================================================
# LISTS & CARDS
# ============================================================

async def load_list(db: AsyncSession, list_id: str) -> Optional[BoardList]:
    stmt = (
        select(BoardList)
        .where(BoardList.id == list_id)
        .options(selectinload(BoardList.board).options(*_board_access_options()))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def load_card(db: AsyncSession, card_id: str, detail: bool = False) -> Optional[Card]:
    options = [
        selectinload(Card.list).selectinload(BoardList.board).options(*_board_access_options()),
    ]
    if detail:
        options.extend(_card_options())
    stmt = (
        select(Card)
        .where(Card.id == card_id)
        .options(*options)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()
