# routers/boards.py — Boards and board membership
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

import attachment_store
from auth import get_current_user, CurrentUser
from cascade import execute_plan, plan_board_deletion
from database import get_db_session
from errors import Conflict, InvalidOperation, NotFound
from models import Board, BoardMember, BoardRole, User, utcnow
from projections import (
    BoardDetailOut, BoardSummaryOut, MemberOut,
    board_detail, board_summary, member_out,
)
from queries import boards_for_user, load_board, load_team
from read_cache import ReadCache, get_read_cache, invalidate_user_views, user_boards_key
import permissions

router = APIRouter(prefix="/api/v1/boards", tags=["Boards"])
logger = logging.getLogger("taskboard.boards")

DEFAULT_BOARD_COLOR = "#0079bf"


# ============================================================
# SCHEMAS
# ============================================================

class BoardCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    color: str = Field(default=DEFAULT_BOARD_COLOR, max_length=20)
    team_id: Optional[str] = None
    add_all_team_members: bool = False
    member_user_ids: List[str] = Field(default_factory=list)


class BoardUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    color: Optional[str] = Field(default=None, max_length=20)
    is_archived: Optional[bool] = None


class BoardMemberAdd(BaseModel):
    user_id: str
    role: str = "member"


# ============================================================
# HELPERS
# ============================================================

def _board_audience(board: Board) -> set:
    """Owner, board members and, for team boards, the whole team"""
    users = {board.owner_id}
    users.update(m.user_id for m in board.members)
    if board.team is not None:
        users.add(board.team.owner_id)
        users.update(m.user_id for m in board.team.members)
    return users


async def _visible_board(db: AsyncSession, board_id: str, user_id: str, detail: bool = False) -> Board:
    board = await load_board(db, board_id, detail=detail)
    if board is None or not permissions.is_board_visible(board, user_id):
        raise NotFound("Board not found or access denied")
    return board


async def _managed_board(db: AsyncSession, board_id: str, user_id: str, action: str) -> Board:
    """Team owners and admins may manage team boards they are not members of."""
    board = await load_board(db, board_id)
    if board is None:
        raise NotFound("Board not found or access denied")
    can_manage = permissions.can_manage_board(board, user_id)
    if not can_manage and not permissions.is_board_visible(board, user_id):
        raise NotFound("Board not found or access denied")
    permissions.require(can_manage, f"Only the board owner or team admins can {action}")
    return board


def _parse_board_role(value: str) -> BoardRole:
    try:
        role = BoardRole[value.strip().upper()]
    except KeyError:
        raise InvalidOperation(f"Unknown role: {value}")
    if role == BoardRole.OWNER:
        raise InvalidOperation("A board has a single owner")
    return role


# ============================================================
# BOARDS
# ============================================================

@router.get("", response_model=List[BoardSummaryOut])
async def list_boards(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    cache: ReadCache = Depends(get_read_cache),
):
    """Boards visible to the caller, without lists or cards"""
    key = user_boards_key(user.id)
    cached = cache.get(key)
    if cached is not None:
        return cached

    boards = await boards_for_user(db, user.id)
    views = [board_summary(b, user.id) for b in boards if permissions.is_board_visible(b, user.id)]
    cache.set(key, views)
    return views


@router.post("", response_model=BoardDetailOut, status_code=201)
async def create_board(
    data: BoardCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    cache: ReadCache = Depends(get_read_cache),
):
    team = None
    if data.team_id:
        team = await load_team(db, data.team_id)
        if team is None or not permissions.is_team_member(team, user.id):
            raise NotFound("Team not found or access denied")

    board = Board(
        title=data.title.strip(),
        description=data.description,
        color=data.color or DEFAULT_BOARD_COLOR,
        owner_id=user.id,
        team_id=team.id if team else None,
    )
    db.add(board)
    await db.flush()
    db.add(BoardMember(user_id=user.id, board_id=board.id, role=BoardRole.OWNER))

    if team is not None and data.add_all_team_members:
        member_ids = [m.user_id for m in team.members if m.is_active]
    else:
        member_ids = list(data.member_user_ids)
    added = set()
    for member_id in member_ids:
        if member_id == user.id or member_id in added:
            continue
        exists = await db.execute(select(User.id).where(User.id == member_id))
        if exists.scalar_one_or_none() is None:
            raise NotFound(f"User {member_id} not found")
        db.add(BoardMember(user_id=member_id, board_id=board.id, role=BoardRole.MEMBER))
        added.add(member_id)
    await db.commit()

    audience = {user.id} | added
    if team is not None:
        audience.update(m.user_id for m in team.members)
    invalidate_user_views(cache, audience, teams=False)
    logger.info(f"Board {board.id} created by {user.id} with {len(added)} member(s)")

    board = await load_board(db, board.id, detail=True)
    return board_detail(board, user.id)


@router.get("/{board_id}", response_model=BoardDetailOut)
async def get_board(
    board_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Full board: lists and cards in position order, labels and members"""
    board = await _visible_board(db, board_id, user.id, detail=True)
    return board_detail(board, user.id)


@router.put("/{board_id}", response_model=BoardDetailOut)
async def update_board(
    board_id: str,
    data: BoardUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    cache: ReadCache = Depends(get_read_cache),
):
    board = await _managed_board(db, board_id, user.id, "edit the board")

    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None and field != "description":
            continue
        setattr(board, field, value)
    board.updated_at = utcnow()
    audience = _board_audience(board)
    await db.commit()

    invalidate_user_views(cache, audience, teams=False)
    board = await load_board(db, board_id, detail=True)
    return board_detail(board, user.id)


@router.delete("/{board_id}")
async def delete_board(
    board_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    cache: ReadCache = Depends(get_read_cache),
):
    """Delete the board with its lists, cards, labels and memberships"""
    board = await _managed_board(db, board_id, user.id, "delete the board")

    audience = _board_audience(board)
    report = await execute_plan(db, plan_board_deletion(board.id))
    await db.commit()

    invalidate_user_views(cache, audience, teams=False)
    await attachment_store.discard(report.stored_files)
    logger.warning(f"Board {board_id} deleted by {user.id}")
    return {"message": "Board deleted", "deleted": report.deleted}


# ============================================================
# MEMBERS
# ============================================================

@router.get("/{board_id}/members", response_model=List[MemberOut])
async def list_board_members(
    board_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    board = await _visible_board(db, board_id, user.id)
    members = sorted((m for m in board.members if m.is_active), key=lambda m: -int(m.role))
    return [member_out(m) for m in members]


@router.post("/{board_id}/members", response_model=MemberOut, status_code=201)
async def add_board_member(
    board_id: str,
    data: BoardMemberAdd,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    cache: ReadCache = Depends(get_read_cache),
):
    board = await _managed_board(db, board_id, user.id, "add members")
    role = _parse_board_role(data.role)

    result = await db.execute(select(User).where(User.id == data.user_id))
    if result.scalar_one_or_none() is None:
        raise NotFound("User not found")

    existing = next((m for m in board.members if m.user_id == data.user_id), None)
    if existing is not None and existing.is_active:
        raise Conflict("User is already a member of this board")
    if existing is not None:
        existing.is_active = True
        existing.role = role
        existing.joined_at = utcnow()
        member_id = existing.id
    else:
        member = BoardMember(user_id=data.user_id, board_id=board.id, role=role)
        db.add(member)
        await db.flush()
        member_id = member.id
    audience = _board_audience(board) | {data.user_id, user.id}
    await db.commit()

    invalidate_user_views(cache, audience, teams=False)
    board = await load_board(db, board_id)
    return member_out(next(m for m in board.members if m.id == member_id))


@router.delete("/{board_id}/members/{member_user_id}")
async def remove_board_member(
    board_id: str,
    member_user_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    cache: ReadCache = Depends(get_read_cache),
):
    board = await _managed_board(db, board_id, user.id, "remove members")
    if member_user_id == user.id and not permissions.is_team_admin(board.team, user.id):
        raise InvalidOperation("Cannot remove yourself from the board")

    member = next((m for m in board.members if m.user_id == member_user_id), None)
    if member is None:
        raise NotFound("Member not found")

    audience = _board_audience(board) | {member_user_id, user.id}
    await db.delete(member)
    await db.commit()

    invalidate_user_views(cache, audience, teams=False)
    return {"message": "Member removed"}


@router.get("/{board_id}/team-members", response_model=List[MemberOut])
async def list_addable_team_members(
    board_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Members of the board's team who are not on the board yet"""
    board = await _visible_board(db, board_id, user.id)
    if board.team_id is None:
        return []
    team = await load_team(db, board.team_id)
    on_board = {m.user_id for m in board.members if m.is_active}
    return [member_out(m) for m in team.members if m.is_active and m.user_id not in on_board]


@router.post("/repair-owner-memberships")
async def repair_owner_memberships(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    cache: ReadCache = Depends(get_read_cache),
):
    """Give every board the caller owns its missing Owner membership row"""
    result = await db.execute(select(Board).where(Board.owner_id == user.id))
    boards = result.scalars().all()
    rows = await db.execute(
        select(BoardMember.board_id).where(
            BoardMember.user_id == user.id,
            BoardMember.board_id.in_([b.id for b in boards]),
        )
    )
    has_row = set(rows.scalars().all())

    repaired = 0
    for board in boards:
        if board.id not in has_row:
            db.add(BoardMember(user_id=user.id, board_id=board.id, role=BoardRole.OWNER))
            repaired += 1
    await db.commit()

    if repaired:
        invalidate_user_views(cache, [user.id], teams=False)
        logger.info(f"Repaired {repaired} owner membership(s) for {user.id}")
    return {"repaired": repaired, "boards": len(boards)}
