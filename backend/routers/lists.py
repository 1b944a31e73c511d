# routers/lists.py — Lists (columns) within a board
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

import attachment_store
from auth import get_current_user, CurrentUser
from cascade import execute_plan, plan_list_deletion
from database import get_db_session
from errors import NotFound
from models import BoardList, Card, CardLabel, utcnow
from ordering import next_list_position
from projections import ListOut, list_out
from queries import load_board, load_list
import permissions

router = APIRouter(prefix="/api/v1/lists", tags=["Lists"])
logger = logging.getLogger("taskboard.lists")


class ListCreate(BaseModel):
    board_id: str
    title: str = Field(..., min_length=1, max_length=100)
    position: Optional[int] = Field(default=None, ge=0)


class ListUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    position: Optional[int] = Field(default=None, ge=0)
    is_archived: Optional[bool] = None


async def _accessible_list(db: AsyncSession, list_id: str, user_id: str) -> BoardList:
    board_list = await load_list(db, list_id)
    if board_list is None or not permissions.has_board_access(board_list.board, user_id):
        raise NotFound("List not found or access denied")
    return board_list


async def _list_with_cards(db: AsyncSession, list_id: str) -> BoardList:
    stmt = (
        select(BoardList)
        .where(BoardList.id == list_id)
        .options(
            selectinload(BoardList.cards).options(
                selectinload(Card.card_labels).selectinload(CardLabel.label),
                selectinload(Card.comments),
                selectinload(Card.attachments),
                selectinload(Card.assigned_to),
            )
        )
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.scalar_one()


@router.post("", response_model=ListOut, status_code=201)
async def create_list(
    data: ListCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    board = await load_board(db, data.board_id)
    if board is None or not permissions.has_board_access(board, user.id):
        raise NotFound("Board not found or access denied")

    position = data.position
    if position is None:
        position = await next_list_position(db, board.id)
    board_list = BoardList(title=data.title.strip(), position=position, board_id=board.id)
    db.add(board_list)
    board.updated_at = utcnow()
    await db.commit()
    return list_out(await _list_with_cards(db, board_list.id))


@router.get("/{list_id}", response_model=ListOut)
async def get_list(
    list_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await _accessible_list(db, list_id, user.id)
    return list_out(await _list_with_cards(db, list_id))


@router.put("/{list_id}", response_model=ListOut)
async def update_list(
    list_id: str,
    data: ListUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Rename, archive or reposition. Sibling positions are left alone."""
    board_list = await _accessible_list(db, list_id, user.id)
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(board_list, field, value)
    await db.commit()
    return list_out(await _list_with_cards(db, list_id))


@router.delete("/{list_id}")
async def delete_list(
    list_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Team owners and admins only, even for the board's own owner"""
    board_list = await load_list(db, list_id)
    if board_list is None:
        raise NotFound("List not found or access denied")
    board = board_list.board
    can_delete = permissions.can_delete_list_or_card(board, user.id)
    if not can_delete and not permissions.has_board_access(board, user.id):
        raise NotFound("List not found or access denied")
    permissions.require(can_delete, "Only team owners and admins can delete lists")

    report = await execute_plan(db, plan_list_deletion(list_id))
    await db.commit()
    await attachment_store.discard(report.stored_files)
    logger.info(f"List {list_id} deleted by {user.id}")
    return {"message": "List deleted", "deleted": report.deleted}
