# routers/labels.py — Board labels
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, CurrentUser
from database import get_db_session
from errors import NotFound
from models import CardLabel, Label
from projections import LabelOut, label_out
from queries import load_board
import permissions

router = APIRouter(prefix="/api/v1/labels", tags=["Labels"])

DEFAULT_LABEL_COLOR = "#61bd4f"


class LabelCreate(BaseModel):
    board_id: str
    name: str = Field(..., min_length=1, max_length=50)
    color: str = Field(default=DEFAULT_LABEL_COLOR, max_length=20)


class LabelUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    color: Optional[str] = Field(default=None, max_length=20)


async def _require_board_access(db: AsyncSession, board_id: str, user_id: str):
    board = await load_board(db, board_id)
    if board is None or not permissions.has_board_access(board, user_id):
        raise NotFound("Board not found or access denied")
    return board


async def _accessible_label(db: AsyncSession, label_id: str, user_id: str) -> Label:
    result = await db.execute(select(Label).where(Label.id == label_id))
    label = result.scalar_one_or_none()
    if label is None:
        raise NotFound("Label not found or access denied")
    await _require_board_access(db, label.board_id, user_id)
    return label


@router.get("/board/{board_id}", response_model=List[LabelOut])
async def list_labels(
    board_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await _require_board_access(db, board_id, user.id)
    result = await db.execute(select(Label).where(Label.board_id == board_id).order_by(Label.name))
    return [label_out(lb) for lb in result.scalars().all()]


@router.post("", response_model=LabelOut, status_code=201)
async def create_label(
    data: LabelCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    board = await _require_board_access(db, data.board_id, user.id)
    label = Label(name=data.name.strip(), color=data.color, board_id=board.id)
    db.add(label)
    await db.commit()
    return label_out(label)


@router.put("/{label_id}", response_model=LabelOut)
async def update_label(
    label_id: str,
    data: LabelUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    label = await _accessible_label(db, label_id, user.id)
    if data.name is not None:
        label.name = data.name.strip()
    if data.color is not None:
        label.color = data.color
    await db.commit()
    return label_out(label)


@router.delete("/{label_id}")
async def delete_label(
    label_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Also strips the label from every card carrying it"""
    label = await _accessible_label(db, label_id, user.id)
    await db.execute(delete(CardLabel).where(CardLabel.label_id == label.id))
    await db.delete(label)
    await db.commit()
    return {"message": "Label deleted"}
