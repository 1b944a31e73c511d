# routers/cards.py — Cards, moving cards between lists, card labels
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

import attachment_store
from auth import get_current_user, CurrentUser
from cascade import execute_plan, plan_card_deletion
from database import get_db_session
from errors import Conflict, InvalidOperation, NotFound
from models import Board, Card, CardLabel, CardPriority, Label
from ordering import apply_move, next_card_position
from projections import CardDetailOut, card_detail
from queries import load_card, load_list
import permissions

router = APIRouter(prefix="/api/v1/cards", tags=["Cards"])
logger = logging.getLogger("taskboard.cards")


# ============================================================
# SCHEMAS
# ============================================================

class CardCreate(BaseModel):
    list_id: str
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=10000)
    position: Optional[int] = Field(default=None, ge=0)
    priority: CardPriority = CardPriority.MEDIUM
    due_date: Optional[datetime] = None
    assigned_to_id: Optional[str] = None


class CardUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=10000)
    position: Optional[int] = Field(default=None, ge=0)
    priority: Optional[CardPriority] = None
    due_date: Optional[datetime] = None
    assigned_to_id: Optional[str] = None
    is_archived: Optional[bool] = None


class CardMove(BaseModel):
    list_id: str
    position: int = Field(..., ge=0)


# ============================================================
# HELPERS
# ============================================================

async def _accessible_card(db: AsyncSession, card_id: str, user_id: str, detail: bool = False) -> Card:
    card = await load_card(db, card_id, detail=detail)
    if card is None or not permissions.has_board_access(card.list.board, user_id):
        raise NotFound("Card not found or access denied")
    return card


def _check_assignee(board: Board, assignee_id: Optional[str]) -> None:
    if assignee_id and not permissions.has_board_access(board, assignee_id):
        raise InvalidOperation("Cards can only be assigned to board members")


async def _detail(db: AsyncSession, card_id: str) -> CardDetailOut:
    card = await load_card(db, card_id, detail=True)
    return card_detail(card)


# ============================================================
# CARDS
# ============================================================

@router.post("", response_model=CardDetailOut, status_code=201)
async def create_card(
    data: CardCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    board_list = await load_list(db, data.list_id)
    if board_list is None or not permissions.has_board_access(board_list.board, user.id):
        raise NotFound("List not found or access denied")
    _check_assignee(board_list.board, data.assigned_to_id)

    position = data.position
    if position is None:
        position = await next_card_position(db, board_list.id)
    card = Card(
        title=data.title.strip(),
        description=data.description,
        position=position,
        priority=data.priority,
        due_date=data.due_date,
        list_id=board_list.id,
        created_by_id=user.id,
        assigned_to_id=data.assigned_to_id,
    )
    db.add(card)
    await db.commit()
    return await _detail(db, card.id)


@router.get("/{card_id}", response_model=CardDetailOut)
async def get_card(
    card_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Card with comments (newest first), labels and attachments"""
    card = await _accessible_card(db, card_id, user.id, detail=True)
    return card_detail(card)


@router.put("/{card_id}", response_model=CardDetailOut)
async def update_card(
    card_id: str,
    data: CardUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    card = await _accessible_card(db, card_id, user.id)
    update_data = data.model_dump(exclude_unset=True)
    if "assigned_to_id" in update_data:
        _check_assignee(card.list.board, update_data["assigned_to_id"])

    nullable = {"description", "due_date", "assigned_to_id"}
    for field, value in update_data.items():
        if value is None and field not in nullable:
            continue
        setattr(card, field, value)
    await db.commit()
    return await _detail(db, card_id)


@router.put("/{card_id}/move", response_model=CardDetailOut)
async def move_card(
    card_id: str,
    data: CardMove,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Set the card's list and position. Other cards keep their positions."""
    card = await _accessible_card(db, card_id, user.id)
    target = await load_list(db, data.list_id)
    if target is None or not permissions.has_board_access(target.board, user.id):
        raise NotFound("Target list not found or access denied")

    source_list_id = card.list_id
    if apply_move(card, target.id, data.position):
        await db.commit()
        logger.info(f"Card {card_id} moved {source_list_id} → {target.id} @ {data.position}")
    return await _detail(db, card_id)


@router.delete("/{card_id}")
async def delete_card(
    card_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Team owners and admins only, even for the board's own owner"""
    card = await load_card(db, card_id)
    if card is None:
        raise NotFound("Card not found or access denied")
    board = card.list.board
    can_delete = permissions.can_delete_list_or_card(board, user.id)
    if not can_delete and not permissions.has_board_access(board, user.id):
        raise NotFound("Card not found or access denied")
    permissions.require(can_delete, "Only team owners and admins can delete cards")

    report = await execute_plan(db, plan_card_deletion(card_id))
    await db.commit()
    await attachment_store.discard(report.stored_files)
    logger.info(f"Card {card_id} deleted by {user.id}")
    return {"message": "Card deleted", "deleted": report.deleted}


# ============================================================
# LABELS ON CARDS
# ============================================================

async def _board_label(db: AsyncSession, card: Card, label_id: str) -> Label:
    result = await db.execute(
        select(Label).where(Label.id == label_id, Label.board_id == card.list.board_id)
    )
    label = result.scalar_one_or_none()
    if label is None:
        raise NotFound("Label not found")
    return label


@router.post("/{card_id}/labels/{label_id}", response_model=CardDetailOut)
async def add_card_label(
    card_id: str,
    label_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    card = await _accessible_card(db, card_id, user.id)
    label = await _board_label(db, card, label_id)
    existing = await db.execute(
        select(CardLabel).where(CardLabel.card_id == card.id, CardLabel.label_id == label.id)
    )
    if existing.scalar_one_or_none() is not None:
        raise Conflict("Label already applied to this card")
    db.add(CardLabel(card_id=card.id, label_id=label.id))
    await db.commit()
    return await _detail(db, card_id)


@router.delete("/{card_id}/labels/{label_id}", response_model=CardDetailOut)
async def remove_card_label(
    card_id: str,
    label_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    card = await _accessible_card(db, card_id, user.id)
    result = await db.execute(
        select(CardLabel).where(CardLabel.card_id == card.id, CardLabel.label_id == label_id)
    )
    link = result.scalar_one_or_none()
    if link is None:
        raise NotFound("Label not applied to this card")
    await db.delete(link)
    await db.commit()
    return await _detail(db, card_id)
