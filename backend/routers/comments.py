# routers/comments.py — Card comments
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from auth import get_current_user, CurrentUser
from database import get_db_session
from errors import NotFound
from models import CardComment, utcnow
from projections import CommentOut, comment_out
from queries import load_card
import permissions

router = APIRouter(prefix="/api/v1/comments", tags=["Comments"])


class CommentCreate(BaseModel):
    card_id: str
    content: str = Field(..., min_length=1, max_length=5000)


class CommentUpdate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


async def _own_comment(db: AsyncSession, comment_id: str, user_id: str) -> CardComment:
    # Other people's comments are reported as missing
    result = await db.execute(
        select(CardComment)
        .where(CardComment.id == comment_id, CardComment.user_id == user_id)
        .options(selectinload(CardComment.user))
    )
    comment = result.scalar_one_or_none()
    if comment is None:
        raise NotFound("Comment not found or access denied")
    return comment


@router.post("", response_model=CommentOut, status_code=201)
async def create_comment(
    data: CommentCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    card = await load_card(db, data.card_id)
    if card is None or not permissions.has_board_access(card.list.board, user.id):
        raise NotFound("Card not found or access denied")

    comment = CardComment(content=data.content.strip(), card_id=card.id, user_id=user.id)
    db.add(comment)
    await db.commit()
    return comment_out(await _own_comment(db, comment.id, user.id))


@router.put("/{comment_id}", response_model=CommentOut)
async def update_comment(
    comment_id: str,
    data: CommentUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    comment = await _own_comment(db, comment_id, user.id)
    comment.content = data.content.strip()
    comment.updated_at = utcnow()
    await db.commit()
    return comment_out(comment)


@router.delete("/{comment_id}")
async def delete_comment(
    comment_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    comment = await _own_comment(db, comment_id, user.id)
    await db.delete(comment)
    await db.commit()
    return {"message": "Comment deleted"}
