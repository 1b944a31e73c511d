# routers/attachments.py — Upload, download and delete card attachments
import logging

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

import attachment_store
from auth import get_current_user, CurrentUser
from database import get_db_session
from errors import NotFound
from models import CardAttachment
from projections import AttachmentOut, attachment_out
from queries import load_card
import permissions

router = APIRouter(prefix="/api/v1/attachments", tags=["Attachments"])
logger = logging.getLogger("taskboard.attachments")


async def _accessible_attachment(db: AsyncSession, attachment_id: str, user_id: str):
    result = await db.execute(select(CardAttachment).where(CardAttachment.id == attachment_id))
    attachment = result.scalar_one_or_none()
    if attachment is None:
        raise NotFound("Attachment not found or access denied")
    card = await load_card(db, attachment.card_id)
    if card is None or not permissions.has_board_access(card.list.board, user_id):
        raise NotFound("Attachment not found or access denied")
    return attachment, card


@router.post("/card/{card_id}", response_model=AttachmentOut, status_code=201)
async def upload_attachment(
    card_id: str,
    file: UploadFile = File(...),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    card = await load_card(db, card_id)
    if card is None or not permissions.has_board_access(card.list.board, user.id):
        raise NotFound("Card not found or access denied")

    data = await file.read(attachment_store.MAX_ATTACHMENT_BYTES + 1)
    extension = attachment_store.validate_upload(file.filename, file.content_type, data)
    stored_name = await attachment_store.store(data, extension)

    attachment = CardAttachment(
        file_name=file.filename,
        stored_name=stored_name,
        content_type=file.content_type.split(";")[0].strip().lower(),
        file_size=len(data),
        card_id=card.id,
        uploaded_by_id=user.id,
    )
    db.add(attachment)
    try:
        await db.commit()
    except Exception:
        await attachment_store.discard([stored_name])
        raise
    logger.info(f"Attachment {attachment.id} ({len(data)} bytes) added to card {card_id} by {user.id}")
    return attachment_out(attachment)


@router.get("/{attachment_id}")
async def download_attachment(
    attachment_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    attachment, _ = await _accessible_attachment(db, attachment_id, user.id)
    path = attachment_store.path_for(attachment.stored_name)
    if not path.is_file():
        raise NotFound("Attachment file is missing")
    return FileResponse(path=str(path), media_type=attachment.content_type, filename=attachment.file_name)


@router.delete("/{attachment_id}")
async def delete_attachment(
    attachment_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """The uploader or a board manager may delete"""
    attachment, card = await _accessible_attachment(db, attachment_id, user.id)
    permissions.require(
        attachment.uploaded_by_id == user.id or permissions.can_manage_board(card.list.board, user.id),
        "Only the uploader or a board manager can delete this attachment",
    )
    stored_name = attachment.stored_name
    await db.delete(attachment)
    await db.commit()
    await attachment_store.discard([stored_name])
    return {"message": "Attachment deleted"}
