# routers/invitations.py — Invitation links: validate, accept, list my pending ones
import logging
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from auth import CurrentUser, TokenResponse, build_token_response, get_current_user
from database import get_db_session
from invitations import InvitationService
from projections import InvitationOut, invitation_out
from read_cache import ReadCache, get_read_cache

router = APIRouter(prefix="/api/v1/invitations", tags=["Invitations"])
logger = logging.getLogger("taskboard.invitations")


class InvitationAccept(BaseModel):
    token: str = Field(..., min_length=1)
    password: str
    first_name: str = Field(default="", max_length=100)
    last_name: str = Field(default="", max_length=100)


class InvitationAcceptResponse(TokenResponse):
    team_id: str


@router.get("/validate/{token}")
async def validate_invitation(
    token: str,
    db: AsyncSession = Depends(get_db_session),
):
    """Public: lets the registration page check a link before showing the form"""
    return {"is_valid": await InvitationService.validate_token(db, token)}


@router.post("/accept", response_model=InvitationAcceptResponse)
async def accept_invitation(
    data: InvitationAccept,
    db: AsyncSession = Depends(get_db_session),
    cache: ReadCache = Depends(get_read_cache),
):
    user, team_id = await InvitationService.accept(
        db, cache, data.token, data.password, data.first_name, data.last_name,
    )
    token = build_token_response(user)
    return InvitationAcceptResponse(**token.model_dump(), team_id=team_id)


@router.get("/pending", response_model=List[InvitationOut])
async def my_pending_invitations(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    invitations = await InvitationService.pending_for_email(db, user.email)
    return [invitation_out(inv, inv.team.name if inv.team else None) for inv in invitations]
