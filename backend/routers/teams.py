# routers/teams.py — Teams, team members and invitations issued by a team
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, CurrentUser
from database import get_db_session
from errors import InvalidOperation, NotFound
from invitations import InvitationService
from mailer import Mailer, get_mailer
from membership import TeamService, require_team_visibility
from models import TeamRole, utcnow
from projections import (
    InvitationOut, MemberOut, TeamDetailOut, TeamSummaryOut,
    invitation_out, member_out, team_detail, team_summary,
)
from queries import load_team, teams_for_user
from read_cache import ReadCache, get_read_cache, invalidate_user_views, user_teams_key
import permissions

router = APIRouter(prefix="/api/v1/teams", tags=["Teams"])
logger = logging.getLogger("taskboard.teams")


# ============================================================
# SCHEMAS
# ============================================================

class TeamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)


class TeamUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)


class InviteRequest(BaseModel):
    email: EmailStr


class InviteResponse(BaseModel):
    success: bool
    message: str
    requires_registration: bool = False
    email_sent: bool = False
    invitation: Optional[InvitationOut] = None
    member_user_id: Optional[str] = None


class RoleUpdate(BaseModel):
    role: str = Field(..., description="member or admin")


def _parse_role(value: str) -> TeamRole:
    try:
        return TeamRole[value.strip().upper()]
    except KeyError:
        raise InvalidOperation(f"Unknown role: {value}")


async def _visible_team(db: AsyncSession, team_id: str, user_id: str):
    return require_team_visibility(await load_team(db, team_id), user_id)


# ============================================================
# TEAMS
# ============================================================

@router.get("", response_model=List[TeamSummaryOut])
async def list_teams(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    cache: ReadCache = Depends(get_read_cache),
):
    """Teams the caller owns or belongs to, most recently updated first"""
    key = user_teams_key(user.id)
    cached = cache.get(key)
    if cached is not None:
        return cached

    teams = await teams_for_user(db, user.id)
    views = [team_summary(t, user.id) for t in teams]
    cache.set(key, views)
    return views


@router.post("", response_model=TeamDetailOut, status_code=201)
async def create_team(
    data: TeamCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    cache: ReadCache = Depends(get_read_cache),
):
    team = await TeamService.create_team(db, cache, user.id, data.name, data.description)
    team = await load_team(db, team.id)
    return team_detail(team, user.id)


@router.get("/{team_id}", response_model=TeamDetailOut)
async def get_team(
    team_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    team = await _visible_team(db, team_id, user.id)
    return team_detail(team, user.id)


@router.put("/{team_id}", response_model=TeamDetailOut)
async def update_team(
    team_id: str,
    data: TeamUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    cache: ReadCache = Depends(get_read_cache),
):
    team = await _visible_team(db, team_id, user.id)
    permissions.require(permissions.can_manage_team(team, user.id), "Only team owners and admins can edit the team")

    update_data = data.model_dump(exclude_unset=True)
    if "name" in update_data and update_data["name"]:
        team.name = update_data["name"].strip()
    if "description" in update_data:
        team.description = update_data["description"]
    team.updated_at = utcnow()
    audience = [m.user_id for m in team.members] + [team.owner_id]
    await db.commit()

    invalidate_user_views(cache, audience)
    team = await load_team(db, team_id)
    return team_detail(team, user.id)


@router.delete("/{team_id}")
async def delete_team(
    team_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    cache: ReadCache = Depends(get_read_cache),
):
    """Delete the team with all of its boards, lists, cards and invitations"""
    team = await _visible_team(db, team_id, user.id)
    report = await TeamService.delete_team(db, cache, team, user.id)
    return {"message": "Team deleted", "deleted": report.deleted}


# ============================================================
# MEMBERS
# ============================================================

@router.get("/{team_id}/members", response_model=List[MemberOut])
async def list_team_members(
    team_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    team = await _visible_team(db, team_id, user.id)
    members = sorted(team.members, key=lambda m: -int(m.role))
    return [member_out(m) for m in members]


@router.post("/{team_id}/invite", response_model=InviteResponse)
async def invite_to_team(
    team_id: str,
    data: InviteRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    cache: ReadCache = Depends(get_read_cache),
    mailer: Mailer = Depends(get_mailer),
):
    """Add an existing user directly, or send a registration invitation"""
    team = await _visible_team(db, team_id, user.id)
    result = await InvitationService.invite(db, cache, mailer, team, user, data.email)
    return InviteResponse(
        success=result.success,
        message=result.message,
        requires_registration=result.requires_registration,
        email_sent=result.email_sent,
        invitation=invitation_out(result.invitation, team.name) if result.invitation else None,
        member_user_id=result.member_user_id,
    )


@router.put("/{team_id}/members/{member_user_id}/role", response_model=MemberOut)
async def update_member_role(
    team_id: str,
    member_user_id: str,
    data: RoleUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    cache: ReadCache = Depends(get_read_cache),
):
    team = await _visible_team(db, team_id, user.id)
    role = _parse_role(data.role)
    await TeamService.change_member_role(db, cache, team, user.id, member_user_id, role)
    team = await load_team(db, team_id)
    member = permissions.team_membership(team, member_user_id)
    if member is None:
        raise NotFound("Member not found")
    return member_out(member)


@router.delete("/{team_id}/members/{member_user_id}")
async def remove_team_member(
    team_id: str,
    member_user_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    cache: ReadCache = Depends(get_read_cache),
):
    team = await _visible_team(db, team_id, user.id)
    transferred = await TeamService.remove_member(db, cache, team, user.id, member_user_id)
    return {
        "message": "Member removed",
        "ownership_transferred": transferred,
        "owner_id": team.owner_id,
    }


@router.get("/{team_id}/invitations", response_model=List[InvitationOut])
async def list_team_invitations(
    team_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Pending, unexpired invitations issued by this team"""
    team = await _visible_team(db, team_id, user.id)
    permissions.require(permissions.can_manage_team(team, user.id), "Only team owners and admins can view invitations")
    invitations = await InvitationService.pending_for_team(db, team.id)
    return [invitation_out(inv, team.name) for inv in invitations]
