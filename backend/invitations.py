# invitations.py — Inviting people to teams and onboarding them
#
# Two paths for an invite request:
#   - the email belongs to an existing user: add a Member row directly and
#     send a notification
#   - otherwise: issue (or re-issue) a TeamInvitation with a random token and
#     send a registration link
# The invitation is committed before any email goes out. A failed send is
# logged and reported as email_sent=False; the invite itself still succeeds.

import os
import secrets
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from auth import AuthService, CurrentUser
from errors import InvalidOperation
from mailer import Mailer
from membership import TeamService, team_audience
from models import Team, TeamInvitation, TeamMember, TeamRole, User, utcnow
from read_cache import ReadCache, invalidate_user_views
import permissions

logger = logging.getLogger("taskboard.invitations")

INVITATION_EXPIRE_DAYS = int(os.getenv("INVITATION_EXPIRE_DAYS", "7"))
TOKEN_BYTES = 32
INVALID_INVITATION = "Invalid or expired invitation"


def generate_invitation_token() -> str:
    """256 random bits, URL-safe base64 without padding"""
    return secrets.token_urlsafe(TOKEN_BYTES)


@dataclass
class InviteResult:
    success: bool
    message: str
    requires_registration: bool = False
    email_sent: bool = False
    invitation: Optional[TeamInvitation] = None
    member_user_id: Optional[str] = None


class InvitationService:
    """Invite, accept and inspect team invitations"""

    @staticmethod
    async def invite(
        db: AsyncSession,
        cache: ReadCache,
        mailer: Mailer,
        team: Team,
        inviter: CurrentUser,
        email: str,
    ) -> InviteResult:
        permissions.require(
            permissions.can_invite_to_team(team, inviter.id),
            "Only team owners and admins can invite members",
        )
        email = AuthService.normalise_email(email)
        existing_user = await AuthService.get_user_by_email(email, db)
        if existing_user is not None:
            return await InvitationService._add_existing_user(db, cache, mailer, team, inviter, existing_user)
        return await InvitationService._issue_invitation(db, mailer, team, inviter, email)

    @staticmethod
    async def _add_existing_user(
        db: AsyncSession,
        cache: ReadCache,
        mailer: Mailer,
        team: Team,
        inviter: CurrentUser,
        user: User,
    ) -> InviteResult:
        if permissions.is_team_member(team, user.id):
            return InviteResult(
                success=False,
                message="User is already a member of this team",
                member_user_id=user.id,
            )

        audience = team_audience(team) | {inviter.id, user.id}
        await TeamService.add_member(db, team, user.id, TeamRole.MEMBER)
        team.updated_at = utcnow()
        await db.commit()
        invalidate_user_views(cache, audience)
        logger.info(f"Team {team.id}: {inviter.id} added existing user {user.id}")

        email_sent = await mailer.send_team_invitation(user.email, team.name, inviter.display_name)
        return InviteResult(
            success=True,
            message="User added to the team",
            email_sent=email_sent,
            member_user_id=user.id,
        )

    @staticmethod
    async def _issue_invitation(
        db: AsyncSession,
        mailer: Mailer,
        team: Team,
        inviter: CurrentUser,
        email: str,
    ) -> InviteResult:
        now = utcnow()
        expires_at = now + timedelta(days=INVITATION_EXPIRE_DAYS)
        token = generate_invitation_token()

        result = await db.execute(
            select(TeamInvitation).where(
                TeamInvitation.email == email,
                TeamInvitation.team_id == team.id,
            )
        )
        invitation = result.scalar_one_or_none()
        if invitation is None:
            invitation = TeamInvitation(
                email=email,
                team_id=team.id,
                invited_by_user_id=inviter.id,
                token=token,
                created_at=now,
                expires_at=expires_at,
            )
            db.add(invitation)
        else:
            # One row per (email, team): re-arm it, which also kills the old token
            invitation.token = token
            invitation.invited_by_user_id = inviter.id
            invitation.created_at = now
            invitation.expires_at = expires_at
            invitation.is_accepted = False
            invitation.accepted_at = None
        await db.commit()
        logger.info(f"Team {team.id}: invitation {invitation.id} issued by {inviter.id}")

        email_sent = await mailer.send_team_invitation_with_registration(
            email, team.name, inviter.display_name, token,
        )
        if not email_sent:
            logger.warning(f"Invitation {invitation.id} saved but the email was not delivered")
        return InviteResult(
            success=True,
            message="Invitation sent" if email_sent else "Invitation created; email delivery failed",
            requires_registration=True,
            email_sent=email_sent,
            invitation=invitation,
        )

    @staticmethod
    async def get_by_token(db: AsyncSession, token: str) -> Optional[TeamInvitation]:
        if not token:
            return None
        result = await db.execute(select(TeamInvitation).where(TeamInvitation.token == token))
        return result.scalar_one_or_none()

    @staticmethod
    async def validate_token(db: AsyncSession, token: str) -> bool:
        invitation = await InvitationService.get_by_token(db, token)
        return invitation is not None and invitation.is_valid()

    @staticmethod
    async def accept(
        db: AsyncSession,
        cache: ReadCache,
        token: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
    ) -> Tuple[User, str]:
        """Create the account, join the team, burn the token. One commit.

        Returns (user, team_id).
        """
        invitation = await InvitationService.get_by_token(db, token)
        if invitation is None or not invitation.is_valid():
            raise InvalidOperation(INVALID_INVITATION)

        user = await AuthService.create_user(
            db,
            email=invitation.email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            email_confirmed=True,
        )
        db.add(TeamMember(user_id=user.id, team_id=invitation.team_id, role=TeamRole.MEMBER, is_active=True))
        invitation.is_accepted = True
        invitation.accepted_at = utcnow()

        members = await db.execute(select(TeamMember.user_id).where(TeamMember.team_id == invitation.team_id))
        audience = set(members.scalars().all()) | {user.id}
        await db.commit()

        invalidate_user_views(cache, audience)
        logger.info(f"Invitation {invitation.id} accepted, user {user.id} joined team {invitation.team_id}")
        return user, invitation.team_id

    @staticmethod
    async def pending_for_email(db: AsyncSession, email: str) -> List[TeamInvitation]:
        result = await db.execute(
            select(TeamInvitation)
            .options(selectinload(TeamInvitation.team))
            .where(
                TeamInvitation.email == AuthService.normalise_email(email),
                TeamInvitation.is_accepted.is_(False),
            )
            .order_by(TeamInvitation.created_at.desc())
        )
        return [inv for inv in result.scalars().all() if inv.is_valid()]

    @staticmethod
    async def pending_for_team(db: AsyncSession, team_id: str) -> List[TeamInvitation]:
        result = await db.execute(
            select(TeamInvitation)
            .where(
                TeamInvitation.team_id == team_id,
                TeamInvitation.is_accepted.is_(False),
            )
            .order_by(TeamInvitation.created_at.desc())
        )
        return [inv for inv in result.scalars().all() if inv.is_valid()]
