# membership.py — Team lifecycle and team membership changes
#
# Every operation loads and checks first, then writes, then commits once.
# Cache entries are dropped only after the commit succeeds.

import logging
from typing import Optional, Set, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cascade import DeletionReport, execute_plan, plan_team_deletion
from errors import InvalidOperation, NotFound
from models import Board, BoardMember, Team, TeamMember, TeamRole, utcnow
from read_cache import ReadCache, invalidate_user_views
import permissions

logger = logging.getLogger("taskboard.teams")


def team_audience(team: Team) -> Set[str]:
    """Everyone whose team or board list may show this team: owner plus member rows"""
    users = {m.user_id for m in team.members}
    users.add(team.owner_id)
    return users


def owner_invariant_holds(team: Team) -> bool:
    """Exactly one Owner row, and it belongs to team.owner_id"""
    owners = [m for m in team.members if m.role == TeamRole.OWNER]
    return len(owners) == 1 and owners[0].user_id == team.owner_id


class TeamService:
    """Team creation, roles, removal with ownership transfer, and deletion"""

    @staticmethod
    async def create_team(
        db: AsyncSession,
        cache: ReadCache,
        owner_id: str,
        name: str,
        description: Optional[str] = None,
        commit: bool = True,
    ) -> Team:
        team = Team(name=name.strip(), description=description, owner_id=owner_id)
        db.add(team)
        await db.flush()
        db.add(TeamMember(user_id=owner_id, team_id=team.id, role=TeamRole.OWNER, is_active=True))
        if commit:
            await db.commit()
            invalidate_user_views(cache, [owner_id], boards=False)
        logger.info(f"Team {team.id} created by {owner_id}")
        return team

    @staticmethod
    async def add_member(
        db: AsyncSession,
        team: Team,
        user_id: str,
        role: TeamRole = TeamRole.MEMBER,
    ) -> Tuple[TeamMember, bool]:
        """Stage a membership row. Returns (member, created); no commit.

        An existing active row is returned untouched. An inactive one is
        reactivated with the requested role.
        """
        existing = next((m for m in team.members if m.user_id == user_id), None)
        if existing is not None:
            if existing.is_active:
                return existing, False
            existing.is_active = True
            existing.role = role
            existing.joined_at = utcnow()
            return existing, True
        member = TeamMember(user_id=user_id, team_id=team.id, role=role, is_active=True)
        db.add(member)
        return member, True

    @staticmethod
    async def change_member_role(
        db: AsyncSession,
        cache: ReadCache,
        team: Team,
        actor_id: str,
        member_user_id: str,
        new_role: TeamRole,
    ) -> TeamMember:
        permissions.require(
            permissions.can_manage_team(team, actor_id),
            "Only team owners and admins can change roles",
        )
        member = permissions.team_membership(team, member_user_id)
        if member is None:
            raise NotFound("Member not found")
        if new_role == TeamRole.OWNER or member.role == TeamRole.OWNER:
            raise InvalidOperation("Team ownership cannot be changed through a role update")

        member.role = new_role
        team.updated_at = utcnow()
        await db.commit()

        invalidate_user_views(cache, team_audience(team) | {actor_id}, boards=False)
        logger.info(f"Team {team.id}: {actor_id} set role of {member_user_id} to {new_role.name}")
        return member

    @staticmethod
    async def remove_member(
        db: AsyncSession,
        cache: ReadCache,
        team: Team,
        actor_id: str,
        member_user_id: str,
    ) -> bool:
        """Remove a member. Returns True when ownership moved to the actor.

        An admin who removes the owner becomes the owner.
        """
        permissions.require(
            permissions.can_manage_team(team, actor_id),
            "Only team owners and admins can remove members",
        )
        if member_user_id == actor_id and not permissions.can_remove_self_from_team(team, actor_id):
            raise InvalidOperation("Cannot remove yourself from the team")

        member = next((m for m in team.members if m.user_id == member_user_id), None)
        if member is None:
            raise NotFound("Member not found")

        audience = team_audience(team) | {actor_id}
        transferred = False
        if member_user_id == team.owner_id:
            actor_row = permissions.team_membership(team, actor_id)
            if actor_row is None or member_user_id == actor_id:
                raise InvalidOperation("The team owner cannot be removed")
            team.owner_id = actor_id
            actor_row.role = TeamRole.OWNER
            transferred = True

        await db.delete(member)
        team.updated_at = utcnow()
        await db.commit()

        invalidate_user_views(cache, audience)
        if transferred:
            logger.warning(f"Team {team.id}: ownership transferred from {member_user_id} to {actor_id}")
        logger.info(f"Team {team.id}: {actor_id} removed {member_user_id}")
        return transferred

    @staticmethod
    async def delete_team(
        db: AsyncSession,
        cache: ReadCache,
        team: Team,
        actor_id: str,
    ) -> DeletionReport:
        permissions.require(
            permissions.can_manage_team(team, actor_id),
            "Only team owners and admins can delete the team",
        )
        board_users = await db.execute(
            select(BoardMember.user_id)
            .join(Board, Board.id == BoardMember.board_id)
            .where(Board.team_id == team.id)
        )
        audience = team_audience(team) | set(board_users.scalars().all()) | {actor_id}
        report = await execute_plan(db, plan_team_deletion(team.id))
        await db.commit()

        invalidate_user_views(cache, audience)
        logger.warning(f"Team {team.id} deleted by {actor_id}")
        return report


def require_team_visibility(team: Optional[Team], user_id: str) -> Team:
    """Team reads are limited to the owner and members; others see 404."""
    if team is None or not permissions.is_team_member(team, user_id):
        raise NotFound("Team not found or access denied")
    return team
