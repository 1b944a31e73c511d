# permissions.py — Authorization predicates for teams, boards and board content
#
# Every predicate is pure: it inspects rows the caller has already loaded
# (Team.members, Board.members, Board.team.members) and never touches the
# database. Routers load, then ask, then raise.

from typing import Optional

from errors import Forbidden
from models import Board, BoardMember, BoardRole, Team, TeamMember, TeamRole


# ============================================================
# TEAM
# ============================================================

def team_membership(team: Optional[Team], user_id: str) -> Optional[TeamMember]:
    if team is None:
        return None
    for member in team.members:
        if member.user_id == user_id and member.is_active:
            return member
    return None


def is_team_owner(team: Optional[Team], user_id: str) -> bool:
    return team is not None and team.owner_id == user_id


def is_team_admin(team: Optional[Team], user_id: str) -> bool:
    member = team_membership(team, user_id)
    return member is not None and member.role == TeamRole.ADMIN


def is_team_member(team: Optional[Team], user_id: str) -> bool:
    return is_team_owner(team, user_id) or team_membership(team, user_id) is not None


def has_team_role(team: Optional[Team], user_id: str, minimum: TeamRole) -> bool:
    """Role check by ordering: Member < Admin < Owner."""
    member = team_membership(team, user_id)
    return member is not None and member.role >= minimum


def can_manage_team(team: Optional[Team], user_id: str) -> bool:
    return is_team_owner(team, user_id) or is_team_admin(team, user_id)


def can_invite_to_team(team: Optional[Team], user_id: str) -> bool:
    return is_team_owner(team, user_id) or has_team_role(team, user_id, TeamRole.ADMIN)


def can_remove_self_from_team(team: Optional[Team], user_id: str) -> bool:
    return is_team_admin(team, user_id)


# ============================================================
# BOARD
# ============================================================

def board_membership(board: Board, user_id: str) -> Optional[BoardMember]:
    for member in board.members:
        if member.user_id == user_id and member.is_active:
            return member
    return None


def is_board_owner(board: Board, user_id: str) -> bool:
    return board.owner_id == user_id


def has_board_access(board: Board, user_id: str) -> bool:
    return is_board_owner(board, user_id) or board_membership(board, user_id) is not None


def is_board_visible(board: Board, user_id: str) -> bool:
    """Board reads: access, and for team boards also standing in the team."""
    if not has_board_access(board, user_id):
        return False
    if board.team_id is None or is_board_owner(board, user_id):
        return True
    return is_team_member(board.team, user_id)


def can_manage_board(board: Board, user_id: str) -> bool:
    # BoardRole.ADMIN grants nothing here; authority comes from the team.
    return (
        is_board_owner(board, user_id)
        or is_team_owner(board.team, user_id)
        or is_team_admin(board.team, user_id)
    )


def can_delete_list_or_card(board: Board, user_id: str) -> bool:
    # Requires a team board. A standalone board's owner cannot delete lists or cards.
    return is_team_owner(board.team, user_id) or is_team_admin(board.team, user_id)


def board_role(board: Board, user_id: str) -> Optional[BoardRole]:
    member = board_membership(board, user_id)
    if member is not None:
        return member.role
    if is_board_owner(board, user_id):
        return BoardRole.OWNER
    return None


def require(allowed: bool, detail: str = "Insufficient permissions") -> None:
    if not allowed:
        raise Forbidden(detail)
