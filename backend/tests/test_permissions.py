# tests/test_permissions.py — Authorization predicates on in-memory rows
import permissions
from models import Board, BoardMember, BoardRole, Team, TeamMember, TeamRole


def _team(owner_id="owner", admins=(), members=(), inactive=()):
    team = Team(id="team-1", name="Team", owner_id=owner_id)
    rows = [TeamMember(user_id=owner_id, team_id=team.id, role=TeamRole.OWNER, is_active=True)]
    rows += [TeamMember(user_id=u, team_id=team.id, role=TeamRole.ADMIN, is_active=True) for u in admins]
    rows += [TeamMember(user_id=u, team_id=team.id, role=TeamRole.MEMBER, is_active=True) for u in members]
    rows += [TeamMember(user_id=u, team_id=team.id, role=TeamRole.ADMIN, is_active=False) for u in inactive]
    team.members = rows
    return team


def _board(owner_id="owner", team=None, members=()):
    board = Board(id="board-1", title="Board", owner_id=owner_id, team_id=team.id if team else None)
    board.team = team
    board.members = [
        BoardMember(user_id=u, board_id=board.id, role=BoardRole.MEMBER, is_active=True) for u in members
    ]
    return board


def test_team_roles():
    team = _team(admins=["alice"], members=["bob"])
    assert permissions.is_team_owner(team, "owner")
    assert permissions.is_team_admin(team, "alice")
    assert not permissions.is_team_admin(team, "owner")
    assert permissions.is_team_member(team, "bob")
    assert not permissions.is_team_member(team, "carol")
    assert permissions.has_team_role(team, "owner", TeamRole.ADMIN)
    assert not permissions.has_team_role(team, "bob", TeamRole.ADMIN)


def test_team_management_rights():
    team = _team(admins=["alice"], members=["bob"])
    assert permissions.can_manage_team(team, "owner")
    assert permissions.can_manage_team(team, "alice")
    assert not permissions.can_manage_team(team, "bob")
    assert permissions.can_invite_to_team(team, "alice")
    assert not permissions.can_invite_to_team(team, "bob")


def test_only_admins_may_remove_themselves():
    team = _team(admins=["alice"], members=["bob"])
    assert permissions.can_remove_self_from_team(team, "alice")
    assert not permissions.can_remove_self_from_team(team, "owner")
    assert not permissions.can_remove_self_from_team(team, "bob")


def test_inactive_rows_grant_nothing():
    team = _team(inactive=["dave"])
    assert not permissions.is_team_member(team, "dave")
    assert not permissions.can_manage_team(team, "dave")


def test_board_owner_has_access_without_membership_row():
    board = _board(owner_id="owner")
    assert permissions.has_board_access(board, "owner")
    assert permissions.board_role(board, "owner") == BoardRole.OWNER
    assert not permissions.has_board_access(board, "bob")
    assert permissions.board_role(board, "bob") is None


def test_team_membership_alone_does_not_grant_board_access():
    team = _team(members=["bob"])
    board = _board(owner_id="owner", team=team)
    assert not permissions.has_board_access(board, "bob")
    assert not permissions.is_board_visible(board, "bob")


def test_board_visibility_requires_team_standing():
    team = _team(members=["bob"])
    board = _board(owner_id="owner", team=team, members=["bob", "eve"])
    assert permissions.is_board_visible(board, "bob")
    # eve holds a board row but left the team
    assert permissions.has_board_access(board, "eve")
    assert not permissions.is_board_visible(board, "eve")


def test_team_admins_manage_team_boards():
    team = _team(admins=["alice"], members=["bob"])
    board = _board(owner_id="bob", team=team, members=["bob"])
    assert permissions.can_manage_board(board, "bob")
    assert permissions.can_manage_board(board, "alice")
    assert permissions.can_manage_board(board, "owner")


def test_board_admin_role_grants_no_management():
    team = _team(members=["bob", "carl"])
    board = _board(owner_id="bob", team=team)
    board.members = [BoardMember(user_id="carl", board_id=board.id, role=BoardRole.ADMIN, is_active=True)]
    assert not permissions.can_manage_board(board, "carl")


def test_list_and_card_deletion_needs_team_authority():
    team = _team(admins=["alice"], members=["bob"])
    team_board = _board(owner_id="bob", team=team, members=["bob"])
    assert permissions.can_delete_list_or_card(team_board, "alice")
    assert permissions.can_delete_list_or_card(team_board, "owner")
    assert not permissions.can_delete_list_or_card(team_board, "bob")

    standalone = _board(owner_id="solo")
    assert not permissions.can_delete_list_or_card(standalone, "solo")
