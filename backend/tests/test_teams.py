# tests/test_teams.py — Teams, roles, removal and ownership transfer
import pytest
from httpx import AsyncClient

from membership import owner_invariant_holds
from read_cache import user_teams_key
from tests.conftest import get_auth_headers, reload_team


def _roles(members):
    return {m["user_id"]: m["role"] for m in members}


@pytest.mark.asyncio
async def test_create_team_makes_caller_owner(client: AsyncClient, db_session, owner_user):
    headers = get_auth_headers(owner_user)
    resp = await client.post("/api/v1/teams", json={"name": "  Design  "}, headers=headers)
    assert resp.status_code == 201
    data = resp.json()
    assert data["name"] == "Design"
    assert data["owner_id"] == owner_user.id
    assert data["role"] == "owner"
    assert _roles(data["members"]) == {owner_user.id: "owner"}
    assert owner_invariant_holds(await reload_team(db_session, data["id"]))

    listing = await client.get("/api/v1/teams", headers=headers)
    assert [t["id"] for t in listing.json()] == [data["id"]]


@pytest.mark.asyncio
async def test_team_hidden_from_outsiders(client: AsyncClient, team, outsider_user):
    resp = await client.get(f"/api/v1/teams/{team.id}", headers=get_auth_headers(outsider_user))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_team_list_is_cached_and_invalidated(client: AsyncClient, read_cache, team, owner_user, member_user):
    member_headers = get_auth_headers(member_user)
    first = await client.get("/api/v1/teams", headers=member_headers)
    assert [t["id"] for t in first.json()] == [team.id]
    assert user_teams_key(member_user.id) in read_cache

    resp = await client.delete(
        f"/api/v1/teams/{team.id}/members/{member_user.id}",
        headers=get_auth_headers(owner_user),
    )
    assert resp.status_code == 200
    assert user_teams_key(member_user.id) not in read_cache

    after = await client.get("/api/v1/teams", headers=member_headers)
    assert after.json() == []


@pytest.mark.asyncio
async def test_admin_removing_owner_takes_ownership(client: AsyncClient, db_session, team, owner_user, admin_user):
    headers = get_auth_headers(admin_user)
    resp = await client.delete(f"/api/v1/teams/{team.id}/members/{owner_user.id}", headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["ownership_transferred"] is True
    assert body["owner_id"] == admin_user.id

    detail = await client.get(f"/api/v1/teams/{team.id}", headers=headers)
    data = detail.json()
    assert data["owner_id"] == admin_user.id
    owners = [m for m in data["members"] if m["role"] == "owner"]
    assert [m["user_id"] for m in owners] == [admin_user.id]
    assert owner_user.id not in _roles(data["members"])

    stored = await reload_team(db_session, team.id)
    assert stored.owner_id == admin_user.id
    assert owner_invariant_holds(stored)


@pytest.mark.asyncio
async def test_owner_cannot_remove_self(client: AsyncClient, team, owner_user):
    resp = await client.delete(
        f"/api/v1/teams/{team.id}/members/{owner_user.id}",
        headers=get_auth_headers(owner_user),
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "TB-BIZ-001"


@pytest.mark.asyncio
async def test_admin_may_leave(client: AsyncClient, team, admin_user):
    resp = await client.delete(
        f"/api/v1/teams/{team.id}/members/{admin_user.id}",
        headers=get_auth_headers(admin_user),
    )
    assert resp.status_code == 200
    assert resp.json()["ownership_transferred"] is False


@pytest.mark.asyncio
async def test_member_cannot_remove_others(client: AsyncClient, team, member_user, admin_user):
    resp = await client.delete(
        f"/api/v1/teams/{team.id}/members/{admin_user.id}",
        headers=get_auth_headers(member_user),
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_remove_unknown_member_is_not_found(client: AsyncClient, team, owner_user, outsider_user):
    resp = await client.delete(
        f"/api/v1/teams/{team.id}/members/{outsider_user.id}",
        headers=get_auth_headers(owner_user),
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_role_changes(client: AsyncClient, db_session, team, owner_user, member_user):
    headers = get_auth_headers(owner_user)
    promoted = await client.put(
        f"/api/v1/teams/{team.id}/members/{member_user.id}/role",
        json={"role": "admin"},
        headers=headers,
    )
    assert promoted.status_code == 200
    assert promoted.json()["role"] == "admin"

    to_owner = await client.put(
        f"/api/v1/teams/{team.id}/members/{member_user.id}/role",
        json={"role": "owner"},
        headers=headers,
    )
    assert to_owner.status_code == 400

    demote_owner = await client.put(
        f"/api/v1/teams/{team.id}/members/{owner_user.id}/role",
        json={"role": "member"},
        headers=headers,
    )
    assert demote_owner.status_code == 400
    assert owner_invariant_holds(await reload_team(db_session, team.id))


@pytest.mark.asyncio
async def test_update_team_requires_management_rights(client: AsyncClient, team, member_user, admin_user):
    denied = await client.put(f"/api/v1/teams/{team.id}", json={"name": "Nope"}, headers=get_auth_headers(member_user))
    assert denied.status_code == 403

    ok = await client.put(f"/api/v1/teams/{team.id}", json={"name": "Renamed"}, headers=get_auth_headers(admin_user))
    assert ok.status_code == 200
    assert ok.json()["name"] == "Renamed"


@pytest.mark.asyncio
async def test_delete_team_removes_its_boards(client: AsyncClient, team, owner_user, member_user):
    owner_headers = get_auth_headers(owner_user)
    board = await client.post(
        "/api/v1/boards",
        json={"title": "Roadmap", "team_id": team.id, "add_all_team_members": True},
        headers=owner_headers,
    )
    assert board.status_code == 201
    board_id = board.json()["id"]

    denied = await client.delete(f"/api/v1/teams/{team.id}", headers=get_auth_headers(member_user))
    assert denied.status_code == 403

    resp = await client.delete(f"/api/v1/teams/{team.id}", headers=owner_headers)
    assert resp.status_code == 200
    assert resp.json()["deleted"]["boards"] == 1

    gone = await client.get(f"/api/v1/boards/{board_id}", headers=owner_headers)
    assert gone.status_code == 404
    boards = await client.get("/api/v1/boards", headers=get_auth_headers(member_user))
    assert boards.json() == []
