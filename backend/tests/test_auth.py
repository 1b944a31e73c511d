# tests/test_auth.py — Registration, login and password reset
import re

import pytest
from fastapi import BackgroundTasks
from httpx import AsyncClient

from auth import AuthService
from routers.auth import ForgotPasswordRequest, forgot_password
from tests.conftest import TEST_PASSWORD, get_auth_headers


def _reset_token(body: str) -> str:
    return re.search(r"token=([A-Za-z0-9._-]+)", body).group(1)


@pytest.mark.asyncio
async def test_register_returns_session(client: AsyncClient):
    resp = await client.post(
        "/api/v1/auth/register",
        json={"email": "New.User@Taskboard.dev", "password": "Str0ngPassword", "first_name": "New"},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["email"] == "new.user@taskboard.dev"

    me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert me.status_code == 200
    assert me.json()["first_name"] == "New"


@pytest.mark.asyncio
async def test_register_rejects_weak_password(client: AsyncClient):
    resp = await client.post(
        "/api/v1/auth/register",
        json={"email": "weak@taskboard.dev", "password": "short"},
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_register_duplicate_email_conflicts(client: AsyncClient, member_user):
    resp = await client.post(
        "/api/v1/auth/register",
        json={"email": member_user.email, "password": "Str0ngPassword"},
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "TB-RES-002"


@pytest.mark.asyncio
async def test_register_team_creates_owner_membership(client: AsyncClient):
    resp = await client.post(
        "/api/v1/auth/register-team",
        json={"email": "founder@taskboard.dev", "password": "Str0ngPassword", "team_name": "Founders"},
    )
    assert resp.status_code == 200
    data = resp.json()
    headers = {"Authorization": f"Bearer {data['access_token']}"}

    members = await client.get(f"/api/v1/teams/{data['team_id']}/members", headers=headers)
    assert members.status_code == 200
    assert [(m["user_id"], m["role"]) for m in members.json()] == [(data["user"]["id"], "owner")]


@pytest.mark.asyncio
async def test_login_success_and_failure(client: AsyncClient, member_user):
    ok = await client.post("/api/v1/auth/login", json={"email": member_user.email, "password": TEST_PASSWORD})
    assert ok.status_code == 200
    assert ok.json()["user"]["id"] == member_user.id

    bad = await client.post("/api/v1/auth/login", json={"email": member_user.email, "password": "Wrong12345"})
    assert bad.status_code == 401
    assert bad.json()["code"] == "TB-AUTH-001"


@pytest.mark.asyncio
async def test_me_requires_token(client: AsyncClient):
    resp = await client.get("/api/v1/auth/me")
    assert resp.status_code == 401

    resp = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_forgot_password_does_not_reveal_accounts(client: AsyncClient, mailer, member_user):
    known = await client.post("/api/v1/auth/forgot-password", json={"email": member_user.email})
    unknown = await client.post("/api/v1/auth/forgot-password", json={"email": "nobody@taskboard.dev"})
    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()
    assert len(mailer.sent_to(member_user.email)) == 1
    assert mailer.sent_to("nobody@taskboard.dev") == []


@pytest.mark.asyncio
async def test_forgot_password_queues_email_instead_of_waiting(db_session, mailer, member_user):
    known_tasks = BackgroundTasks()
    known = await forgot_password(
        ForgotPasswordRequest(email=member_user.email), known_tasks, db=db_session, mailer=mailer,
    )
    assert mailer.sent == []
    assert len(known_tasks.tasks) == 1

    unknown_tasks = BackgroundTasks()
    unknown = await forgot_password(
        ForgotPasswordRequest(email="nobody@taskboard.dev"), unknown_tasks, db=db_session, mailer=mailer,
    )
    assert unknown == known
    assert unknown_tasks.tasks == []

    await known_tasks()
    assert len(mailer.sent_to(member_user.email)) == 1


@pytest.mark.asyncio
async def test_reset_password_token_is_single_use(client: AsyncClient, mailer, member_user):
    await client.post("/api/v1/auth/forgot-password", json={"email": member_user.email})
    token = _reset_token(mailer.sent_to(member_user.email)[0][2])

    payload = {"email": member_user.email, "token": token, "new_password": "BrandNew123"}
    first = await client.post("/api/v1/auth/reset-password", json=payload)
    assert first.status_code == 200

    login = await client.post("/api/v1/auth/login", json={"email": member_user.email, "password": "BrandNew123"})
    assert login.status_code == 200

    payload["new_password"] = "Another123"
    second = await client.post("/api/v1/auth/reset-password", json=payload)
    assert second.status_code == 400


@pytest.mark.asyncio
async def test_reset_token_bound_to_user(member_user, outsider_user):
    token = AuthService.create_password_reset_token(member_user)
    assert AuthService.verify_password_reset_token(token, member_user)
    assert not AuthService.verify_password_reset_token(token, outsider_user)
    assert not AuthService.verify_password_reset_token(token, None)
    # a session token is not a reset token
    session = AuthService.create_session_token(member_user)
    assert not AuthService.verify_password_reset_token(session, member_user)


@pytest.mark.asyncio
async def test_change_password(client: AsyncClient, member_user):
    headers = get_auth_headers(member_user)
    wrong = await client.post(
        "/api/v1/auth/change-password",
        json={"current_password": "Nope12345", "new_password": "Changed123"},
        headers=headers,
    )
    assert wrong.status_code == 400

    ok = await client.post(
        "/api/v1/auth/change-password",
        json={"current_password": TEST_PASSWORD, "new_password": "Changed123"},
        headers=headers,
    )
    assert ok.status_code == 200
