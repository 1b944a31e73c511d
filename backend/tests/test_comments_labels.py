# tests/test_comments_labels.py — Card comments and board labels
import pytest
from httpx import AsyncClient

from tests.conftest import get_auth_headers


async def _shared_card(client, owner, collaborator):
    headers = get_auth_headers(owner)
    board = (await client.post(
        "/api/v1/boards", json={"title": "Shared", "member_user_ids": [collaborator.id]}, headers=headers,
    )).json()
    board_list = (await client.post("/api/v1/lists", json={"board_id": board["id"], "title": "Todo"}, headers=headers)).json()
    card = (await client.post("/api/v1/cards", json={"list_id": board_list["id"], "title": "Card"}, headers=headers)).json()
    return board, card


@pytest.mark.asyncio
async def test_comments_newest_first(client: AsyncClient, owner_user, outsider_user):
    _, card = await _shared_card(client, owner_user, outsider_user)
    for author, text in ((owner_user, "first"), (outsider_user, "second")):
        resp = await client.post(
            "/api/v1/comments", json={"card_id": card["id"], "content": text}, headers=get_auth_headers(author),
        )
        assert resp.status_code == 201

    detail = await client.get(f"/api/v1/cards/{card['id']}", headers=get_auth_headers(owner_user))
    data = detail.json()
    assert [c["content"] for c in data["comments"]] == ["second", "first"]
    assert data["comment_count"] == 2


@pytest.mark.asyncio
async def test_only_author_edits_comment(client: AsyncClient, owner_user, outsider_user):
    _, card = await _shared_card(client, owner_user, outsider_user)
    comment = (await client.post(
        "/api/v1/comments", json={"card_id": card["id"], "content": "mine"}, headers=get_auth_headers(outsider_user),
    )).json()

    other = await client.put(
        f"/api/v1/comments/{comment['id']}", json={"content": "hijack"}, headers=get_auth_headers(owner_user),
    )
    assert other.status_code == 404

    own = await client.put(
        f"/api/v1/comments/{comment['id']}", json={"content": "edited"}, headers=get_auth_headers(outsider_user),
    )
    assert own.status_code == 200
    assert own.json()["content"] == "edited"
    assert own.json()["updated_at"] is not None

    deleted = await client.delete(f"/api/v1/comments/{comment['id']}", headers=get_auth_headers(outsider_user))
    assert deleted.status_code == 200


@pytest.mark.asyncio
async def test_comment_needs_board_access(client: AsyncClient, owner_user, outsider_user, member_user):
    _, card = await _shared_card(client, owner_user, outsider_user)
    resp = await client.post(
        "/api/v1/comments", json={"card_id": card["id"], "content": "hi"}, headers=get_auth_headers(member_user),
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_labels_on_cards(client: AsyncClient, owner_user, outsider_user):
    board, card = await _shared_card(client, owner_user, outsider_user)
    headers = get_auth_headers(owner_user)
    label = await client.post("/api/v1/labels", json={"board_id": board["id"], "name": "bug"}, headers=headers)
    assert label.status_code == 201
    label_id = label.json()["id"]

    applied = await client.post(f"/api/v1/cards/{card['id']}/labels/{label_id}", headers=headers)
    assert applied.status_code == 200
    assert [lb["name"] for lb in applied.json()["labels"]] == ["bug"]

    dup = await client.post(f"/api/v1/cards/{card['id']}/labels/{label_id}", headers=headers)
    assert dup.status_code == 409

    listed = await client.get(f"/api/v1/labels/board/{board['id']}", headers=get_auth_headers(outsider_user))
    assert [lb["id"] for lb in listed.json()] == [label_id]

    deleted = await client.delete(f"/api/v1/labels/{label_id}", headers=headers)
    assert deleted.status_code == 200
    detail = await client.get(f"/api/v1/cards/{card['id']}", headers=headers)
    assert detail.json()["labels"] == []


@pytest.mark.asyncio
async def test_label_from_another_board_is_rejected(client: AsyncClient, owner_user, outsider_user):
    _, card = await _shared_card(client, owner_user, outsider_user)
    other_board = (await client.post("/api/v1/boards", json={"title": "Other"}, headers=get_auth_headers(owner_user))).json()
    label = (await client.post(
        "/api/v1/labels", json={"board_id": other_board["id"], "name": "x"}, headers=get_auth_headers(owner_user),
    )).json()
    resp = await client.post(f"/api/v1/cards/{card['id']}/labels/{label['id']}", headers=get_auth_headers(owner_user))
    assert resp.status_code == 404
