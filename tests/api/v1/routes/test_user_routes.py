from __future__ import annotations

import pytest

from app.core.errors import UserDeletionError
from app.services.users.user_service import UserService

pytestmark = pytest.mark.anyio


async def test_delete_account_requires_token(client):
    response = await client.delete("/api/v1/user")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "unauthorized"


async def test_delete_account_removes_decks_and_flashcards(client, auth_headers):
    deck = await client.post("/api/v1/decks", json={"name": "Biology"}, headers=auth_headers)
    assert deck.status_code == 201
    card = await client.post(
        "/api/v1/flashcards",
        json={"deck_id": deck.json()["id"], "front": "Q", "back": "A"},
        headers=auth_headers,
    )
    assert card.status_code == 201

    response = await client.delete("/api/v1/user", headers=auth_headers)

    assert response.status_code == 204
    assert response.content == b""

    # A fresh account again: only a newly provisioned default deck
    decks = (await client.get("/api/v1/decks", headers=auth_headers)).json()
    assert decks["pagination"]["total"] == 1
    assert decks["data"][0]["is_default"] is True
    assert decks["data"][0]["id"] != deck.json()["id"]
    flashcards = (await client.get("/api/v1/flashcards", headers=auth_headers)).json()
    assert flashcards["data"] == []


async def test_failed_account_deletion_is_reported(client, auth_headers, monkeypatch):
    async def _fail(self, user_id):
        raise UserDeletionError()

    monkeypatch.setattr(UserService, "delete_user", _fail)

    response = await client.delete("/api/v1/user", headers=auth_headers)

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "auth_error"
    assert response.json()["error"]["message"] == "Failed to delete user account"
