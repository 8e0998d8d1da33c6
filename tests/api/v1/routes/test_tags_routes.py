from __future__ import annotations

import pytest

from app.models.tag import Tag
from app.utils.enums import TagScope

pytestmark = pytest.mark.anyio


@pytest.fixture()
async def global_tag(db_session) -> Tag:
    tag = Tag(name="exam", scope=TagScope.global_)
    db_session.add(tag)
    await db_session.commit()
    return tag


async def _create_deck(client, auth_headers, name="History") -> int:
    response = await client.post("/api/v1/decks", json={"name": name}, headers=auth_headers)
    return int(response.json()["id"])


async def test_create_and_list_tags(client, auth_headers, global_tag):
    deck_id = await _create_deck(client, auth_headers)

    created = await client.post(
        "/api/v1/tags", json={"name": "  wars ", "deck_id": deck_id}, headers=auth_headers
    )
    listing = await client.get("/api/v1/tags", headers=auth_headers)

    assert created.status_code == 201
    assert created.json()["name"] == "wars"
    assert created.json()["scope"] == "deck"
    assert [tag["name"] for tag in listing.json()["data"]] == ["exam", "wars"]


async def test_duplicate_tag_in_deck_conflicts(client, auth_headers):
    deck_id = await _create_deck(client, auth_headers)
    body = {"name": "dates", "deck_id": deck_id}

    await client.post("/api/v1/tags", json=body, headers=auth_headers)
    response = await client.post("/api/v1/tags", json=body, headers=auth_headers)

    assert response.status_code == 409
    assert response.json()["error"]["details"]["constraint"] == "unique_tag_name_per_deck"


async def test_same_tag_name_allowed_in_another_deck(client, auth_headers):
    first = await _create_deck(client, auth_headers, "History")
    second = await _create_deck(client, auth_headers, "Geography")

    a = await client.post("/api/v1/tags", json={"name": "maps", "deck_id": first}, headers=auth_headers)
    b = await client.post("/api/v1/tags", json={"name": "maps", "deck_id": second}, headers=auth_headers)

    assert a.status_code == 201
    assert b.status_code == 201


async def test_global_tags_are_read_only(client, auth_headers, global_tag):
    rename = await client.patch(
        f"/api/v1/tags/{global_tag.id}", json={"name": "quiz"}, headers=auth_headers
    )
    delete = await client.delete(f"/api/v1/tags/{global_tag.id}", headers=auth_headers)

    assert rename.status_code == 403
    assert rename.json()["error"]["message"] == "Cannot update global tags"
    assert delete.status_code == 403
    assert delete.json()["error"]["message"] == "Cannot delete global tags"


async def test_tag_on_foreign_deck_is_invalid(client, auth_headers):
    response = await client.post(
        "/api/v1/tags", json={"name": "nope", "deck_id": 999999}, headers=auth_headers
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid_deck"


async def test_deleted_tag_disappears(client, auth_headers):
    deck_id = await _create_deck(client, auth_headers)
    tag_id = (
        await client.post("/api/v1/tags", json={"name": "temp", "deck_id": deck_id}, headers=auth_headers)
    ).json()["id"]

    deleted = await client.delete(f"/api/v1/tags/{tag_id}", headers=auth_headers)
    listing = await client.get("/api/v1/tags", headers=auth_headers)

    assert deleted.status_code == 204
    assert listing.json()["data"] == []
