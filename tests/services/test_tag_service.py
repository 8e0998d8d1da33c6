from __future__ import annotations

import pytest
from sqlalchemy import select

from app.core.errors import DuplicateTagError, GlobalTagOperationError
from app.models.tag import Tag
from app.services.tags.tag_service import TagService
from app.utils.enums import TagScope

pytestmark = pytest.mark.anyio


async def _seed_tags(db_session, user_id, deck, *names):
    tags = [Tag(name=name, scope=TagScope.deck, deck_id=deck.id, user_id=user_id) for name in names]
    db_session.add_all(tags)
    await db_session.commit()
    return tags


async def test_rename_to_existing_name_is_a_conflict(db_session, user_id, default_deck):
    _, tag = await _seed_tags(db_session, user_id, default_deck, "biology", "chemistry")

    with pytest.raises(DuplicateTagError) as exc_info:
        await TagService(db_session).update_tag(user_id, tag.id, "biology")

    assert exc_info.value.status_code == 409
    assert exc_info.value.details["deck_id"] == str(default_deck.id)


async def test_rename_losing_unique_race_is_a_conflict(db_session, user_id, default_deck, monkeypatch):
    _, tag = await _seed_tags(db_session, user_id, default_deck, "biology", "chemistry")

    # A concurrent rename took the name after the pre-check passed
    async def _never_taken(self, name, deck_id, exclude_id=None):
        return False

    monkeypatch.setattr(TagService, "_name_taken", _never_taken)

    with pytest.raises(DuplicateTagError) as exc_info:
        await TagService(db_session).update_tag(user_id, tag.id, "biology")

    assert exc_info.value.status_code == 409
    assert exc_info.value.details == {
        "field": "name",
        "value": "biology",
        "deck_id": str(default_deck.id),
        "constraint": "unique_tag_name_per_deck",
    }
    name = (await db_session.execute(select(Tag.name).where(Tag.id == tag.id))).scalar_one()
    assert name == "chemistry"


async def test_global_tags_are_read_only(db_session, user_id):
    tag = Tag(name="important", scope=TagScope.global_)
    db_session.add(tag)
    await db_session.commit()
    service = TagService(db_session)

    with pytest.raises(GlobalTagOperationError):
        await service.update_tag(user_id, tag.id, "urgent")
    with pytest.raises(GlobalTagOperationError):
        await service.delete_tag(user_id, tag.id)
