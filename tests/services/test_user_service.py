from __future__ import annotations

import uuid

import pytest
from sqlalchemy import func, select

from app.core.errors import UserDeletionError
from app.models.deck import Deck
from app.models.flashcard import Flashcard
from app.models.generation import Generation, GenerationErrorLog
from app.models.tag import FlashcardTag, Tag
from app.services.users.user_service import UserService
from app.utils.datetime_utils import get_current_utc_datetime
from app.utils.enums import FlashcardSource, TagScope

pytestmark = pytest.mark.anyio


async def _seed_account(db_session, user_id, global_tag):
    """One of everything: a live and a deleted deck, cards, tags, generation, error log."""
    deck = Deck(user_id=user_id, name="Biology")
    old_deck = Deck(user_id=user_id, name="Old", deleted_at=get_current_utc_datetime())
    db_session.add_all([deck, old_deck])
    await db_session.flush()

    generation = Generation(
        user_id=user_id,
        deck_id=deck.id,
        model="openai/gpt-4o-mini",
        generated_count=3,
        source_text_hash="a" * 64,
        source_text_length=1200,
        generation_duration=900,
    )
    db_session.add(generation)
    await db_session.flush()

    card = Flashcard(
        deck_id=deck.id,
        user_id=user_id,
        front="Q",
        back="A",
        source=FlashcardSource.ai_full,
        generation_id=generation.id,
    )
    tag = Tag(name="cells", scope=TagScope.deck, deck_id=deck.id, user_id=user_id)
    db_session.add_all([card, tag])
    await db_session.flush()
    db_session.add_all(
        [
            FlashcardTag(flashcard_id=card.id, tag_id=tag.id),
            FlashcardTag(flashcard_id=card.id, tag_id=global_tag.id),
            GenerationErrorLog(
                user_id=user_id,
                model="openai/gpt-4o-mini",
                source_text_hash="b" * 64,
                source_text_length=1500,
                error_code="ai_service_timeout",
                error_message="Request exceeded 60.0s timeout",
            ),
        ]
    )
    await db_session.commit()


async def _owned_rows(db_session, user_id) -> int:
    total = 0
    for model in (Deck, Flashcard, Tag, Generation, GenerationErrorLog):
        total += (
            await db_session.execute(
                select(func.count()).select_from(model).where(model.user_id == user_id)
            )
        ).scalar_one()
    return total


@pytest.fixture()
async def global_tag(db_session) -> Tag:
    tag = Tag(name="important", scope=TagScope.global_)
    db_session.add(tag)
    await db_session.commit()
    return tag


async def test_delete_user_removes_only_the_callers_rows(db_session, user_id, global_tag):
    other_user = uuid.uuid4()
    await _seed_account(db_session, user_id, global_tag)
    await _seed_account(db_session, other_user, global_tag)

    removed = await UserService(db_session).delete_user(user_id)

    assert removed == {
        "flashcard_tags": 2,
        "flashcards": 1,
        "tags": 1,
        "generations": 1,
        "generation_error_logs": 1,
        "decks": 2,
    }
    assert await _owned_rows(db_session, user_id) == 0
    # other user: 2 decks, 1 card, 1 tag, 1 generation, 1 error log
    assert await _owned_rows(db_session, other_user) == 6
    links = (await db_session.execute(select(func.count()).select_from(FlashcardTag))).scalar_one()
    assert links == 2
    names = (await db_session.execute(select(Tag.name).where(Tag.user_id.is_(None)))).scalars().all()
    assert names == ["important"]


async def test_delete_user_without_data_is_a_no_op(db_session, user_id):
    removed = await UserService(db_session).delete_user(user_id)

    assert set(removed.values()) == {0}


async def test_failed_delete_keeps_everything(db_session, user_id, global_tag, fail_session_calls):
    await _seed_account(db_session, user_id, global_tag)
    fail_session_calls("commit", 1)

    with pytest.raises(UserDeletionError) as exc_info:
        await UserService(db_session).delete_user(user_id)

    assert exc_info.value.status_code == 500
    assert exc_info.value.code == "auth_error"
    assert str(exc_info.value) == "Failed to delete user account"
    assert await _owned_rows(db_session, user_id) == 6
