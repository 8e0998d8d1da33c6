from __future__ import annotations

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from app.core.errors import (
    AITimeoutError,
    ForbiddenError,
    InvalidDeckError,
    NotFoundError,
    RateLimitExceededError,
    ValidationFailedError,
)
from app.models.deck import Deck
from app.models.flashcard import Flashcard
from app.models.generation import Generation, GenerationErrorLog
from app.services.generations.generation_service import GenerationService
from app.services.generations.generation_workflow import GenerationWorkflow, hash_source_text
from app.utils.datetime_utils import get_current_utc_datetime
from app.utils.enums import FlashcardSource

pytestmark = pytest.mark.anyio

SOURCE_TEXT = "The mitochondrion is the powerhouse of the cell. " * 30
MODEL = "openai/gpt-4o-mini"


class StepClock:
    """Monotonic clock that advances 1.5 seconds per reading."""

    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        value = self.now
        self.now += 1.5
        return value


@pytest.fixture()
async def deck(db_session, user_id) -> Deck:
    deck = Deck(user_id=user_id, name="Biology")
    db_session.add(deck)
    await db_session.commit()
    return deck


@pytest.fixture()
def workflow(db_session, fake_ai_service) -> GenerationWorkflow:
    return GenerationWorkflow(db_session, fake_ai_service, clock=StepClock())


async def _count(db_session, model) -> int:
    return (await db_session.execute(select(func.count()).select_from(model))).scalar_one()


def test_hash_ignores_surrounding_whitespace():
    assert hash_source_text("  abc \n") == hash_source_text("abc")
    assert len(hash_source_text("abc")) == 64


async def test_generate_stores_metadata_but_no_flashcards(db_session, user_id, deck, workflow, fake_ai_service):
    result = await workflow.generate(user_id, deck.id, MODEL, f"  {SOURCE_TEXT}  ")

    assert result["generated_count"] == 5
    assert result["model"] == MODEL
    assert result["source_text_length"] == len(SOURCE_TEXT.strip())
    assert result["generation_duration_ms"] == 1500
    assert len(result["suggestions"]) == 5
    assert fake_ai_service.calls == [{"source_text": SOURCE_TEXT.strip(), "model": MODEL}]

    generation = await db_session.get(Generation, int(result["generation_id"]))
    assert generation.user_id == user_id
    assert generation.accepted_edited_count == 0
    assert generation.accepted_unedited_count == 0
    assert generation.source_text_hash == hash_source_text(SOURCE_TEXT)
    assert await _count(db_session, Flashcard) == 0


@pytest.mark.parametrize("text", ["too short", "x" * 10001, " " * 2000 + "y" * 500])
async def test_generate_rejects_out_of_range_text(user_id, deck, workflow, fake_ai_service, text):
    with pytest.raises(ValidationFailedError):
        await workflow.generate(user_id, deck.id, MODEL, text)
    assert fake_ai_service.calls == []


async def test_generate_rejects_foreign_deck(db_session, user_id, workflow, fake_ai_service):
    foreign = Deck(user_id=uuid.uuid4(), name="Not mine")
    db_session.add(foreign)
    await db_session.commit()

    with pytest.raises(InvalidDeckError):
        await workflow.generate(user_id, foreign.id, MODEL, SOURCE_TEXT)
    assert fake_ai_service.calls == []


async def test_generate_is_rate_limited(db_session, user_id, deck, workflow, fake_ai_service):
    start = get_current_utc_datetime() - timedelta(minutes=30)
    for i in range(10):
        db_session.add(
            Generation(
                deck_id=deck.id,
                user_id=user_id,
                model=MODEL,
                generated_count=5,
                source_text_hash="0" * 64,
                source_text_length=1500,
                generation_duration=900,
                created_at=start + timedelta(minutes=i),
            )
        )
    await db_session.commit()

    with pytest.raises(RateLimitExceededError) as exc_info:
        await workflow.generate(user_id, deck.id, MODEL, SOURCE_TEXT)

    assert exc_info.value.info.remaining == 0
    assert fake_ai_service.calls == []


async def test_ai_failure_is_logged_and_reraised(db_session, user_id, deck, workflow, fake_ai_service):
    fake_ai_service.error = AITimeoutError("Request exceeded 60.0s timeout")

    with pytest.raises(AITimeoutError):
        await workflow.generate(user_id, deck.id, MODEL, SOURCE_TEXT)

    logs = (await db_session.execute(select(GenerationErrorLog))).scalars().all()
    assert len(logs) == 1
    assert logs[0].error_code == "ai_service_timeout"
    assert logs[0].source_text_hash == hash_source_text(SOURCE_TEXT)
    assert await _count(db_session, Generation) == 0


async def test_ai_failure_survives_error_log_failure(
    db_session, user_id, deck, workflow, fake_ai_service, fail_session_calls
):
    fake_ai_service.error = AITimeoutError("Request exceeded 60.0s timeout")
    # The error log insert is the only commit on this path
    fail_session_calls("commit", 1)

    with pytest.raises(AITimeoutError):
        await workflow.generate(user_id, deck.id, MODEL, SOURCE_TEXT)

    assert await _count(db_session, GenerationErrorLog) == 0
    assert await _count(db_session, Generation) == 0


async def test_accept_creates_flashcards_and_updates_counters(db_session, user_id, deck, workflow):
    result = await workflow.generate(user_id, deck.id, MODEL, SOURCE_TEXT)
    generation_id = int(result["generation_id"])

    accepted = await GenerationService(db_session).accept_generation(
        user_id,
        generation_id,
        [
            {"front": "Q1", "back": "A1", "edited": False},
            {"front": "Q2 (edited)", "back": "A2", "edited": True},
            {"front": "Q3", "back": "A3", "edited": False},
        ],
    )

    assert accepted["accepted_count"] == 3
    sources = [card.source for card in accepted["flashcards"]]
    assert sources == [FlashcardSource.ai_full, FlashcardSource.ai_edited, FlashcardSource.ai_full]
    assert all(card.generation_id == generation_id for card in accepted["flashcards"])
    assert all(card.deck_id == deck.id for card in accepted["flashcards"])

    generation = await db_session.get(Generation, generation_id)
    assert generation.accepted_unedited_count == 2
    assert generation.accepted_edited_count == 1


async def test_accept_keeps_flashcards_when_counter_update_fails(
    db_session, user_id, deck, workflow, fail_session_calls
):
    result = await workflow.generate(user_id, deck.id, MODEL, SOURCE_TEXT)
    generation_id = int(result["generation_id"])
    # Commit 1 inserts the flashcards, commit 2 writes the counters
    fail_session_calls("commit", 2)

    accepted = await GenerationService(db_session).accept_generation(
        user_id,
        generation_id,
        [
            {"front": "Q1", "back": "A1", "edited": False},
            {"front": "Q2", "back": "A2", "edited": True},
        ],
    )

    assert accepted["accepted_count"] == 2
    assert [card.front for card in accepted["flashcards"]] == ["Q1", "Q2"]
    assert await _count(db_session, Flashcard) == 2

    counters = (
        await db_session.execute(
            select(Generation.accepted_unedited_count, Generation.accepted_edited_count).where(
                Generation.id == generation_id
            )
        )
    ).one()
    assert tuple(counters) == (0, 0)


async def test_accept_again_overwrites_counters(db_session, user_id, deck, workflow):
    result = await workflow.generate(user_id, deck.id, MODEL, SOURCE_TEXT)
    generation_id = int(result["generation_id"])
    service = GenerationService(db_session)

    await service.accept_generation(
        user_id,
        generation_id,
        [
            {"front": "Q1", "back": "A1", "edited": False},
            {"front": "Q2", "back": "A2", "edited": False},
        ],
    )
    await service.accept_generation(
        user_id, generation_id, [{"front": "Q3", "back": "A3", "edited": True}]
    )

    generation = await db_session.get(Generation, generation_id)
    assert generation.accepted_unedited_count == 0
    assert generation.accepted_edited_count == 1
    assert await _count(db_session, Flashcard) == 3


async def test_accept_someone_elses_generation_is_forbidden(db_session, user_id, deck, workflow):
    result = await workflow.generate(user_id, deck.id, MODEL, SOURCE_TEXT)

    with pytest.raises(ForbiddenError):
        await GenerationService(db_session).accept_generation(
            uuid.uuid4(), int(result["generation_id"]), [{"front": "Q", "back": "A"}]
        )


async def test_accept_missing_generation(db_session, user_id):
    with pytest.raises(NotFoundError):
        await GenerationService(db_session).accept_generation(user_id, 999, [{"front": "Q", "back": "A"}])


async def test_accept_into_deleted_deck_is_rejected(db_session, user_id, deck, workflow):
    result = await workflow.generate(user_id, deck.id, MODEL, SOURCE_TEXT)
    deck.deleted_at = get_current_utc_datetime()
    await db_session.commit()

    with pytest.raises(InvalidDeckError):
        await GenerationService(db_session).accept_generation(
            user_id, int(result["generation_id"]), [{"front": "Q", "back": "A"}]
        )


async def test_list_generations_is_scoped_to_user(db_session, user_id, deck, workflow):
    await workflow.generate(user_id, deck.id, MODEL, SOURCE_TEXT)
    await workflow.generate(user_id, deck.id, MODEL, SOURCE_TEXT + " more")

    service = GenerationService(db_session)
    mine, total = await service.list_generations(user_id)
    theirs, other_total = await service.list_generations(uuid.uuid4())

    assert total == 2 and len(mine) == 2
    assert other_total == 0 and theirs == []

    duplicate = await service.find_recent_duplicate(user_id, hash_source_text(SOURCE_TEXT))
    assert duplicate is not None
