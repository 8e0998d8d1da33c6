import logging
import uuid
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ForbiddenError, InvalidDeckError, NotFoundError
from app.models.flashcard import Flashcard
from app.models.generation import Generation, GenerationErrorLog
from app.services.decks.deck_service import DeckService
from app.services.flashcards.flashcard_service import FlashcardService
from app.utils.datetime_utils import get_current_utc_datetime
from app.utils.enums import FlashcardSource, SortOrder

logger = logging.getLogger(__name__)


class GenerationService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_generation(
        self,
        *,
        user_id: uuid.UUID,
        deck_id: int,
        model: str,
        generated_count: int,
        source_text_hash: str,
        source_text_length: int,
        generation_duration_ms: int,
    ) -> Generation:
        generation = Generation(
            user_id=user_id,
            deck_id=deck_id,
            model=model,
            generated_count=generated_count,
            accepted_unedited_count=0,
            accepted_edited_count=0,
            source_text_hash=source_text_hash,
            source_text_length=source_text_length,
            generation_duration=generation_duration_ms,
        )
        self.db.add(generation)
        await self.db.commit()
        await self.db.refresh(generation)
        return generation

    async def get_generation(self, user_id: uuid.UUID, generation_id: int) -> Generation:
        """Raises NotFoundError when missing and ForbiddenError when owned by someone else."""
        generation = await self.db.get(Generation, generation_id)
        if generation is None:
            raise NotFoundError("Generation")
        if generation.user_id != user_id:
            raise ForbiddenError("Generation belongs to a different user")
        return generation

    async def list_generations(
        self,
        user_id: uuid.UUID,
        *,
        deck_id: Optional[int] = None,
        order: SortOrder = SortOrder.desc,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Generation], int]:
        filters = [Generation.user_id == user_id]
        if deck_id is not None:
            filters.append(Generation.deck_id == deck_id)

        total = (
            await self.db.execute(select(func.count(Generation.id)).where(*filters))
        ).scalar_one()
        ordering = (
            Generation.created_at.asc() if order == SortOrder.asc else Generation.created_at.desc()
        )
        result = await self.db.execute(
            select(Generation)
            .where(*filters)
            .order_by(ordering, Generation.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def find_recent_duplicate(
        self, user_id: uuid.UUID, source_text_hash: str, hours_back: int = 24
    ) -> Optional[Generation]:
        """Most recent generation of the same text. Not used to reject requests."""
        since = get_current_utc_datetime() - timedelta(hours=hours_back)
        result = await self.db.execute(
            select(Generation)
            .where(
                Generation.user_id == user_id,
                Generation.source_text_hash == source_text_hash,
                Generation.created_at >= since,
            )
            .order_by(Generation.created_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def log_generation_error(
        self,
        *,
        user_id: uuid.UUID,
        model: str,
        source_text_hash: str,
        source_text_length: int,
        error_code: str,
        error_message: str,
    ) -> None:
        """Append to generation_error_logs. Never raises."""
        try:
            self.db.add(
                GenerationErrorLog(
                    user_id=user_id,
                    model=model,
                    source_text_hash=source_text_hash,
                    source_text_length=source_text_length,
                    error_code=error_code,
                    error_message=error_message,
                )
            )
            await self.db.commit()
        except SQLAlchemyError as exc:
            logger.warning("Failed to write generation error log: %s", exc)
            try:
                await self.db.rollback()
            except SQLAlchemyError:
                logger.warning("Rollback after failed error log write also failed")

    async def accept_generation(
        self,
        user_id: uuid.UUID,
        generation_id: int,
        flashcards: Sequence[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """
        Persist accepted suggestions as flashcards in the generation's deck.

        Each item is ``{front, back, edited}``; edited cards are stored as
        ai-edited, the rest as ai-full. Counter updates are best-effort and never
        undo the inserted flashcards.
        """
        generation = await self.get_generation(user_id, generation_id)
        deck_id = generation.deck_id
        if not await DeckService(self.db).verify_deck_ownership(user_id, deck_id):
            raise InvalidDeckError()

        rows = [
            Flashcard(
                deck_id=deck_id,
                user_id=user_id,
                front=item["front"],
                back=item["back"],
                source=FlashcardSource.ai_edited if item.get("edited") else FlashcardSource.ai_full,
                generation_id=generation_id,
            )
            for item in flashcards
        ]
        self.db.add_all(rows)
        await self.db.commit()
        flashcard_ids = [row.id for row in rows]

        edited = sum(1 for item in flashcards if item.get("edited"))
        await self._update_acceptance_counters(generation, edited, len(flashcards) - edited)

        logger.info(
            "User %s accepted %s flashcards from generation %s (%s edited)",
            user_id,
            len(rows),
            generation_id,
            edited,
        )
        return {
            "accepted_count": len(rows),
            "flashcards": await FlashcardService(self.db).get_many(user_id, flashcard_ids),
        }

    async def _update_acceptance_counters(
        self, generation: Generation, edited: int, unedited: int
    ) -> bool:
        """Record the tallies of the latest acceptance. Returns False if the write failed."""
        generation_id = generation.id
        try:
            generation.accepted_edited_count = edited
            generation.accepted_unedited_count = unedited
            await self.db.commit()
            return True
        except SQLAlchemyError as exc:
            logger.warning(
                "Failed to update acceptance counters for generation %s: %s", generation_id, exc
            )
            await self.db.rollback()
            return False
