"""Generate flashcard suggestions for a user.

Order matters: input bounds, rate limit and deck ownership are checked before
the AI call, and only generation metadata is stored. Suggestions become
flashcards later, through ``GenerationService.accept_generation``.
"""

import hashlib
import logging
import time
import uuid
from typing import Any, Callable, Dict

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.ai_config import SOURCE_TEXT_MAX_LENGTH, SOURCE_TEXT_MIN_LENGTH
from app.core.errors import AIServiceError, InvalidDeckError, ValidationFailedError
from app.services.ai_service.flashcard_ai_service import FlashcardAIService
from app.services.decks.deck_service import DeckService
from app.services.generations.generation_service import GenerationService
from app.services.rate_limit.rate_limit_service import enforce_generation_limit

logger = logging.getLogger(__name__)


def hash_source_text(source_text: str) -> str:
    return hashlib.sha256(source_text.strip().encode("utf-8")).hexdigest()


class GenerationWorkflow:
    def __init__(
        self,
        db: AsyncSession,
        ai_service: FlashcardAIService,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.db = db
        self.ai_service = ai_service
        self.generations = GenerationService(db)
        self._clock = clock

    async def generate(
        self, user_id: uuid.UUID, deck_id: int, model: str, source_text: str
    ) -> Dict[str, Any]:
        text = source_text.strip()
        if not SOURCE_TEXT_MIN_LENGTH <= len(text) <= SOURCE_TEXT_MAX_LENGTH:
            raise ValidationFailedError(
                f"Source text must be between {SOURCE_TEXT_MIN_LENGTH} and "
                f"{SOURCE_TEXT_MAX_LENGTH} characters",
                details={"field": "source_text", "length": len(text)},
            )

        await enforce_generation_limit(self.db, user_id)

        if not await DeckService(self.db).verify_deck_ownership(user_id, deck_id):
            raise InvalidDeckError()

        source_hash = hash_source_text(text)
        started = self._clock()
        try:
            suggestions = await self.ai_service.generate_flashcards(text, model)
        except AIServiceError as exc:
            logger.error(
                "Generation failed for user %s with %s: %s (%s)",
                user_id,
                model,
                exc.code,
                exc.message,
            )
            await self.generations.log_generation_error(
                user_id=user_id,
                model=model,
                source_text_hash=source_hash,
                source_text_length=len(text),
                error_code=exc.log_code,
                error_message=exc.message,
            )
            raise
        duration_ms = int((self._clock() - started) * 1000)

        generation = await self.generations.create_generation(
            user_id=user_id,
            deck_id=deck_id,
            model=model,
            generated_count=len(suggestions),
            source_text_hash=source_hash,
            source_text_length=len(text),
            generation_duration_ms=duration_ms,
        )
        logger.info(
            "Generation %s: %s suggestions for user %s in %sms",
            generation.id,
            len(suggestions),
            user_id,
            duration_ms,
        )
        return {
            "generation_id": str(generation.id),
            "model": model,
            "generated_count": len(suggestions),
            "source_text_length": len(text),
            "generation_duration_ms": duration_ms,
            "suggestions": suggestions,
            "created_at": generation.created_at,
        }
