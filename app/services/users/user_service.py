"""Account deletion: removes every row the caller owns."""

import logging
import uuid
from typing import Dict

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import UserDeletionError
from app.models.deck import Deck
from app.models.flashcard import Flashcard
from app.models.generation import Generation, GenerationErrorLog
from app.models.tag import FlashcardTag, Tag

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def delete_user(self, user_id: uuid.UUID) -> Dict[str, int]:
        """
        Hard-delete the user's decks, flashcards, tags, generations and error
        logs in one transaction. Soft-deleted rows go too. Global tags stay.

        Returns the number of rows removed per table.

        Raises:
            UserDeletionError: nothing is deleted if any statement fails.
        """
        own_flashcards = select(Flashcard.id).where(Flashcard.user_id == user_id)
        own_tags = select(Tag.id).where(Tag.user_id == user_id)

        # Children before parents: links, cards, tags, generations, decks
        statements = [
            (
                "flashcard_tags",
                delete(FlashcardTag).where(
                    or_(
                        FlashcardTag.flashcard_id.in_(own_flashcards),
                        FlashcardTag.tag_id.in_(own_tags),
                    )
                ),
            ),
            ("flashcards", delete(Flashcard).where(Flashcard.user_id == user_id)),
            ("tags", delete(Tag).where(Tag.user_id == user_id)),
            ("generations", delete(Generation).where(Generation.user_id == user_id)),
            (
                "generation_error_logs",
                delete(GenerationErrorLog).where(GenerationErrorLog.user_id == user_id),
            ),
            ("decks", delete(Deck).where(Deck.user_id == user_id)),
        ]

        removed: Dict[str, int] = {}
        try:
            for table, statement in statements:
                result = await self.db.execute(
                    statement.execution_options(synchronize_session=False)
                )
                removed[table] = result.rowcount or 0
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("Account deletion failed: %s", type(exc).__name__)
            raise UserDeletionError() from exc

        # Deleted rows must not linger in this session's identity map
        self.db.expunge_all()
        logger.info("Deleted account data: %s", removed)
        return removed
