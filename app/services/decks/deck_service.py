"""Deck persistence and the deck deletion workflow.

Deleting a deck never loses flashcards: they are moved to the user's default
deck and tagged ``#deleted-from-<deck name>`` before the deck is soft-deleted.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    DefaultDeckError,
    DefaultDeckMissingError,
    DuplicateDeckError,
    InternalError,
    NotFoundError,
)
from app.models.deck import Deck
from app.models.flashcard import Flashcard
from app.models.tag import FlashcardTag, Tag
from app.services.decks.deck_utils import (
    DEFAULT_DECK_NAME,
    migration_tag_name,
    validate_default_deck_rename,
)
from app.utils.datetime_utils import get_current_utc_datetime
from app.utils.enums import SortOrder, TagScope

logger = logging.getLogger(__name__)

DECK_SORT_COLUMNS = {
    "created_at": Deck.created_at,
    "updated_at": Deck.updated_at,
    "name": Deck.name,
}


class DeckService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # --- reads ---------------------------------------------------------------

    async def list_decks(
        self,
        user_id: uuid.UUID,
        *,
        search: Optional[str] = None,
        sort: str = "created_at",
        order: SortOrder = SortOrder.desc,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Tuple[Deck, int]], int]:
        """Return ``([(deck, flashcard_count), ...], total)`` for one page."""
        filters = [Deck.user_id == user_id, Deck.deleted_at.is_(None)]
        if search:
            filters.append(Deck.name.ilike(f"%{search}%"))

        total = (
            await self.db.execute(select(func.count(Deck.id)).where(*filters))
        ).scalar_one()

        sort_column = DECK_SORT_COLUMNS.get(sort, Deck.created_at)
        ordering = sort_column.asc() if order == SortOrder.asc else sort_column.desc()
        flashcard_count = func.count(Flashcard.id)
        stmt = (
            select(Deck, flashcard_count)
            .outerjoin(
                Flashcard,
                and_(Flashcard.deck_id == Deck.id, Flashcard.deleted_at.is_(None)),
            )
            .where(*filters)
            .group_by(Deck.id)
            .order_by(ordering, Deck.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        rows = (await self.db.execute(stmt)).all()
        return [(deck, count) for deck, count in rows], total

    async def _find_deck(self, user_id: uuid.UUID, deck_id: int) -> Optional[Deck]:
        result = await self.db.execute(
            select(Deck).where(
                Deck.id == deck_id,
                Deck.user_id == user_id,
                Deck.deleted_at.is_(None),
            )
        )
        return result.scalars().first()

    async def get_deck(self, user_id: uuid.UUID, deck_id: int) -> Deck:
        deck = await self._find_deck(user_id, deck_id)
        if deck is None:
            raise NotFoundError("Deck")
        return deck

    async def verify_deck_ownership(self, user_id: uuid.UUID, deck_id: int) -> bool:
        return await self._find_deck(user_id, deck_id) is not None

    async def count_flashcards(self, deck_id: int) -> int:
        result = await self.db.execute(
            select(func.count(Flashcard.id)).where(
                Flashcard.deck_id == deck_id, Flashcard.deleted_at.is_(None)
            )
        )
        return result.scalar_one()

    async def get_default_deck(self, user_id: uuid.UUID) -> Optional[Deck]:
        result = await self.db.execute(
            select(Deck).where(
                Deck.user_id == user_id,
                Deck.is_default.is_(True),
                Deck.deleted_at.is_(None),
            )
        )
        return result.scalars().first()

    async def ensure_default_deck(self, user_id: uuid.UUID) -> Deck:
        """Return the user's default deck, creating ``Uncategorized`` on first use."""
        deck = await self.get_default_deck(user_id)
        if deck is not None:
            return deck

        try:
            async with self.db.begin_nested():
                deck = Deck(user_id=user_id, name=DEFAULT_DECK_NAME, is_default=True)
                self.db.add(deck)
        except IntegrityError:
            # Lost a race with a concurrent request for the same user
            deck = await self.get_default_deck(user_id)
            if deck is None:
                logger.error("Could not provision default deck for user %s", user_id)
                raise InternalError("Failed to provision default deck")
            return deck

        await self.db.commit()
        await self.db.refresh(deck)
        logger.info("Provisioned default deck %s for user %s", deck.id, user_id)
        return deck

    # --- writes --------------------------------------------------------------

    async def _name_taken(
        self, user_id: uuid.UUID, name: str, exclude_id: Optional[int] = None
    ) -> bool:
        stmt = select(Deck.id).where(
            Deck.user_id == user_id,
            Deck.name == name,
            Deck.deleted_at.is_(None),
        )
        if exclude_id is not None:
            stmt = stmt.where(Deck.id != exclude_id)
        return (await self.db.execute(stmt)).first() is not None

    async def create_deck(
        self, user_id: uuid.UUID, name: str, description: Optional[str] = None
    ) -> Deck:
        if await self._name_taken(user_id, name):
            raise DuplicateDeckError(name)

        deck = Deck(user_id=user_id, name=name, description=description, is_default=False)
        self.db.add(deck)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise DuplicateDeckError(name) from exc
        await self.db.refresh(deck)
        return deck

    async def update_deck(
        self, user_id: uuid.UUID, deck_id: int, changes: Dict[str, Any]
    ) -> Deck:
        deck = await self.get_deck(user_id, deck_id)
        new_name = changes.get("name")
        validate_default_deck_rename(deck.is_default, new_name)

        if new_name is not None and new_name != deck.name:
            if await self._name_taken(user_id, new_name, exclude_id=deck.id):
                raise DuplicateDeckError(new_name)
            deck.name = new_name
        if "description" in changes:
            deck.description = changes["description"]

        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise DuplicateDeckError(new_name or deck.name) from exc
        await self.db.refresh(deck)
        return deck

    # --- deletion ------------------------------------------------------------

    async def delete_deck(self, user_id: uuid.UUID, deck_id: int) -> Dict[str, Any]:
        """
        Soft-delete a deck after moving its flashcards to the default deck.

        The default deck is resolved before anything is mutated. Tagging the
        moved cards is best-effort; moving them and deleting the deck are not.
        All changes are committed together.

        Raises:
            NotFoundError: deck missing, deleted or owned by someone else.
            DefaultDeckError: the deck is the user's default deck.
            DefaultDeckMissingError: the user has no default deck.
        """
        deck = await self.get_deck(user_id, deck_id)
        if deck.is_default:
            raise DefaultDeckError("delete")

        default_deck = await self.get_default_deck(user_id)
        if default_deck is None:
            logger.error("User %s has no default deck; refusing to delete deck %s", user_id, deck_id)
            raise DefaultDeckMissingError()
        default_deck_id = default_deck.id

        try:
            result = await self.db.execute(
                select(Flashcard.id).where(
                    Flashcard.deck_id == deck.id,
                    Flashcard.user_id == user_id,
                    Flashcard.deleted_at.is_(None),
                )
            )
            flashcard_ids = list(result.scalars())

            # Placeholder when there is nothing to tag or the tag could not be made
            migration_tag_out = {"id": "0", "name": ""}
            if flashcard_ids:
                migration_tag = await self._create_migration_tag(
                    user_id, default_deck_id, deck.name
                )
                migration_tag_id = migration_tag.id if migration_tag is not None else None
                if migration_tag is not None:
                    migration_tag_out = {"id": str(migration_tag_id), "name": migration_tag.name}
                await self.db.execute(
                    update(Flashcard)
                    .where(Flashcard.id.in_(flashcard_ids))
                    .values(deck_id=default_deck_id)
                )
                if migration_tag_id is not None:
                    await self._tag_flashcards(migration_tag_id, flashcard_ids)

            deck.deleted_at = get_current_utc_datetime()
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception("Deleting deck %s for user %s failed", deck_id, user_id)
            raise

        logger.info(
            "Deleted deck %s for user %s, moved %s flashcards to default deck %s",
            deck_id,
            user_id,
            len(flashcard_ids),
            default_deck_id,
        )
        return {
            "message": "Deck deleted successfully",
            "migrated_flashcards_count": len(flashcard_ids),
            "migration_tag": migration_tag_out,
        }

    async def _create_migration_tag(
        self, user_id: uuid.UUID, default_deck_id: int, deck_name: str
    ) -> Optional[Tag]:
        """Create or reuse the migration tag on the default deck. Returns None on failure."""
        name = migration_tag_name(deck_name)
        try:
            async with self.db.begin_nested():
                result = await self.db.execute(
                    select(Tag).where(Tag.name == name, Tag.deck_id == default_deck_id)
                )
                tag = result.scalars().first()
                if tag is None:
                    tag = Tag(
                        name=name,
                        scope=TagScope.deck,
                        deck_id=default_deck_id,
                        user_id=user_id,
                    )
                    self.db.add(tag)
                elif tag.deleted_at is not None:
                    tag.deleted_at = None
                await self.db.flush()
            return tag
        except SQLAlchemyError as exc:
            logger.warning("Could not create migration tag %r: %s", name, exc)
            return None

    async def _tag_flashcards(self, tag_id: int, flashcard_ids: List[int]) -> int:
        """Attach a tag to the given flashcards, skipping existing links. Returns links added."""
        try:
            async with self.db.begin_nested():
                result = await self.db.execute(
                    select(FlashcardTag.flashcard_id).where(
                        FlashcardTag.tag_id == tag_id,
                        FlashcardTag.flashcard_id.in_(flashcard_ids),
                    )
                )
                already_tagged = set(result.scalars())
                links = [
                    FlashcardTag(flashcard_id=flashcard_id, tag_id=tag_id)
                    for flashcard_id in flashcard_ids
                    if flashcard_id not in already_tagged
                ]
                self.db.add_all(links)
                await self.db.flush()
            return len(links)
        except SQLAlchemyError as exc:
            logger.warning("Could not tag %s migrated flashcards: %s", len(flashcard_ids), exc)
            return 0
