import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.errors import InvalidDeckError, NotFoundError, ValidationFailedError
from app.models.flashcard import Flashcard
from app.models.tag import FlashcardTag, Tag
from app.services.decks.deck_service import DeckService
from app.utils.datetime_utils import get_current_utc_datetime
from app.utils.enums import FlashcardSource, SortOrder, TagScope

logger = logging.getLogger(__name__)

FLASHCARD_SORT_COLUMNS = {
    "created_at": Flashcard.created_at,
    "updated_at": Flashcard.updated_at,
}


def determine_new_source(current: FlashcardSource, *, content_changed: bool) -> FlashcardSource:
    """ai-full becomes ai-edited once its text is edited; nothing else ever changes."""
    if current == FlashcardSource.ai_full and content_changed:
        return FlashcardSource.ai_edited
    return current


class FlashcardService:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _select_with_tags(self, user_id: uuid.UUID):
        return (
            select(Flashcard)
            .options(selectinload(Flashcard.tags))
            .where(Flashcard.user_id == user_id, Flashcard.deleted_at.is_(None))
            # Always reflect the latest tag links, even for cards already in the session
            .execution_options(populate_existing=True)
        )

    async def list_flashcards(
        self,
        user_id: uuid.UUID,
        *,
        deck_id: Optional[int] = None,
        source: Optional[FlashcardSource] = None,
        tag_id: Optional[int] = None,
        search: Optional[str] = None,
        sort: str = "created_at",
        order: SortOrder = SortOrder.desc,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Flashcard], int]:
        filters = [Flashcard.user_id == user_id, Flashcard.deleted_at.is_(None)]
        if deck_id is not None:
            filters.append(Flashcard.deck_id == deck_id)
        if source is not None:
            filters.append(Flashcard.source == source)
        if tag_id is not None:
            filters.append(
                Flashcard.id.in_(
                    select(FlashcardTag.flashcard_id).where(FlashcardTag.tag_id == tag_id)
                )
            )
        if search and search.strip():
            term = f"%{search.strip()}%"
            filters.append(or_(Flashcard.front.ilike(term), Flashcard.back.ilike(term)))

        total = (
            await self.db.execute(select(func.count(Flashcard.id)).where(*filters))
        ).scalar_one()

        sort_column = FLASHCARD_SORT_COLUMNS.get(sort, Flashcard.created_at)
        ordering = sort_column.asc() if order == SortOrder.asc else sort_column.desc()
        result = await self.db.execute(
            self._select_with_tags(user_id)
            .where(*filters)
            .order_by(ordering, Flashcard.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def get_flashcard(self, user_id: uuid.UUID, flashcard_id: int) -> Flashcard:
        result = await self.db.execute(
            self._select_with_tags(user_id).where(Flashcard.id == flashcard_id)
        )
        flashcard = result.scalars().first()
        if flashcard is None:
            raise NotFoundError("Flashcard")
        return flashcard

    async def get_many(self, user_id: uuid.UUID, flashcard_ids: Iterable[int]) -> List[Flashcard]:
        ids = list(flashcard_ids)
        if not ids:
            return []
        result = await self.db.execute(
            self._select_with_tags(user_id).where(Flashcard.id.in_(ids)).order_by(Flashcard.id)
        )
        return list(result.scalars().all())

    async def _require_deck(self, user_id: uuid.UUID, deck_id: int) -> None:
        if not await DeckService(self.db).verify_deck_ownership(user_id, deck_id):
            raise InvalidDeckError()

    async def create_flashcard(
        self,
        user_id: uuid.UUID,
        deck_id: int,
        front: str,
        back: str,
        tag_ids: Optional[List[int]] = None,
    ) -> Flashcard:
        await self._require_deck(user_id, deck_id)
        if tag_ids:
            await self._check_tags_accessible(deck_id, tag_ids)

        flashcard = Flashcard(
            deck_id=deck_id,
            user_id=user_id,
            front=front,
            back=back,
            source=FlashcardSource.manual,
            generation_id=None,
        )
        self.db.add(flashcard)
        await self.db.flush()
        if tag_ids:
            self.db.add_all(
                FlashcardTag(flashcard_id=flashcard.id, tag_id=tag_id) for tag_id in set(tag_ids)
            )
        await self.db.commit()
        return await self.get_flashcard(user_id, flashcard.id)

    async def update_flashcard(
        self, user_id: uuid.UUID, flashcard_id: int, changes: Dict[str, Any]
    ) -> Flashcard:
        flashcard = await self.get_flashcard(user_id, flashcard_id)

        new_deck_id = changes.get("deck_id")
        if new_deck_id is not None and new_deck_id != flashcard.deck_id:
            await self._require_deck(user_id, new_deck_id)
            flashcard.deck_id = new_deck_id

        content_changed = False
        for field in ("front", "back"):
            value = changes.get(field)
            if value is not None and value != getattr(flashcard, field):
                setattr(flashcard, field, value)
                content_changed = True

        flashcard.source = determine_new_source(flashcard.source, content_changed=content_changed)
        await self.db.commit()
        return await self.get_flashcard(user_id, flashcard_id)

    async def delete_flashcard(self, user_id: uuid.UUID, flashcard_id: int) -> None:
        flashcard = await self.get_flashcard(user_id, flashcard_id)
        flashcard.deleted_at = get_current_utc_datetime()
        await self.db.commit()

    async def _check_tags_accessible(self, deck_id: int, tag_ids: List[int]) -> None:
        """Tags must be live and either global or scoped to the flashcard's deck."""
        requested = set(tag_ids)
        result = await self.db.execute(
            select(Tag.id).where(
                Tag.id.in_(requested),
                Tag.deleted_at.is_(None),
                or_(Tag.scope == TagScope.global_, Tag.deck_id == deck_id),
            )
        )
        missing = requested - set(result.scalars())
        if missing:
            raise ValidationFailedError(
                "One or more tags are not available for this flashcard",
                details={"tag_ids": sorted(str(tag_id) for tag_id in missing)},
            )

    async def add_tags(
        self, user_id: uuid.UUID, flashcard_id: int, tag_ids: List[int]
    ) -> Flashcard:
        flashcard = await self.get_flashcard(user_id, flashcard_id)
        await self._check_tags_accessible(flashcard.deck_id, tag_ids)

        existing = {tag.id for tag in flashcard.tags}
        self.db.add_all(
            FlashcardTag(flashcard_id=flashcard.id, tag_id=tag_id)
            for tag_id in set(tag_ids)
            if tag_id not in existing
        )
        await self.db.commit()
        return await self.get_flashcard(user_id, flashcard_id)

    async def remove_tag(self, user_id: uuid.UUID, flashcard_id: int, tag_id: int) -> None:
        flashcard = await self.get_flashcard(user_id, flashcard_id)
        result = await self.db.execute(
            delete(FlashcardTag).where(
                FlashcardTag.flashcard_id == flashcard.id,
                FlashcardTag.tag_id == tag_id,
            )
        )
        if result.rowcount == 0:
            raise NotFoundError("Tag association")
        await self.db.commit()
