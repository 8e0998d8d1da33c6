import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import DuplicateTagError, GlobalTagOperationError, InvalidDeckError, NotFoundError
from app.models.tag import FlashcardTag, Tag
from app.services.decks.deck_service import DeckService
from app.utils.datetime_utils import get_current_utc_datetime
from app.utils.enums import TagScope

logger = logging.getLogger(__name__)


class TagService:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _visible_to(self, user_id: uuid.UUID):
        # Global tags plus the user's own deck tags
        return or_(
            Tag.scope == TagScope.global_,
            and_(Tag.scope == TagScope.deck, Tag.user_id == user_id),
        )

    async def list_tags(
        self,
        user_id: uuid.UUID,
        *,
        scope: Optional[TagScope] = None,
        deck_id: Optional[int] = None,
        search: Optional[str] = None,
    ) -> List[Tuple[Tag, int]]:
        """Return ``[(tag, usage_count), ...]`` sorted by name."""
        usage_count = func.count(FlashcardTag.flashcard_id)
        stmt = (
            select(Tag, usage_count)
            .outerjoin(FlashcardTag, FlashcardTag.tag_id == Tag.id)
            .where(Tag.deleted_at.is_(None), self._visible_to(user_id))
            .group_by(Tag.id)
            .order_by(Tag.name.asc(), Tag.id)
        )
        if scope is not None:
            stmt = stmt.where(Tag.scope == scope)
        if deck_id is not None:
            stmt = stmt.where(Tag.deck_id == deck_id)
        if search:
            stmt = stmt.where(Tag.name.ilike(f"%{search}%"))

        rows = (await self.db.execute(stmt)).all()
        return [(tag, count) for tag, count in rows]

    async def get_tag(self, user_id: uuid.UUID, tag_id: int) -> Tag:
        result = await self.db.execute(
            select(Tag).where(
                Tag.id == tag_id,
                Tag.deleted_at.is_(None),
                self._visible_to(user_id),
            )
        )
        tag = result.scalars().first()
        if tag is None:
            raise NotFoundError("Tag")
        return tag

    async def _name_taken(self, name: str, deck_id: int, exclude_id: Optional[int] = None) -> bool:
        stmt = select(Tag.id).where(Tag.name == name, Tag.deck_id == deck_id)
        if exclude_id is not None:
            stmt = stmt.where(Tag.id != exclude_id)
        return (await self.db.execute(stmt)).first() is not None

    async def create_tag(self, user_id: uuid.UUID, name: str, deck_id: int) -> Tag:
        if not await DeckService(self.db).verify_deck_ownership(user_id, deck_id):
            raise InvalidDeckError()
        # Unique per deck, soft-deleted tags included
        if await self._name_taken(name, deck_id):
            raise DuplicateTagError(name, str(deck_id))

        tag = Tag(name=name, scope=TagScope.deck, deck_id=deck_id, user_id=user_id)
        self.db.add(tag)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise DuplicateTagError(name, str(deck_id)) from exc
        await self.db.refresh(tag)
        return tag

    async def update_tag(self, user_id: uuid.UUID, tag_id: int, name: str) -> Tag:
        tag = await self.get_tag(user_id, tag_id)
        if tag.scope == TagScope.global_:
            raise GlobalTagOperationError("update")

        if name != tag.name:
            deck_id = tag.deck_id
            if await self._name_taken(name, deck_id, exclude_id=tag.id):
                raise DuplicateTagError(name, str(deck_id))
            tag.name = name
            try:
                await self.db.commit()
            except IntegrityError as exc:
                await self.db.rollback()
                raise DuplicateTagError(name, str(deck_id)) from exc
            await self.db.refresh(tag)
        return tag

    async def delete_tag(self, user_id: uuid.UUID, tag_id: int) -> None:
        tag = await self.get_tag(user_id, tag_id)
        if tag.scope == TagScope.global_:
            raise GlobalTagOperationError("delete")

        tag.deleted_at = get_current_utc_datetime()
        # A deleted tag no longer labels any flashcard
        await self.db.execute(delete(FlashcardTag).where(FlashcardTag.tag_id == tag.id))
        await self.db.commit()
        logger.info("Deleted tag %s for user %s", tag_id, user_id)
