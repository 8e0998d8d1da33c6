from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    CheckConstraint,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import relationship
from app.db.deps import Base
from app.db.types import BigIntId, value_enum
from app.utils.datetime_utils import get_current_utc_datetime
from app.utils.enums import TagScope


class Tag(Base):
    __tablename__ = "tags"
    __table_args__ = (
        UniqueConstraint("name", "deck_id", name="uq_tags_name_deck_id"),
        CheckConstraint(
            "(scope = 'deck' AND deck_id IS NOT NULL) OR "
            "(scope = 'global' AND deck_id IS NULL)",
            name="ck_tags_scope_deck",
        ),
    )

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    name = Column(String(50), nullable=False)
    scope = Column(value_enum(TagScope, "tag_scope"), nullable=False, default=TagScope.deck)
    deck_id = Column(BigIntId, ForeignKey("decks.id"), nullable=True, index=True)
    # Null for global tags
    user_id = Column(PG_UUID(as_uuid=True), nullable=True, index=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=get_current_utc_datetime,
        server_default=func.now(),
    )
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    deck = relationship("Deck", back_populates="tags")
    flashcards = relationship("Flashcard", secondary="flashcard_tags", back_populates="tags")


class FlashcardTag(Base):
    __tablename__ = "flashcard_tags"

    flashcard_id = Column(
        BigIntId, ForeignKey("flashcards.id", ondelete="CASCADE"), primary_key=True
    )
    tag_id = Column(BigIntId, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=get_current_utc_datetime,
        server_default=func.now(),
    )
