from sqlalchemy import Column, String, DateTime, ForeignKey, CheckConstraint, func
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import relationship
from app.db.deps import Base
from app.db.types import BigIntId, value_enum
from app.utils.datetime_utils import get_current_utc_datetime
from app.utils.enums import FlashcardSource


class Flashcard(Base):
    __tablename__ = "flashcards"
    __table_args__ = (
        # manual <=> no generation; ai-full / ai-edited <=> generation set
        CheckConstraint(
            "(source = 'manual' AND generation_id IS NULL) OR "
            "(source <> 'manual' AND generation_id IS NOT NULL)",
            name="ck_flashcards_source_generation",
        ),
    )

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    deck_id = Column(BigIntId, ForeignKey("decks.id"), nullable=False, index=True)
    user_id = Column(PG_UUID(as_uuid=True), nullable=False, index=True)
    front = Column(String(200), nullable=False)
    back = Column(String(500), nullable=False)
    source = Column(
        value_enum(FlashcardSource, "flashcard_source"),
        nullable=False,
        default=FlashcardSource.manual,
    )
    generation_id = Column(BigIntId, ForeignKey("generations.id"), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=get_current_utc_datetime,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=get_current_utc_datetime,
        onupdate=get_current_utc_datetime,
        server_default=func.now(),
    )
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    deck = relationship("Deck", back_populates="flashcards")
    generation = relationship("Generation", back_populates="flashcards")
    tags = relationship("Tag", secondary="flashcard_tags", back_populates="flashcards")
