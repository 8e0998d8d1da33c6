from sqlalchemy import Column, String, Text, Boolean, DateTime, Index, func, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import relationship
from app.db.deps import Base
from app.db.types import BigIntId, value_enum
from app.utils.datetime_utils import get_current_utc_datetime
from app.utils.enums import DeckVisibility


class Deck(Base):
    __tablename__ = "decks"
    __table_args__ = (
        # Names are unique per user among live decks only
        Index(
            "uq_decks_user_id_name_active",
            "user_id",
            "name",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
        # Exactly one live default deck per user
        Index(
            "uq_decks_user_id_default",
            "user_id",
            unique=True,
            postgresql_where=text("is_default AND deleted_at IS NULL"),
            sqlite_where=text("is_default = 1 AND deleted_at IS NULL"),
        ),
    )

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    user_id = Column(PG_UUID(as_uuid=True), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    visibility = Column(
        value_enum(DeckVisibility, "deck_visibility"),
        nullable=False,
        default=DeckVisibility.private,
    )
    is_default = Column(Boolean, nullable=False, default=False)

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

    flashcards = relationship("Flashcard", back_populates="deck")
    tags = relationship("Tag", back_populates="deck")
