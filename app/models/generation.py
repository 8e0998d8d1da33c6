from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, func
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import relationship
from app.db.deps import Base
from app.db.types import BigIntId
from app.utils.datetime_utils import get_current_utc_datetime


class Generation(Base):
    """Metadata of one AI generation call. Suggestions themselves are not stored."""

    __tablename__ = "generations"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    deck_id = Column(BigIntId, ForeignKey("decks.id"), nullable=False, index=True)
    user_id = Column(PG_UUID(as_uuid=True), nullable=False, index=True)
    model = Column(String, nullable=False)
    generated_count = Column(Integer, nullable=False, default=0)
    accepted_unedited_count = Column(Integer, nullable=False, default=0)
    accepted_edited_count = Column(Integer, nullable=False, default=0)
    # sha256 hex of the trimmed source text
    source_text_hash = Column(String(64), nullable=False, index=True)
    source_text_length = Column(Integer, nullable=False)
    # milliseconds
    generation_duration = Column(Integer, nullable=False)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=get_current_utc_datetime,
        server_default=func.now(),
        index=True,
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=get_current_utc_datetime,
        onupdate=get_current_utc_datetime,
        server_default=func.now(),
    )

    flashcards = relationship("Flashcard", back_populates="generation")


class GenerationErrorLog(Base):
    """Append-only audit trail of failed generation calls."""

    __tablename__ = "generation_error_logs"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    user_id = Column(PG_UUID(as_uuid=True), nullable=False, index=True)
    model = Column(String, nullable=False)
    source_text_hash = Column(String(64), nullable=False)
    source_text_length = Column(Integer, nullable=False)
    error_code = Column(String(100), nullable=False)
    error_message = Column(Text, nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=get_current_utc_datetime,
        server_default=func.now(),
    )
