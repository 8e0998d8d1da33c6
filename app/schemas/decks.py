from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, model_validator

from app.schemas.common import IdStr, Pagination, UtcDatetime
from app.utils.enums import DeckVisibility


DeckName = Annotated[str, StringConstraints(min_length=1, max_length=100, strip_whitespace=True)]
DeckDescription = Annotated[str, StringConstraints(max_length=5000)]


class DeckCreate(BaseModel):
    name: DeckName
    description: Optional[DeckDescription] = None


class DeckUpdate(BaseModel):
    name: Optional[DeckName] = None
    description: Optional[DeckDescription] = None

    @model_validator(mode="after")
    def _require_a_field(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


class DeckOut(BaseModel):
    id: IdStr
    name: str
    description: Optional[str] = None
    visibility: DeckVisibility
    is_default: bool
    flashcard_count: int = 0
    created_at: UtcDatetime
    updated_at: UtcDatetime

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_deck(cls, deck, flashcard_count: int = 0) -> "DeckOut":
        out = cls.model_validate(deck)
        out.flashcard_count = flashcard_count
        return out


class DeckListOut(BaseModel):
    data: List[DeckOut]
    pagination: Pagination


class MigrationTagOut(BaseModel):
    id: IdStr
    name: str


class DeckDeletionOut(BaseModel):
    message: str
    migrated_flashcards_count: int = Field(..., ge=0)
    migration_tag: MigrationTagOut
