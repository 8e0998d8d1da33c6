from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, model_validator

from app.schemas.common import IdStr, Pagination, UtcDatetime
from app.utils.enums import FlashcardSource, TagScope


FrontText = Annotated[str, StringConstraints(min_length=1, max_length=200, strip_whitespace=True)]
BackText = Annotated[str, StringConstraints(min_length=1, max_length=500, strip_whitespace=True)]


class FlashcardCreate(BaseModel):
    deck_id: int = Field(..., gt=0)
    front: FrontText
    back: BackText
    tag_ids: List[int] = Field(default_factory=list, max_length=50)


class FlashcardUpdate(BaseModel):
    front: Optional[FrontText] = None
    back: Optional[BackText] = None
    deck_id: Optional[int] = Field(None, gt=0)

    @model_validator(mode="after")
    def _require_a_field(self):
        if self.front is None and self.back is None and self.deck_id is None:
            raise ValueError("At least one field must be provided for update")
        return self


class FlashcardTagsAdd(BaseModel):
    tag_ids: List[int] = Field(..., min_length=1, max_length=50)


class FlashcardTagOut(BaseModel):
    id: IdStr
    name: str
    scope: TagScope

    model_config = ConfigDict(from_attributes=True)


class FlashcardOut(BaseModel):
    id: IdStr
    deck_id: IdStr
    front: str
    back: str
    source: FlashcardSource
    generation_id: Optional[IdStr] = None
    tags: List[FlashcardTagOut] = []
    created_at: UtcDatetime
    updated_at: UtcDatetime

    model_config = ConfigDict(from_attributes=True)


class FlashcardListOut(BaseModel):
    data: List[FlashcardOut]
    pagination: Pagination
