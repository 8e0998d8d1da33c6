from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from app.schemas.common import IdStr, UtcDatetime
from app.utils.enums import TagScope


TagName = Annotated[str, StringConstraints(min_length=1, max_length=50, strip_whitespace=True)]


class TagCreate(BaseModel):
    name: TagName
    deck_id: int = Field(..., gt=0)


class TagUpdate(BaseModel):
    name: TagName


class TagOut(BaseModel):
    id: IdStr
    name: str
    scope: TagScope
    deck_id: Optional[IdStr] = None
    created_at: UtcDatetime
    usage_count: int = 0

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_tag(cls, tag, usage_count: int = 0) -> "TagOut":
        out = cls.model_validate(tag)
        out.usage_count = usage_count
        return out


class TagListOut(BaseModel):
    data: List[TagOut]
