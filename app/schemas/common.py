import math
from datetime import datetime
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, BeforeValidator

from app.utils.datetime_utils import ensure_utc


def _id_to_str(value: Any) -> Any:
    return str(value) if isinstance(value, int) else value


# Bigint primary keys go over the wire as strings
IdStr = Annotated[str, BeforeValidator(_id_to_str)]
UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit) if limit else 0)
