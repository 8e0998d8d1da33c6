import enum
from typing import Type

from sqlalchemy import BigInteger, Enum, Integer

# BIGINT identity on Postgres; SQLite only autoincrements INTEGER primary keys
BigIntId = BigInteger().with_variant(Integer, "sqlite")


def value_enum(enum_cls: Type[enum.Enum], name: str) -> Enum:
    """Enum column persisted by member value ("ai-full"), not member name."""
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
