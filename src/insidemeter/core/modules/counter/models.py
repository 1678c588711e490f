"""Auto-incrementing counters for sequential numbering."""

from enum import StrEnum

from pydantic import Field

from insidemeter.core.db import MongoModel


class CounterType(StrEnum):
    """Entities that use sequential integer ids."""

    USER = "user"


class Counter(MongoModel):
    """Atomic counter for sequential ids.

    Uses MongoDB atomic operations to prevent duplicates.
    The counter type is the document _id, so there is one document per type.
    """

    id: CounterType = Field(alias="_id", serialization_alias="id")
    seq: int = 0  # Current value; next number will be seq + 1
