"""Web session models."""

from datetime import datetime
from typing import NewType
from uuid import UUID, uuid4

from pydantic import Field

from insidemeter.core.db import MongoModel
from insidemeter.utils import now

SessionId = NewType("SessionId", str)

SESSION_COOKIE_NAME = "session_id"


class Session(MongoModel):
    """Browser session referenced by the session cookie.

    Indexed on session_id - unique, user_id, created_at (TTL, session_max_age_days).
    """

    id: UUID = Field(alias="_id", serialization_alias="id", default_factory=uuid4)
    user_id: int
    session_id: str
    created_at: datetime = Field(default_factory=now)
