"""Anonymous guest identity kept entirely in local storage.

The server only ever sees ``guest_id`` as a query parameter tying anonymous mood
entries together. After more than one entry the guest is nudged to sign up.
"""

import secrets
import string

import structlog
from pydantic import BaseModel, Field

from insidemeter.client.storage import KeyValueStore
from insidemeter.utils import now_millis

logger = structlog.get_logger(__name__)

GUEST_SESSION_KEY = "guestSession"
ACCOUNT_PROMPT_THRESHOLD = 1  # needs_account once mood_count exceeds this
BASE36 = string.digits + string.ascii_lowercase


def new_guest_id() -> str:
    suffix = "".join(secrets.choice(BASE36) for _ in range(9))
    return f"guest_{now_millis()}_{suffix}"


class GuestSession(BaseModel):
    guest_id: str = Field(alias="guestId")
    mood_count: int = Field(0, alias="moodCount")
    needs_account: bool = Field(False, alias="needsAccount")

    model_config = {"populate_by_name": True}

    def with_count(self, count: int) -> "GuestSession":
        return self.model_copy(update={"mood_count": count, "needs_account": count > ACCOUNT_PROMPT_THRESHOLD})


class GuestSessionManager:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def load_or_create(self) -> GuestSession:
        try:
            raw = self._store.get(GUEST_SESSION_KEY)
            if raw:
                return GuestSession.model_validate_json(raw)
        except (OSError, ValueError) as e:
            logger.warning("guest_session_unreadable", error=str(e))
        return self._save(GuestSession(guest_id=new_guest_id()))

    def sync_count(self, count: int) -> GuestSession:
        """Align the stored count with the number of entries the server reports."""
        session = self.load_or_create()
        if session.mood_count == count:
            return session
        return self._save(session.with_count(count))

    def increment(self) -> GuestSession:
        session = self.load_or_create()
        return self._save(session.with_count(session.mood_count + 1))

    def clear(self) -> None:
        self._store.remove(GUEST_SESSION_KEY)

    def _save(self, session: GuestSession) -> GuestSession:
        self._store.set(GUEST_SESSION_KEY, session.model_dump_json(by_alias=True))
        return session
