import secrets
from typing import Any

import structlog
from pymongo.asynchronous.database import AsyncDatabase

from insidemeter.core.core import Service
from insidemeter.core.modules.session.models import Session, SessionId
from insidemeter.core.modules.user.models import User
from insidemeter.errors import AuthenticationError

logger = structlog.get_logger(__name__)


class SessionService(Service):
    """Service for managing browser sessions (cookie path)."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("sessions")
        self._session_users: dict[SessionId, int] = {}

    async def on_start(self) -> None:
        """Create indexes on startup."""
        # Unique index for session_id (for cookie lookups)
        await self._collection.create_index([("session_id", 1)], unique=True)
        # Single index for user_id (for finding sessions by user)
        await self._collection.create_index([("user_id", 1)])
        # TTL index for automatic session cleanup
        max_age_seconds = self.core.config.session_max_age_days * 24 * 60 * 60
        await self._collection.create_index([("created_at", 1)], expireAfterSeconds=max_age_seconds)

    async def create_session(self, user_id: int) -> SessionId:
        session_id = SessionId(secrets.token_urlsafe(32))
        new_session = Session(user_id=user_id, session_id=session_id)
        await self._collection.insert_one(new_session.to_mongo())
        self._session_users[session_id] = user_id
        return session_id

    async def get_session_user(self, session_id: SessionId) -> User:
        """Resolve the user behind a session cookie."""
        user_id = self._session_users.get(session_id)
        if user_id is None:
            session = await self._collection.find_one({"session_id": session_id})
            if session is None:
                raise AuthenticationError
            user_id = int(session["user_id"])

        user = self.core.services.user.find_user(user_id)
        if user is None:
            logger.info("session_user_missing", user_id=user_id)
            raise AuthenticationError

        self._session_users[session_id] = user_id
        return user

    async def find_session_user(self, session_id: SessionId) -> User | None:
        try:
            return await self.get_session_user(session_id)
        except AuthenticationError:
            return None

    async def invalidate_session(self, session_id: SessionId) -> None:
        """Invalidate a session by removing it from the database."""
        self._session_users.pop(session_id, None)
        await self._collection.delete_one({"session_id": session_id})
