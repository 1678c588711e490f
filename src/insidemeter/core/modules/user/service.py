import hmac
from datetime import datetime
from typing import Any

import bcrypt
import structlog
from pymongo.asynchronous.database import AsyncDatabase

from insidemeter.core.core import Service
from insidemeter.core.modules.counter.models import CounterType
from insidemeter.core.modules.user.models import User, UserRole
from insidemeter.core.modules.user.validators import normalize_login, validate_password, validate_username
from insidemeter.errors import NotFoundError, ValidationError

logger = structlog.get_logger(__name__)

BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, stored: str | None) -> bool:
    """Check a password against a stored value.

    Stored values that are not bcrypt hashes are legacy plain-text passwords.
    """
    if not stored:
        return False
    if stored.startswith(BCRYPT_PREFIXES):
        return bcrypt.checkpw(password.encode("utf-8"), stored.encode("utf-8"))
    return hmac.compare_digest(password.encode("utf-8"), stored.encode("utf-8"))


class UserService(Service):
    """Manages users with in-memory cache."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("users")
        self._users: dict[int, User] = {}

    def get_user(self, user_id: int) -> User:
        """Get user by ID from cache."""
        if user_id not in self._users:
            raise NotFoundError(f"User '{user_id}' not found")
        return self._users[user_id]

    def find_user(self, user_id: int) -> User | None:
        """Get user by ID from cache, None if missing."""
        return self._users.get(user_id)

    def find_by_login(self, login: str) -> User | None:
        """Find user by username, or by email when the login contains '@'."""
        login = normalize_login(login)
        if "@" in login:
            return next((u for u in self._users.values() if u.email and u.email.lower() == login), None)
        return next((u for u in self._users.values() if u.username == login), None)

    def has_username(self, username: str) -> bool:
        """Check if username exists."""
        return any(user.username == username for user in self._users.values())

    def has_email(self, email: str) -> bool:
        email = normalize_login(email)
        return any(user.email is not None and user.email.lower() == email for user in self._users.values())

    def cache_user(self, user: User) -> User:
        """Put a user into the cache, replacing any previous copy."""
        self._users[user.id] = user
        return user

    async def create_user(
        self,
        username: str,
        password: str,
        email: str | None = None,
        name: str | None = None,
        role: UserRole = UserRole.USER,
    ) -> User:
        """Create user with hashed password."""
        username = normalize_login(username)
        validate_username(username)
        if self.has_username(username):
            raise ValidationError(f"User '{username}' already exists")
        if email is not None:
            email = normalize_login(email)
            if "@" not in email:
                raise ValidationError("Invalid email address")
            if self.has_email(email):
                raise ValidationError("Email is already registered")

        validate_password(password)
        user_id = await self.core.services.counter.get_next_sequence(CounterType.USER)
        user = User(
            id=user_id,
            username=username,
            email=email,
            name=name,
            password_hash=hash_password(password),
            role=role,
        )
        await self._collection.insert_one(user.to_mongo())
        logger.info("user_created", user_id=user_id, username=username)
        return self.cache_user(user)

    async def verify_credentials(self, login: str, password: str) -> User | None:
        """Return the user if login and password match, upgrading legacy plain-text passwords."""
        user = self.find_by_login(login)
        if user is None or not check_password(password, user.password_hash):
            return None

        if user.password_hash is not None and not user.password_hash.startswith(BCRYPT_PREFIXES):
            await self._collection.update_one({"_id": user.id}, {"$set": {"password_hash": hash_password(password)}})
            user = await self.update_user_cache(user.id)
            logger.info("legacy_password_upgraded", user_id=user.id)
        return user

    async def set_ios_auth_token(self, user_id: int, token: str | None, expires: datetime | None) -> User:
        """Store (or clear, with None) the user's active iOS bearer token."""
        await self._collection.update_one(
            {"_id": user_id}, {"$set": {"ios_auth_token": token, "ios_token_expires": expires}}
        )
        return await self.update_user_cache(user_id)

    async def update_all_users_cache(self) -> None:
        """Reload all users cache from database."""
        users = await User.list_cursor(self._collection.find())
        self._users = {user.id: user for user in users}

    async def update_user_cache(self, user_id: int) -> User:
        """Reload a specific user cache from database."""
        user = await self._collection.find_one({"_id": user_id})
        if user is None:
            raise NotFoundError(f"User '{user_id}' not found")
        return self.cache_user(User.model_validate(user))

    async def on_start(self) -> None:
        """Initialize indexes and cache."""
        await self._collection.create_index([("username", 1)], unique=True)
        await self._collection.create_index(
            [("email", 1)], unique=True, partialFilterExpression={"email": {"$type": "string"}}
        )
        await self.update_all_users_cache()
        logger.debug("user_service_started", user_count=len(self._users))
