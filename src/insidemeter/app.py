from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog

from insidemeter.config import Config
from insidemeter.core.core import Core
from insidemeter.core.modules.access.models import AuthStatus, LoginResult
from insidemeter.core.modules.session.models import SessionId
from insidemeter.core.modules.user.models import User, UserView
from insidemeter.errors import AuthenticationError

logger = structlog.get_logger(__name__)


class App:
    """Facade for all application operations, resolves identity before delegating to Core."""

    def __init__(self, config: Config) -> None:
        self._core = Core(config)

    @property
    def config(self) -> Config:
        return self._core.config

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Application lifespan management - delegates to Core."""
        async with self._core.lifespan():
            yield

    async def check_health(self) -> bool:
        return await self._core.ping()

    # === Identity resolution (used by web dependencies) ===
    def authenticate_bearer(self, token: str) -> User:
        """Resolve a bearer token to its user or raise AuthenticationError."""
        return self._core.services.token.authenticate(token)

    def find_bearer_user(self, token: str) -> User | None:
        """Resolve a bearer token to its user, None on any failure."""
        return self._core.services.token.find_user(token)

    async def authenticate_session(self, session_id: SessionId) -> User:
        """Resolve a session cookie to its user or raise AuthenticationError."""
        return await self._core.services.session.get_session_user(session_id)

    async def get_auth_status(self, bearer_user: User | None, session_id: SessionId | None) -> AuthStatus:
        """Report who the caller is, preferring an already resolved token user; never fails for anonymous callers."""
        user = bearer_user
        if user is None and session_id:
            user = await self._core.services.session.find_session_user(session_id)
        return AuthStatus.for_user(user)

    async def get_current_user(self, bearer_token: str | None, session_id: SessionId | None) -> UserView:
        """Get current authenticated user profile, by either credential."""
        user = await self._core.services.access.ensure_authenticated(bearer_token, session_id)
        return UserView.from_domain(user)

    # === Login / logout ===
    async def login(self, login: str, password: str) -> LoginResult:
        """Authenticate, open a browser session and issue an iOS token for cross-platform clients."""
        user = await self._verify_credentials(login, password)
        session_id = await self._core.services.session.create_session(user.id)
        token, expires = await self._core.services.token.issue_token(user.id)
        user = self._core.services.user.get_user(user.id)
        return LoginResult(user=user, token=token, token_expires=expires, session_id=session_id)

    async def ios_login(self, login: str, password: str) -> LoginResult:
        """Authenticate and issue an iOS token without opening a browser session."""
        user = await self._verify_credentials(login, password)
        token, expires = await self._core.services.token.issue_token(user.id)
        user = self._core.services.user.get_user(user.id)
        return LoginResult(user=user, token=token, token_expires=expires)

    async def register(self, username: str, password: str, email: str | None, name: str | None) -> LoginResult:
        """Create an account and log it in."""
        user = await self._core.services.user.create_user(username, password, email=email, name=name)
        session_id = await self._core.services.session.create_session(user.id)
        token, expires = await self._core.services.token.issue_token(user.id)
        user = self._core.services.user.get_user(user.id)
        return LoginResult(user=user, token=token, token_expires=expires, session_id=session_id)

    async def issue_ios_token(self, user: User) -> LoginResult:
        """Hand a signed-in browser session a token for the iOS app."""
        token, expires = await self._core.services.token.issue_token(user.id)
        return LoginResult(user=self._core.services.user.get_user(user.id), token=token, token_expires=expires)

    async def logout(self, session_id: SessionId | None) -> None:
        """End a browser session. Succeeds even without a session."""
        if session_id:
            await self._core.services.session.invalidate_session(session_id)

    async def ios_logout(self, user: User) -> None:
        """Invalidate the user's iOS token server-side."""
        await self._core.services.token.revoke_token(user.id)

    # === Private helpers ===
    async def _verify_credentials(self, login: str, password: str) -> User:
        user = await self._core.services.user.verify_credentials(login, password)
        if user is None:
            logger.info("login_failed", login=login)
            raise AuthenticationError("Invalid username or password")
        return user
