"""Client-side identity: one ``AuthState`` view over two credential models.

``IdentityResolver`` picks a backend once, when it is created: the native app
uses ``BearerTokenBackend`` (stored token, probed against the server), the
browser uses ``CookieSessionBackend`` (cached "who am I" query riding on the
session cookie). Every failure ends in the anonymous state; the resolver never
stays in LOADING longer than ``max_loading_seconds``.
"""

import asyncio
import time
from collections.abc import Callable
from enum import StrEnum
from typing import Any, Protocol

import httpx
import pydantic
import structlog
from pydantic import BaseModel, ConfigDict

from insidemeter.client.config import ClientConfig
from insidemeter.client.dispatcher import RequestDispatcher
from insidemeter.client.errors import ClientError, TokenStorageError
from insidemeter.client.platform import PlatformDetector
from insidemeter.client.storage import KeyValueStore
from insidemeter.client.token_store import TokenStore

logger = structlog.get_logger(__name__)

AUTH_STATUS_PATH = "/api/auth/status"
LOGOUT_PATH = "/api/logout"
NATIVE_LOGIN_ROUTE = "/ios-login"
HOME_ROUTE = "/"

# Local keys a browser logout wipes
BROWSER_LOGOUT_KEYS = ("guestSession", "iosAuthToken", "ios_token")


class AuthPhase(StrEnum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


class SessionUser(BaseModel):
    """User object from ``/api/auth/status``; fields beyond id/username are kept as-is."""

    id: int
    username: str

    model_config = ConfigDict(extra="allow", frozen=True)


class AuthState(BaseModel):
    phase: AuthPhase = AuthPhase.UNINITIALIZED
    user: SessionUser | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_authenticated(self) -> bool:
        return self.phase == AuthPhase.AUTHENTICATED

    @property
    def is_loading(self) -> bool:
        return self.phase in (AuthPhase.UNINITIALIZED, AuthPhase.LOADING)


def parse_auth_status(data: Any) -> SessionUser | None:
    """Return the user from an auth status body, None unless it says authenticated with a valid user."""
    if not isinstance(data, dict) or data.get("isAuthenticated") is not True or not data.get("user"):
        return None
    try:
        return SessionUser.model_validate(data["user"])
    except pydantic.ValidationError:
        logger.warning("auth_status_user_malformed")
        return None


class IdentityBackend(Protocol):
    logout_route: str

    async def probe(self) -> SessionUser | None: ...

    def invalidate(self) -> None: ...

    async def logout(self) -> None: ...


class BearerTokenBackend:
    """Native app: identity comes from the stored token, confirmed by the server."""

    logout_route = NATIVE_LOGIN_ROUTE

    def __init__(self, dispatcher: RequestDispatcher, token_store: TokenStore, config: ClientConfig) -> None:
        self._dispatcher = dispatcher
        self._token_store = token_store
        self._config = config

    async def probe(self) -> SessionUser | None:
        if self._token_store.get() is None:
            logger.debug("native_auth_no_token")
            return None

        if self._token_store.is_expired(self._config.token_max_age_hours):
            logger.info("native_auth_token_expired")
            self._clear_token()
            return None

        try:
            data = await self._dispatcher.fetch_json(AUTH_STATUS_PATH)
        except Exception as e:
            # Any failure, including a closed HTTP client, means the token is no good
            logger.info("native_auth_probe_failed", error=str(e))
            self._clear_token()
            return None

        user = parse_auth_status(data)
        if user is None:
            logger.info("native_auth_rejected")
            self._clear_token()
        return user

    def invalidate(self) -> None:
        """Nothing is cached on the native path."""

    async def logout(self) -> None:
        self._token_store.remove()

    def _clear_token(self) -> None:
        try:
            self._token_store.remove()
        except TokenStorageError:
            logger.exception("native_auth_token_clear_failed")


class CookieSessionBackend:
    """Browser: a cached query of the auth status endpoint, authenticated by the session cookie."""

    logout_route = HOME_ROUTE

    def __init__(
        self,
        dispatcher: RequestDispatcher,
        local_store: KeyValueStore,
        config: ClientConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._dispatcher = dispatcher
        self._local_store = local_store
        self._config = config
        self._clock = clock
        self._cached: SessionUser | None = None
        self._fetched_at: float | None = None

    @property
    def is_fresh(self) -> bool:
        return self._fetched_at is not None and self._clock() - self._fetched_at < self._config.session_stale_seconds

    async def probe(self) -> SessionUser | None:
        if self.is_fresh:
            return self._cached

        # One retry after a short delay, then give up as anonymous
        for attempt in range(2):
            try:
                data = await self._dispatcher.fetch_json(AUTH_STATUS_PATH)
            except (ClientError, httpx.HTTPError) as e:
                logger.info("web_auth_probe_failed", attempt=attempt + 1, error=str(e))
                if attempt == 0:
                    await asyncio.sleep(self._config.session_retry_delay_seconds)
                continue
            self._cached = parse_auth_status(data)
            self._fetched_at = self._clock()
            return self._cached
        return None

    def invalidate(self) -> None:
        self._fetched_at = None

    async def logout(self) -> None:
        try:
            await self._dispatcher.fetch_response(LOGOUT_PATH, method="POST")
        except (ClientError, httpx.HTTPError) as e:
            logger.warning("web_logout_request_failed", error=str(e))
        finally:
            self._cached = None
            self._fetched_at = None
            for key in BROWSER_LOGOUT_KEYS:
                try:
                    self._local_store.remove(key)
                except Exception:
                    logger.warning("web_logout_local_clear_failed", key=key, exc_info=True)


class IdentityResolver:
    """The client's auth state machine.

    UNINITIALIZED -> LOADING -> AUTHENTICATED | ANONYMOUS, and back to LOADING on refresh.
    Overlapping probes are not de-duplicated; the last one to finish wins.
    """

    def __init__(
        self,
        detector: PlatformDetector,
        bearer_backend: BearerTokenBackend,
        cookie_backend: CookieSessionBackend,
        navigate: Callable[[str], None],
        config: ClientConfig,
    ) -> None:
        self.is_native = detector.is_native_app()
        self.backend: IdentityBackend = bearer_backend if self.is_native else cookie_backend
        self._navigate = navigate
        self._config = config
        self._state = AuthState()
        self._listeners: list[Callable[[AuthState], None]] = []

    @property
    def state(self) -> AuthState:
        return self._state

    def subscribe(self, listener: Callable[[AuthState], None]) -> Callable[[], None]:
        """Register a state listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def initialize(self) -> AuthState:
        """Probe the backend and settle in AUTHENTICATED or ANONYMOUS."""
        self._set_state(AuthState(phase=AuthPhase.LOADING))
        try:
            user = await asyncio.wait_for(self.backend.probe(), timeout=self._config.max_loading_seconds)
        except TimeoutError:
            logger.warning("auth_probe_timed_out", timeout=self._config.max_loading_seconds)
            user = None
        except Exception:
            logger.exception("auth_probe_crashed")
            user = None

        if user is None:
            self._set_state(AuthState(phase=AuthPhase.ANONYMOUS))
        else:
            self._set_state(AuthState(phase=AuthPhase.AUTHENTICATED, user=user))
        return self._state

    async def refresh(self) -> AuthState:
        self.backend.invalidate()
        return await self.initialize()

    async def handle_auth_success(self) -> AuthState:
        """React to an external login (e.g. OAuth deep-link return)."""
        logger.info("auth_success_event", native=self.is_native)
        return await self.refresh()

    async def logout(self) -> None:
        """Log out and navigate away. Local state is anonymous afterwards even if logout fails.

        Raises TokenStorageError when the stored token could not be fully removed.
        """
        try:
            await self.backend.logout()
        finally:
            self._set_state(AuthState(phase=AuthPhase.ANONYMOUS))
            self._navigate(self.backend.logout_route)

    def _set_state(self, state: AuthState) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(state)
