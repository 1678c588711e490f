"""Outgoing API calls for both client platforms.

The native app runs on its own URL scheme and cannot share cookies with the
web origin, so it calls the API's absolute URL and carries its token in a
header. The browser calls same-origin paths and relies on the session cookie.
Callers never need to know which of the two they are on.
"""

from typing import Any

import httpx
import structlog

from insidemeter.client.config import ClientConfig
from insidemeter.client.errors import ApiError, MalformedResponseError
from insidemeter.client.platform import PlatformDetector
from insidemeter.client.token_store import TokenStore
from insidemeter.logging import token_preview

logger = structlog.get_logger(__name__)

UNAUTHORIZED_MESSAGE = "Authentication required"


class RequestDispatcher:
    def __init__(
        self,
        client: httpx.AsyncClient,
        detector: PlatformDetector,
        token_store: TokenStore,
        config: ClientConfig,
    ) -> None:
        """``client`` is the browser's same-origin client (its base_url is the page origin)."""
        self._client = client
        self._detector = detector
        self._token_store = token_store
        self._config = config

    def resolve_url(self, path: str, native: bool | None = None) -> str:
        if native is None:
            native = self._detector.is_native_app()
        if native:
            return f"{self._config.base_url.rstrip('/')}{path}"
        return path

    def build_headers(self, native: bool) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if not native:
            return headers
        try:
            token = self._token_store.get()
        except Exception:
            logger.warning("token_lookup_failed", exc_info=True)
            token = None
        if token:
            headers[self._config.token_header] = token
        return headers

    async def fetch_response(self, path: str, method: str = "GET", body: Any | None = None) -> httpx.Response:
        """Send a request and return the response. Raises ApiError for non-2xx statuses."""
        native = self._detector.is_native_app()
        headers = self.build_headers(native)
        request = self._client.build_request(
            method,
            self.resolve_url(path, native),
            headers=headers,
            json=body,
        )
        if native:
            # Token only; the web session cookie must not ride along
            request.headers.pop("Cookie", None)

        logger.debug(
            "api_request",
            method=method,
            url=str(request.url),
            credentials="omit" if native else "include",
            token=token_preview(headers.get(self._config.token_header)),
        )
        response = await self._client.send(request)

        if not response.is_success:
            if response.status_code == 401:
                raise ApiError(401, UNAUTHORIZED_MESSAGE)
            raise ApiError(response.status_code, response.text or response.reason_phrase)
        return response

    async def fetch_json(self, path: str, method: str = "GET", body: Any | None = None) -> Any:
        """Send a request and return the decoded JSON body."""
        response = await self.fetch_response(path, method, body)
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Invalid JSON response from {path}") from e
