from urllib.parse import parse_qs, urlsplit

import structlog

from insidemeter.client.auth_state import IdentityResolver
from insidemeter.client.config import ClientConfig
from insidemeter.client.token_store import TokenStore
from insidemeter.logging import token_preview

logger = structlog.get_logger(__name__)

AUTH_SUCCESS_PATH = "auth/success"


class DeepLinkHandler:
    """Handles ``insidemeter://auth/success?token=...`` after an external (OAuth) login."""

    def __init__(self, config: ClientConfig, token_store: TokenStore, resolver: IdentityResolver) -> None:
        self._config = config
        self._token_store = token_store
        self._resolver = resolver

    def extract_token(self, url: str) -> str | None:
        parts = urlsplit(url)
        if parts.scheme != self._config.app_scheme:
            return None
        if f"{parts.netloc}{parts.path}".strip("/") != AUTH_SUCCESS_PATH:
            return None
        tokens = parse_qs(parts.query).get("token")
        return tokens[0] if tokens else None

    async def handle(self, url: str) -> bool:
        """Store the token from an auth-success link and refresh identity. Returns False for other links."""
        if not self._resolver.is_native:
            return False
        token = self.extract_token(url)
        if token is None:
            logger.debug("deep_link_ignored", url=urlsplit(url)._replace(query="").geturl())
            return False

        self._token_store.set(token)
        logger.info("deep_link_token_stored", token=token_preview(token))
        await self._resolver.handle_auth_success()
        return True
