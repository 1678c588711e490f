from datetime import UTC, datetime, timedelta
from typing import Any

import structlog
from pymongo.asynchronous.database import AsyncDatabase

from insidemeter.core.core import Service
from insidemeter.core.modules.token.codec import TokenCodec
from insidemeter.core.modules.user.models import User
from insidemeter.errors import AuthenticationError
from insidemeter.logging import token_preview
from insidemeter.utils import now_millis

logger = structlog.get_logger(__name__)

# Stored on revocation; no issued token can ever equal it
REVOKED_TOKEN = "revoked"


class TokenService(Service):
    """Issues and resolves iOS bearer tokens.

    A user holds at most one active token: issuing stores it on the user record,
    and a presented token that differs from the stored one is rejected.
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._codec: TokenCodec | None = None

    @property
    def codec(self) -> TokenCodec:
        if self._codec is None:
            config = self.core.config
            self._codec = TokenCodec(config.session_secret_key, timedelta(days=config.token_max_age_days))
        return self._codec

    async def issue_token(self, user_id: int) -> tuple[str, datetime]:
        """Create a token for the user and make it the user's only valid one."""
        issued_at = now_millis()
        token = self.codec.issue(user_id, issued_at)
        expires = datetime.fromtimestamp(self.codec.expires_at_millis(issued_at) / 1000, tz=UTC)
        await self.core.services.user.set_ios_auth_token(user_id, token, expires)
        logger.info("ios_token_issued", user_id=user_id, expires=expires.isoformat())
        return token, expires

    def authenticate(self, token: str) -> User:
        """Resolve a presented token to its user, raising AuthenticationError on any failure."""
        claims = self.codec.verify(token)
        if claims is None:
            logger.info("ios_token_rejected", reason="invalid_or_expired", token=token_preview(token))
            raise AuthenticationError

        user = self.core.services.user.find_user(claims.subject_id)
        if user is None:
            logger.info("ios_token_rejected", reason="user_not_found", user_id=claims.subject_id)
            raise AuthenticationError

        if user.ios_auth_token and user.ios_auth_token != token:
            logger.info("ios_token_rejected", reason="token_mismatch", user_id=user.id)
            raise AuthenticationError

        return user

    def find_user(self, token: str) -> User | None:
        try:
            return self.authenticate(token)
        except AuthenticationError:
            return None

    async def revoke_token(self, user_id: int) -> None:
        """Replace the stored token with a marker so that every token issued so far stops matching."""
        await self.core.services.user.set_ios_auth_token(user_id, REVOKED_TOKEN, None)
        logger.info("ios_token_revoked", user_id=user_id)
