from insidemeter.core.core import Service
from insidemeter.core.modules.session.models import SessionId
from insidemeter.core.modules.user.models import User
from insidemeter.errors import AuthenticationError


class AccessService(Service):
    """Resolves identity from either credential kind."""

    async def resolve_identity(self, bearer_token: str | None, session_id: SessionId | None) -> User | None:
        """Bearer token first, then session cookie; None when neither is valid."""
        if bearer_token:
            user = self.core.services.token.find_user(bearer_token)
            if user is not None:
                return user
        if session_id:
            return await self.core.services.session.find_session_user(session_id)
        return None

    async def ensure_authenticated(self, bearer_token: str | None, session_id: SessionId | None) -> User:
        """Ensure the request carries a valid credential of either kind."""
        user = await self.resolve_identity(bearer_token, session_id)
        if user is None:
            raise AuthenticationError
        return user
