from typing import Annotated, cast

from fastapi import Depends, Request
from fastapi.security import APIKeyCookie, APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

from insidemeter.app import App
from insidemeter.core.modules.session.models import SESSION_COOKIE_NAME, SessionId
from insidemeter.core.modules.user.models import User
from insidemeter.errors import AuthenticationError

IOS_TOKEN_HEADER = "X-iOS-Auth-Token"

# Security schemes
bearer_scheme = HTTPBearer(auto_error=False)
ios_token_scheme = APIKeyHeader(name=IOS_TOKEN_HEADER, auto_error=False)
session_cookie_scheme = APIKeyCookie(name=SESSION_COOKIE_NAME, auto_error=False)


async def get_app(request: Request) -> App:
    return cast(App, request.app.state.app)


async def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)] = None,
    ios_token: Annotated[str | None, Depends(ios_token_scheme)] = None,
) -> str | None:
    """Token from ``Authorization: Bearer`` (preferred) or the iOS app's own header."""
    if credentials and credentials.scheme.lower() == "bearer" and credentials.credentials:
        return credentials.credentials
    if ios_token:
        return ios_token
    return None


async def get_session_id(session_cookie: Annotated[str | None, Depends(session_cookie_scheme)] = None) -> SessionId | None:
    return SessionId(session_cookie) if session_cookie else None


async def require_bearer_user(
    app: Annotated[App, Depends(get_app)],
    token: Annotated[str | None, Depends(get_bearer_token)],
) -> User:
    """Reject the request with 401 unless it carries a valid iOS token."""
    if not token:
        raise AuthenticationError
    return app.authenticate_bearer(token)


async def optional_bearer_user(
    app: Annotated[App, Depends(get_app)],
    token: Annotated[str | None, Depends(get_bearer_token)],
) -> User | None:
    """Same checks as require_bearer_user, but a missing or bad token just means a guest."""
    if not token:
        return None
    return app.find_bearer_user(token)


async def require_session_user(
    app: Annotated[App, Depends(get_app)],
    session_id: Annotated[SessionId | None, Depends(get_session_id)],
) -> User:
    """Reject the request with 401 unless it carries a valid session cookie."""
    if not session_id:
        raise AuthenticationError
    return await app.authenticate_session(session_id)


# Type aliases for dependencies
AppDep = Annotated[App, Depends(get_app)]
BearerTokenDep = Annotated[str | None, Depends(get_bearer_token)]
SessionIdDep = Annotated[SessionId | None, Depends(get_session_id)]
BearerUserDep = Annotated[User, Depends(require_bearer_user)]
OptionalBearerUserDep = Annotated[User | None, Depends(optional_bearer_user)]
SessionUserDep = Annotated[User, Depends(require_session_user)]
