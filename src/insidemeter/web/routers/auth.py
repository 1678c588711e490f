from datetime import datetime

from fastapi import APIRouter, Response
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from insidemeter.app import App
from insidemeter.core.modules.access.models import AuthStatus, LoginResult
from insidemeter.core.modules.session.models import SESSION_COOKIE_NAME
from insidemeter.core.modules.user.models import UserView
from insidemeter.web.deps import (
    IOS_TOKEN_HEADER,
    AppDep,
    BearerUserDep,
    OptionalBearerUserDep,
    SessionIdDep,
    SessionUserDep,
)
from insidemeter.web.openapi import ErrorResponse

router = APIRouter(tags=["auth"])


class LoginRequest(BaseModel):
    """Authentication request."""

    username: str = Field(..., min_length=1, description="Username or email address")
    password: str = Field(..., min_length=1, description="Password for authentication")


class RegisterRequest(BaseModel):
    """Account creation request."""

    username: str = Field(..., min_length=1, description="Username for the new account")
    password: str = Field(..., min_length=1, description="Password for the new account")
    email: str | None = Field(None, description="Email address (optional)")
    name: str | None = Field(None, description="Display name (optional)")


class LoginResponse(BaseModel):
    """Web login response; the token is for clients running inside the iOS app."""

    success: bool = True
    user: UserView
    ios_auth_token: str = Field(..., description="Bearer token for the iOS app")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IOSLoginResponse(BaseModel):
    """Token-only login response for the iOS app."""

    success: bool = True
    token: str = Field(..., description="Bearer token to send in the X-iOS-Auth-Token header")
    expires_at: datetime = Field(..., description="Absolute server-side expiry of the token")
    user: UserView

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _set_session_cookie(app: App, response: Response, result: LoginResult) -> None:
    if result.session_id is None:
        return
    config = app.config
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=result.session_id,
        httponly=True,
        samesite="lax",
        secure=config.secure_cookies,
        max_age=config.session_max_age_days * 24 * 60 * 60,  # match session TTL
    )


@router.post(
    "/login",
    summary="Log in (web and iOS)",
    description="Authenticate with username or email and password. Opens a cookie session and also returns an iOS token.",
    operation_id="login",
    responses={
        200: {"description": "Successfully authenticated"},
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
    },
)
async def login(login_data: LoginRequest, app: AppDep, response: Response) -> LoginResponse:
    result = await app.login(login_data.username, login_data.password)
    _set_session_cookie(app, response, result)
    response.headers[IOS_TOKEN_HEADER] = result.token
    return LoginResponse(user=UserView.from_domain(result.user), ios_auth_token=result.token)


@router.post(
    "/ios-login",
    summary="Log in from the iOS app",
    description="Authenticate and receive a bearer token. No cookie session is created.",
    operation_id="iosLogin",
    responses={
        200: {"description": "Successfully authenticated"},
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
    },
)
async def ios_login(login_data: LoginRequest, app: AppDep) -> IOSLoginResponse:
    result = await app.ios_login(login_data.username, login_data.password)
    return IOSLoginResponse(token=result.token, expires_at=result.token_expires, user=UserView.from_domain(result.user))


@router.post(
    "/register",
    summary="Create account",
    description="Create an account and log it in, exactly like a successful login.",
    operation_id="register",
    status_code=201,
    responses={
        201: {"description": "Account created"},
        400: {"model": ErrorResponse, "description": "Invalid or duplicate username/email"},
    },
)
async def register(register_data: RegisterRequest, app: AppDep, response: Response) -> LoginResponse:
    result = await app.register(register_data.username, register_data.password, register_data.email, register_data.name)
    _set_session_cookie(app, response, result)
    response.headers[IOS_TOKEN_HEADER] = result.token
    return LoginResponse(user=UserView.from_domain(result.user), ios_auth_token=result.token)


@router.get(
    "/auth/status",
    summary="Who am I",
    description="Report the caller's identity. Checks the iOS token first, then the session cookie. Never returns 401.",
    operation_id="getAuthStatus",
    responses={200: {"description": "Identity of the caller"}},
)
async def auth_status(app: AppDep, bearer_user: OptionalBearerUserDep, session_id: SessionIdDep) -> AuthStatus:
    return await app.get_auth_status(bearer_user, session_id)


@router.post(
    "/logout",
    summary="End web session",
    description="Invalidate the cookie session. Succeeds even when no session is present.",
    operation_id="logout",
    status_code=204,
    responses={204: {"description": "Successfully logged out"}},
)
async def logout(app: AppDep, session_id: SessionIdDep, response: Response) -> None:
    await app.logout(session_id)
    response.delete_cookie(SESSION_COOKIE_NAME)


@router.post(
    "/ios/logout",
    summary="Revoke iOS token",
    description="Invalidate the caller's iOS token on the server.",
    operation_id="iosLogout",
    status_code=204,
    responses={
        204: {"description": "Token revoked"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def ios_logout(app: AppDep, user: BearerUserDep) -> None:
    await app.ios_logout(user)


@router.get(
    "/ios/auth/status",
    summary="Check iOS token",
    description="Confirm that the presented iOS token is valid and report its user.",
    operation_id="getIOSAuthStatus",
    responses={
        200: {"description": "Token is valid"},
        401: {"model": ErrorResponse, "description": "Missing, invalid, expired or superseded token"},
    },
)
async def ios_auth_status(user: BearerUserDep) -> AuthStatus:
    return AuthStatus.for_user(user)


@router.post(
    "/auth/ios-token",
    summary="Issue iOS token for web session",
    description="Exchange a signed-in cookie session for an iOS token, e.g. at the end of an OAuth flow.",
    operation_id="issueIOSToken",
    responses={
        200: {"description": "Token issued"},
        401: {"model": ErrorResponse, "description": "No valid session"},
    },
)
async def issue_ios_token(app: AppDep, user: SessionUserDep) -> IOSLoginResponse:
    result = await app.issue_ios_token(user)
    return IOSLoginResponse(token=result.token, expires_at=result.token_expires, user=UserView.from_domain(result.user))
