from fastapi import APIRouter

from insidemeter.core.modules.user.models import UserView
from insidemeter.web.deps import AppDep, BearerTokenDep, BearerUserDep, SessionIdDep
from insidemeter.web.openapi import ErrorResponse

router = APIRouter(tags=["profile"])


@router.get(
    "/profile",
    summary="Get current user profile",
    description="Get the profile of the currently authenticated user (iOS token or session cookie).",
    operation_id="getCurrentUserProfile",
    responses={
        200: {"description": "Current user profile"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def get_profile(app: AppDep, bearer_token: BearerTokenDep, session_id: SessionIdDep) -> UserView:
    return await app.get_current_user(bearer_token, session_id)


@router.get(
    "/ios/profile",
    summary="Get iOS user profile",
    description="Get the profile of the user owning the presented iOS token.",
    operation_id="getIOSProfile",
    responses={
        200: {"description": "Current user profile"},
        401: {"model": ErrorResponse, "description": "Missing, invalid, expired or superseded token"},
    },
)
async def get_ios_profile(user: BearerUserDep) -> UserView:
    return UserView.from_domain(user)
