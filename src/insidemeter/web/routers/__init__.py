from insidemeter.web.routers.auth import router as auth_router
from insidemeter.web.routers.profile import router as profile_router

__all__ = [
    "auth_router",
    "profile_router",
]
