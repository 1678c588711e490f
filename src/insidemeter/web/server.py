from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from insidemeter.app import App
from insidemeter.config import Config
from insidemeter.errors import UserError
from insidemeter.web.deps import IOS_TOKEN_HEADER
from insidemeter.web.error_handlers import general_exception_handler, user_error_handler
from insidemeter.web.openapi import set_custom_openapi
from insidemeter.web.routers import auth_router, profile_router


def create_fastapi_app(app_instance: App, config: Config) -> FastAPI:
    """Create and configure FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        """FastAPI application lifespan management."""
        async with app_instance.lifespan():
            yield

    app = FastAPI(
        title="InsideMeter API",
        lifespan=lifespan,
        openapi_tags=[],  # Tags will be added by custom OpenAPI function
    )
    # Store app instance and config in app state
    app.state.app = app_instance
    app.state.config = config

    # The iOS app loads from its own scheme, so it is always cross-origin
    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=[IOS_TOKEN_HEADER],
        )

    # Health check endpoint (at root level, not under /api)
    @app.get("/health")
    async def health_check() -> JSONResponse:
        if await app_instance.check_health():
            return JSONResponse({"status": "healthy", "database": "ok"})
        return JSONResponse({"status": "unhealthy", "database": "unreachable"}, status_code=503)

    app.include_router(auth_router, prefix="/api")
    app.include_router(profile_router, prefix="/api")

    # Register error handlers
    app.add_exception_handler(UserError, user_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    set_custom_openapi(app)

    return app
