from typing import Any

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from pydantic import BaseModel, Field

from insidemeter.core.modules.session.models import SESSION_COOKIE_NAME
from insidemeter.web.deps import IOS_TOKEN_HEADER

PUBLIC_ENDPOINTS = {
    ("POST", "/api/login"),
    ("POST", "/api/ios-login"),
    ("POST", "/api/register"),
    ("POST", "/api/logout"),
    ("GET", "/api/auth/status"),
    ("GET", "/health"),
}


def set_custom_openapi(app: FastAPI) -> None:
    def custom_openapi() -> dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        openapi_schema = get_openapi(
            title="InsideMeter API",
            version="0.1.0",
            summary="Mood tracking with lunar correlations: authentication endpoints",
            routes=app.routes,
        )

        openapi_schema.setdefault("components", {})["securitySchemes"] = {
            "BearerAuth": {
                "type": "http",
                "scheme": "bearer",
                "description": "iOS token in the standard Authorization header",
            },
            "IOSAuthToken": {
                "type": "apiKey",
                "in": "header",
                "name": IOS_TOKEN_HEADER,
                "description": "iOS token in the header the app sends",
            },
            "SessionCookie": {
                "type": "apiKey",
                "in": "cookie",
                "name": SESSION_COOKIE_NAME,
                "description": "Browser session cookie",
            },
        }

        # Apply security globally (overridden for public endpoints below)
        openapi_schema["security"] = [
            {"BearerAuth": []},
            {"IOSAuthToken": []},
            {"SessionCookie": []},
        ]

        for path, path_item in openapi_schema["paths"].items():
            for method, operation in path_item.items():
                if (method.upper(), path) in PUBLIC_ENDPOINTS:
                    operation["security"] = []

        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi  # type: ignore[method-assign]


class ErrorResponse(BaseModel):
    """Standard error response format."""

    message: str = Field(..., description="Human-readable error message")
    type: str = Field(..., description="Machine-readable error type")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"message": "Authentication required", "type": "authentication_error"},
                {"message": "Invalid username or password", "type": "authentication_error"},
                {"message": "User 'moonchild' already exists", "type": "validation_error"},
            ]
        }
    }
