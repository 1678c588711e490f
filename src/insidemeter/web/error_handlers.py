import structlog
from fastapi import Request
from fastapi.responses import JSONResponse, Response

from insidemeter.errors import AuthenticationError, NotFoundError, UserError, ValidationError

logger = structlog.get_logger(__name__)

# UserError subclass -> (status code, machine-readable type); first match wins
ERROR_STATUS: list[tuple[type[UserError], int, str]] = [
    (AuthenticationError, 401, "authentication_error"),
    (NotFoundError, 404, "not_found"),
    (ValidationError, 400, "validation_error"),
]


def create_json_error_response(
    status_code: int, message: str, error_type: str | None = None, headers: dict[str, str] | None = None
) -> JSONResponse:
    """Create JSON error response with optional type for machine parsing."""
    content = {"message": message}
    if error_type:
        content["type"] = error_type
    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def user_error_handler(request: Request, exc: Exception) -> Response:
    """Map UserError subclasses to status codes; anything unlisted is a 400."""
    status_code, error_type = next(
        ((code, kind) for cls, code, kind in ERROR_STATUS if isinstance(exc, cls)), (400, "bad_request")
    )
    headers = None
    if status_code == 401:
        # Rejection reasons are logged by the token and session services, never returned
        logger.debug("request_unauthenticated", path=request.url.path)
        headers = {"WWW-Authenticate": "Bearer"}

    return create_json_error_response(status_code, str(exc), error_type, headers)


async def general_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle unexpected errors (500)."""
    logger.exception("unexpected_error", path=request.url.path, error=str(exc))
    return create_json_error_response(
        status_code=500, message="An unexpected error occurred.", error_type="internal_server_error"
    )
