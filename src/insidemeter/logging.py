import logging
from collections.abc import MutableMapping
from typing import Any

import structlog

# Event keys whose values are credentials
SECRET_KEYS = frozenset({"token", "authorization", "password", "session_id"})


def token_preview(token: str | None) -> str | None:
    """Shorten a credential for log output so full tokens never reach the logs."""
    if token is None:
        return None
    return f"{token[:10]}..." if len(token) > 10 else "***"


def redact_secrets(_logger: Any, _method_name: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Processor that shortens credential values which were logged without token_preview."""
    for key in SECRET_KEYS & event_dict.keys():
        value = event_dict[key]
        if isinstance(value, str) and not value.endswith(("...", "***")):
            event_dict[key] = token_preview(value)
    return event_dict


def setup_logging(debug: bool) -> None:
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(level=log_level, format="%(message)s")

    # Driver and HTTP client chatter stays out of the app log
    for name in ("pymongo", "httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)

    processors: list[structlog.types.Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
