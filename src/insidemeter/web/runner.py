"""Uvicorn server runner with custom configuration."""

import copy

import uvicorn
from uvicorn.config import LOGGING_CONFIG

from insidemeter.app import App
from insidemeter.config import Config
from insidemeter.web.server import create_fastapi_app


def build_log_config() -> dict:
    """Uvicorn logging config with short access lines (no client address, tokens never appear in paths)."""
    log_config = copy.deepcopy(LOGGING_CONFIG)
    log_config["formatters"]["access"]["fmt"] = '%(asctime)s - "%(request_line)s" %(status_code)s'
    log_config["formatters"]["default"]["fmt"] = "%(asctime)s - %(levelname)s - %(message)s"
    return log_config


def run_server(app: App, config: Config) -> None:
    """Run the Uvicorn server behind the hosting proxy."""
    fastapi_app = create_fastapi_app(app, config)
    uvicorn.run(
        fastapi_app,
        host=config.host,
        port=config.port,
        log_config=build_log_config(),
        access_log=True,
        proxy_headers=True,
        forwarded_allow_ips=config.forwarded_allow_ips,
    )
