"""Application entry point for the InsideMeter API server."""

from insidemeter.app import App
from insidemeter.config import Config
from insidemeter.logging import setup_logging
from insidemeter.web.runner import run_server


def main() -> None:
    config = Config()
    setup_logging(config.debug)
    app = App(config)
    run_server(app, config)


if __name__ == "__main__":
    main()
