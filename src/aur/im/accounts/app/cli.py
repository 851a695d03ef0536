import json
import logging
import os
from logging.config import dictConfig
from pathlib import Path

from aiohttp import web

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = ""):
    """
    Configure logging from LOGGING_CONFIG_FILE when set, otherwise log to stderr.

    The fallback level comes from ``level`` or LOG_LEVEL, defaulting to DEBUG.
    """
    config_path = os.getenv("LOGGING_CONFIG_FILE", "")
    if config_path:
        dictConfig(json.loads(Path(config_path).read_text()))
        return

    level = (level or os.getenv("LOG_LEVEL", "") or "DEBUG").upper()
    logging.basicConfig(format=LOG_FORMAT)
    logging.getLogger().setLevel(level)


def invoke():
    configure_logging()

    from aur.im.accounts.app.config import Settings
    from aur.im.accounts.app.server import start_web_server

    settings = Settings()  # type: ignore
    web.run_app(start_web_server(settings), port=settings.http_port)


if __name__ == "__main__":
    invoke()
