from urllib.parse import urlparse

import structlog

from uidkeeper.app import App
from uidkeeper.config import Config
from uidkeeper.logging import setup_logging
from uidkeeper.web.runner import run_server

logger = structlog.get_logger(__name__)


def describe_database(database_url: str) -> str:
    """Host and database name of a MongoDB URL, without credentials."""
    parsed = urlparse(database_url)
    return f"{parsed.hostname or 'localhost'}{':' + str(parsed.port) if parsed.port else ''}/{parsed.path.lstrip('/')}"


def main() -> None:
    config = Config()
    setup_logging(config.debug)
    logger.info(
        "config_loaded",
        database=describe_database(config.database_url),
        session_ttl_hours=config.session_ttl_hours,
        cleanup_interval_seconds=config.cleanup_interval_seconds,
        bot_autostart=config.bot_autostart,
    )
    run_server(App(config), config)


if __name__ == "__main__":
    main()
