import logging

import structlog

# Driver and transport loggers that flood the output at INFO
NOISY_LOGGERS = {
    "pymongo": logging.WARNING,
    "pymongo.topology": logging.WARNING,
    "pymongo.connection": logging.WARNING,
    "pymongo.command": logging.WARNING,
    "httpx": logging.WARNING,
    "telegram.ext": logging.WARNING,
    "telegram.ext.Updater": logging.ERROR,
}


def quiet_noisy_loggers() -> None:
    for name, level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def build_processors(debug: bool) -> list[structlog.types.Processor]:
    """Processor chain: context bound with ``structlog.contextvars`` first, renderer last."""
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    processors.append(structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer())
    return processors


def setup_logging(debug: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO, format="%(message)s", force=True)
    quiet_noisy_loggers()
    structlog.configure(
        processors=build_processors(debug),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
