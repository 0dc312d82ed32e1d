"""structlog setup for fixture runs (pytest plugin and CLI)."""

import logging
import sys

import structlog

# Libraries that log every request at INFO; fixture output would drown in them.
_NOISY_LOGGERS = ("httpx", "httpcore", "asyncio")


def setup_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """Route authmimic's structured events to stderr.

    JSON is used when asked for or when stderr is not a terminal (CI logs).
    Calling this again reconfigures in place.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]
    if json_output or not sys.stderr.isatty():
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level, force=True)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
