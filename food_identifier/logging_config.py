"""Logging setup: stdlib basicConfig + structlog processors."""

import logging

import structlog

# Chatty third-party loggers kept at WARNING unless LOG_LEVEL is DEBUG
_QUIET_LOGGERS = ("aiohttp.access", "httpx", "openai")


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """
    Configure application logging.

    Args:
        level: Stdlib level name (DEBUG, INFO, ...); unknown names fall back to INFO
        json_output: Render JSON lines instead of the console renderer
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    for name in _QUIET_LOGGERS:
        quiet = logging.getLogger(name)
        if quiet.level == logging.NOTSET and log_level > logging.DEBUG:
            quiet.setLevel(logging.WARNING)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
    )
