"""Centralized logging configuration."""

import logging

from config import settings

# Loggers that trace individual gateway HTTP exchanges.
GATEWAY_LOGGERS = ("integrations", "httpx", "stripe")

NOISY_LOGGERS = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "httpx",
    "httpcore",
    "stripe",
    "alembic.runtime.migration",
)


def setup_logging() -> None:
    """Configure logging for the application.

    The root level comes from ``settings.LOG_LEVEL``; chatty third-party
    loggers are held at WARNING. ``settings.GATEWAY_LOG_LEVEL``, when set,
    overrides both for the gateway clients so a single misbehaving
    gateway can be traced without turning on debug logging everywhere.
    """
    logging.basicConfig(
        format="%(asctime)s %(levelname)-8s %(name)s  %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        level=getattr(logging, settings.LOG_LEVEL),
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if settings.GATEWAY_LOG_LEVEL:
        level = getattr(logging, settings.GATEWAY_LOG_LEVEL)
        for name in GATEWAY_LOGGERS:
            logging.getLogger(name).setLevel(level)
    else:
        logging.getLogger("integrations").setLevel(logging.NOTSET)
