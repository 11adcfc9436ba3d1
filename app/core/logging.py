"""
Logging configuration.

Every module logs through `logging.getLogger(__name__)`; this applies a single
console handler and the level from settings (`LOG_LEVEL`).
"""

import logging.config

from app.core.config import settings


def build_logging_config(level: str) -> dict:
    level = level.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "level": level,
            },
        },
        "root": {"handlers": ["console"], "level": level},
        "loggers": {
            # httpx logs every request URL at INFO, which would leak the maps API key
            "httpx": {"level": "WARNING"},
        },
    }


def configure_logging(level: str | None = None) -> None:
    """Configure the Python logging system from settings."""
    logging.config.dictConfig(build_logging_config(level or settings.log_level))
