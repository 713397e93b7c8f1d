"""
Logging Configuration

stdout logging for the API process. BEACON modules log at LOG_LEVEL;
chatty provider libraries (HTTP, OpenAI SDK, model loading, SQL) are held
at WARNING so request logs stay readable.
"""

from __future__ import annotations

import sys
from logging.config import dictConfig
from typing import Any, Final

from beacon.core.config import settings

LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

# Third-party loggers pinned to WARNING regardless of LOG_LEVEL
QUIET_LOGGERS: Final[tuple[str, ...]] = (
    "httpx",
    "httpcore",
    "openai",
    "sentence_transformers",
    "sqlalchemy.engine",
)


def _logger(level: str) -> dict[str, Any]:
    return {"level": level, "handlers": ["console"], "propagate": False}


def setup_logging(level: str | None = None) -> None:
    """
    Configure the ``beacon`` logger tree plus uvicorn and provider loggers.

    Args:
        level: Overrides the LOG_LEVEL setting (e.g. ``"DEBUG"``).

    Note:
        Call once per process, from the application lifespan.
    """
    log_level = (level or settings.LOG_LEVEL).upper()

    loggers = {
        "beacon": _logger(log_level),
        "uvicorn": _logger("INFO"),
        "uvicorn.access": _logger("INFO"),
    }
    loggers.update({name: _logger("WARNING") for name in QUIET_LOGGERS})

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": LOG_FORMAT, "datefmt": DATE_FORMAT},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "stream": sys.stdout,
                    "formatter": "default",
                },
            },
            "root": {"level": log_level, "handlers": ["console"]},
            "loggers": loggers,
        }
    )
