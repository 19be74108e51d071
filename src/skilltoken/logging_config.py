import logging
import logging.config
import os
import sys

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Third-party loggers and the level they are held at.
LIBRARY_LEVELS = {
    "fastapi": "INFO",
    "uvicorn.access": "WARNING",
    "httpx": "WARNING",
    "websockets": "WARNING",
}


def _console(level: str) -> dict:
    return {"level": level, "handlers": ["console"], "propagate": False}


LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "skilltoken": {
            "format": "%(asctime)s %(levelname)-7s [%(name)s] %(message)s",
            "datefmt": "%H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "skilltoken",
            "stream": sys.stdout,
        },
    },
    "loggers": {
        "skilltoken": _console(LOG_LEVEL),
        **{name: _console(level) for name, level in LIBRARY_LEVELS.items()},
    },
    "root": {"level": "WARNING", "handlers": ["console"]},
}


def setup_logging() -> None:
    logging.config.dictConfig(LOGGING_CONFIG)
