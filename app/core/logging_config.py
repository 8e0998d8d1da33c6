# app/core/logging_config.py
import logging
import logging.config
import sys
from typing import Any, Dict

from app.core.config import settings

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that only log to the console, and at what level
LIBRARY_LEVELS = {
    "uvicorn": "INFO",
    "sqlalchemy": "WARNING",
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "alembic": "INFO",
}


def _handlers() -> Dict[str, Dict[str, Any]]:
    handlers: Dict[str, Dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": "DEBUG" if settings.DEBUG else "INFO",
            "formatter": "detailed" if settings.DEBUG else "default",
            "stream": sys.stdout,
        },
    }
    if settings.LOG_FILE:
        handlers["file"] = {
            "class": "logging.FileHandler",
            "level": "INFO",
            "formatter": "detailed",
            "filename": settings.LOG_FILE,
            "mode": "a",
            "delay": True,
        }
    return handlers


def build_logging_config() -> Dict[str, Any]:
    handlers = _handlers()
    app_level = "DEBUG" if settings.DEBUG and settings.ENVIRONMENT != "production" else "INFO"

    loggers: Dict[str, Dict[str, Any]] = {
        "": {"handlers": ["console"], "level": "INFO", "propagate": False},
        # Every module under app/ logs through here
        "app": {"handlers": list(handlers), "level": app_level, "propagate": False},
    }
    for name, level in LIBRARY_LEVELS.items():
        loggers[name] = {"handlers": ["console"], "level": level, "propagate": False}
    if settings.ENVIRONMENT == "production":
        loggers["uvicorn"]["level"] = "WARNING"

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": DEFAULT_FORMAT, "datefmt": DATE_FORMAT},
            "detailed": {"format": DETAILED_FORMAT, "datefmt": DATE_FORMAT},
        },
        "handlers": handlers,
        "loggers": loggers,
    }


def setup_logging() -> None:
    """Setup centralized logging configuration"""
    # A broken stdout must not take a request down with it
    logging.raiseExceptions = False
    logging.config.dictConfig(build_logging_config())

    logger = logging.getLogger("app.core.logging_config")
    logger.info(f"Logging configured for {settings.ENVIRONMENT} environment (debug={settings.DEBUG})")


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the ``app`` namespace"""
    if name == "app" or name.startswith("app."):
        return logging.getLogger(name)
    return logging.getLogger(f"app.{name}")


# Initialize logging when module is imported
setup_logging()
