"""
Logging configuration for the HR lifecycle backend
"""
import logging
import sys
from typing import Optional

from app.core.config import settings
from app.core.constants import SERVICE_NAME

LOG_FORMAT = "%(asctime)s - " + SERVICE_NAME + " - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers and the level they are capped at
NOISY_LOGGERS = {
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "alembic": logging.INFO,
}


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger once, writing to stdout

    level overrides settings.LOG_LEVEL (used by scripts and tests).
    """
    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=log_level,
            format=LOG_FORMAT,
            datefmt="%Y-%m-%d %H:%M:%S",
            handlers=[logging.StreamHandler(sys.stdout)],
        )
    root.setLevel(log_level)

    for name, cap in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(max(cap, log_level))

    logging.getLogger(__name__).info(
        "Logging configured: level=%s, env=%s", logging.getLevelName(log_level), settings.APP_ENV
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
