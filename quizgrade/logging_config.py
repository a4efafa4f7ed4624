"""Logging configuration helpers for processes hosting the grading core."""

from __future__ import annotations

import logging
from logging import Logger

from quizgrade.config import Settings, settings as default_settings


def configure_logging(settings: Settings | None = None) -> Logger:
    """Configure root logging and return the package logger."""
    cfg = settings or default_settings
    level = logging.DEBUG if cfg.DEBUG else logging.getLevelName(cfg.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(name)-25s  %(levelname)-8s  %(message)s",
    )
    logger = logging.getLogger("quizgrade")
    logger.setLevel(level)
    return logger
