"""Unit tests for settings and logging setup."""

import logging

from quizgrade.config import Settings
from quizgrade.logging_config import configure_logging


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("DEFAULT_PASS_MARK", "50")
    monkeypatch.setenv("HISTOGRAM_BIN_WIDTH", "20")
    cfg = Settings()
    assert cfg.DEFAULT_PASS_MARK == 50.0
    assert cfg.HISTOGRAM_BIN_WIDTH == 20


def test_configure_logging_levels():
    assert configure_logging(Settings(DEBUG=True)).level == logging.DEBUG
    assert configure_logging(Settings(LOG_LEVEL="warning")).level == logging.WARNING
    assert configure_logging(Settings(LOG_LEVEL="chatty")).level == logging.INFO
