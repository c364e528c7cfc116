"""Tests for environment driven settings."""

import importlib

from barter import config


def test_debug_and_log_level_come_from_the_environment(monkeypatch):
    monkeypatch.setenv("DEBUG", "true")
    monkeypatch.setenv("LOG_LEVEL", "warning")
    try:
        settings = importlib.reload(config).settings

        assert settings.DEBUG is True
        assert settings.LOG_LEVEL == "WARNING"
        assert not hasattr(settings, "env")
    finally:
        monkeypatch.undo()
        importlib.reload(config)


def test_defaults(monkeypatch):
    monkeypatch.delenv("DEBUG", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    try:
        settings = importlib.reload(config).settings

        assert settings.DEBUG is False
        assert settings.LOG_LEVEL == "INFO"
        assert not settings.is_production
    finally:
        monkeypatch.undo()
        importlib.reload(config)
