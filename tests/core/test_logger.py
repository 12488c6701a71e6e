"""Unit tests for snaplet_jinja.core.logger.

Tests the structlog-based logging configuration:
- configure_logging() installs exactly one stdout handler
- LOG_LEVEL is honoured, unknown levels fall back to INFO
- LOG_FORMAT=json renders JSON lines
"""

import json
import logging

import pytest
import structlog

from snaplet_jinja.core.logger import configure_logging, get_logger


@pytest.fixture(autouse=True)
def _clean_root_logger():
    """Save and restore root logger state around each test."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    structlog.reset_defaults()


def _our_handlers() -> list[logging.Handler]:
    return [h for h in logging.getLogger().handlers if getattr(h, "_snaplet_jinja", False)]


@pytest.mark.unit
class TestConfigureLogging:
    def test_installs_single_handler_when_called_twice(self):
        configure_logging()
        configure_logging()
        assert len(_our_handlers()) == 1

    def test_keeps_foreign_handlers(self):
        foreign = logging.NullHandler()
        logging.getLogger().addHandler(foreign)
        configure_logging()
        assert foreign in logging.getLogger().handlers

    def test_level_from_environment(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        configure_logging()
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_defaults_to_info(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        configure_logging()
        assert logging.getLogger().level == logging.INFO

    def test_json_format(self, monkeypatch, capsys):
        monkeypatch.setenv("LOG_FORMAT", "json")
        monkeypatch.setenv("LOG_LEVEL", "INFO")
        configure_logging()

        get_logger("tests.logger").info("templates.loaded", count=3)

        line = capsys.readouterr().out.strip().splitlines()[-1]
        parsed = json.loads(line)
        assert parsed["event"] == "templates.loaded"
        assert parsed["count"] == 3
        assert parsed["level"] == "info"
        assert parsed["logger"] == "tests.logger"
