"""Tests for compress_image.logging_config."""

import json
import logging

import pytest
from rich.logging import RichHandler

from compress_image import logging_config
from compress_image.logging_config import JSONFormatter, get_log_format, get_log_level, setup_logging


@pytest.fixture
def fresh_root(monkeypatch):
    """Let setup_logging run again and restore the root logger afterwards."""
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    monkeypatch.setattr(logging_config, "_logging_initialized", False)
    yield root
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


def _record(msg="hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("compress_image.test", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestEnvironment:
    def test_level_defaults_to_info(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        assert get_log_level() == logging.INFO

    def test_level_from_env(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert get_log_level() == logging.DEBUG

    def test_explicit_level_wins(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        assert get_log_level("error") == logging.ERROR

    def test_unknown_level_falls_back_to_info(self):
        assert get_log_level("chatty") == logging.INFO

    def test_format_defaults_to_text(self, monkeypatch):
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        assert get_log_format() == "text"


class TestSetupLogging:
    def test_text_format_uses_rich_handler(self, fresh_root):
        setup_logging(level="INFO", fmt="text")
        assert len(fresh_root.handlers) == 1
        assert isinstance(fresh_root.handlers[0], RichHandler)

    def test_json_format_uses_json_formatter(self, fresh_root):
        setup_logging(level="INFO", fmt="json")
        assert isinstance(fresh_root.handlers[0].formatter, JSONFormatter)

    def test_sets_root_level(self, fresh_root):
        setup_logging(level="WARNING", fmt="text")
        assert fresh_root.level == logging.WARNING

    def test_second_call_is_a_no_op(self, fresh_root):
        setup_logging(level="INFO", fmt="json")
        handler = fresh_root.handlers[0]
        setup_logging(level="DEBUG", fmt="text")
        assert fresh_root.handlers == [handler]


class TestJSONFormatter:
    def test_emits_single_json_object(self):
        data = json.loads(JSONFormatter().format(_record("compressed")))
        assert data["message"] == "compressed"
        assert data["level"] == "INFO"
        assert data["logger"] == "compress_image.test"
        assert "timestamp" in data

    def test_known_extra_fields_lifted(self):
        data = json.loads(JSONFormatter().format(_record(path="/upload", status_code=200)))
        assert data["path"] == "/upload"
        assert data["status_code"] == 200

    def test_unknown_extra_fields_ignored(self):
        data = json.loads(JSONFormatter().format(_record(secret="x")))
        assert "secret" not in data

    def test_exception_included(self):
        try:
            raise ValueError("boom")
        except ValueError:
            import sys
            record = _record()
            record.exc_info = sys.exc_info()
        data = json.loads(JSONFormatter().format(record))
        assert "ValueError: boom" in data["exception"]
