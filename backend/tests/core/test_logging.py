"""
Tests for structured logging configuration.
"""

import json
import logging

import pytest
from structlog.contextvars import get_contextvars

from apps.core.logging import (
    _rename_request_id,
    _round_duration,
    bind_contextvars,
    clear_contextvars,
    configure_logging,
    get_logger,
)


@pytest.fixture
def restore_root_logger():
    """Put the root logger's handlers back after a test reconfigures it."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    configure_logging(json_format=False, log_level="WARNING")
    root.handlers[:] = handlers
    root.setLevel(level)


class TestProcessors:
    """Tests for the custom structlog processors."""

    def test_request_id_becomes_trace_id(self):
        event = _rename_request_id(None, "info", {"event": "x", "request_id": "abc"})

        assert event == {"event": "x", "trace_id": "abc"}

    def test_duration_is_rounded(self):
        event = _round_duration(None, "info", {"event": "x", "duration_ms": 12.34567})

        assert event["duration_ms"] == 12.35

    def test_events_without_fields_pass_through(self):
        assert _round_duration(None, "info", {"event": "x"}) == {"event": "x"}


@pytest.mark.usefixtures("restore_root_logger")
class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_json_lines_include_context(self, capsys):
        configure_logging(json_format=True, log_level="INFO")
        bind_contextvars(request_id="req-1", **{"http.method": "POST"})
        try:
            get_logger("tests.logging").info("passkey_registered", duration_ms=1.23456)
        finally:
            clear_contextvars()

        line = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert line["event"] == "passkey_registered"
        assert line["level"] == "info"
        assert line["logger"] == "tests.logging"
        assert line["trace_id"] == "req-1"
        assert line["http.method"] == "POST"
        assert line["duration_ms"] == 1.23
        assert "timestamp" in line

    def test_stdlib_records_use_same_format(self, capsys):
        configure_logging(json_format=True, log_level="INFO")

        logging.getLogger("django.request").warning("plain %s", "message")

        line = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert line["event"] == "plain message"
        assert line["level"] == "warning"

    def test_level_filters(self, capsys):
        configure_logging(json_format=True, log_level="WARNING")

        get_logger("tests.logging").info("quiet")

        assert capsys.readouterr().out == ""

    def test_console_format(self, capsys):
        configure_logging(json_format=False, log_level="DEBUG")

        get_logger("tests.logging").debug("console_event", key="value")

        out = capsys.readouterr().out
        assert "console_event" in out
        assert "key" in out


class TestContextVars:
    """Tests for context variable binding."""

    def setup_method(self):
        clear_contextvars()

    def teardown_method(self):
        clear_contextvars()

    def test_bind_and_clear(self):
        bind_contextvars(request_id="abc123", **{"http.url_details.path": "/api/health"})

        assert get_contextvars() == {"request_id": "abc123", "http.url_details.path": "/api/health"}

        clear_contextvars()

        assert get_contextvars() == {}
