"""
Tests for Structured Logging Module

Verifies JSON output, session id context propagation and redaction.
"""

import io
import json

import pytest


@pytest.fixture
def log_stream():
    """Reconfigure logging into a buffer for the duration of a test."""
    from session_store.observability.logging import configure_logging, reset_logging

    stream = io.StringIO()
    configure_logging(level="DEBUG", stream=stream, force=True)
    yield stream
    reset_logging()
    configure_logging(force=True)


def _last_event(stream: io.StringIO) -> dict:
    lines = [line for line in stream.getvalue().splitlines() if line.strip()]
    return json.loads(lines[-1])


class TestLogOutput:
    """Events are rendered as JSON with standard fields."""

    def test_event_is_json_with_level_and_timestamp(self, log_stream):
        from session_store.observability.logging import get_logger

        get_logger("test").info("hello", answer=42)

        event = _last_event(log_stream)
        assert event["event"] == "hello"
        assert event["level"] == "info"
        assert event["answer"] == 42
        assert event["logger"] == "test"
        assert "timestamp" in event

    def test_debug_is_filtered_at_info_level(self):
        from session_store.observability.logging import (
            configure_logging,
            get_logger,
            reset_logging,
        )

        stream = io.StringIO()
        configure_logging(level="INFO", stream=stream, force=True)
        try:
            get_logger("test").debug("hidden")
            assert stream.getvalue() == ""
        finally:
            reset_logging()
            configure_logging(force=True)


class TestSessionIdContext:
    """The current session id is attached, redacted, to every event."""

    def test_context_session_id_is_redacted(self, log_stream):
        from session_store.observability.logging import get_logger, session_id_context

        with session_id_context("ABCDEFGHIJKLMNOPQRSTUVWX"):
            get_logger("test").info("inside")

        assert _last_event(log_stream)["session_id"] == "ABCDEFGH..."

    def test_context_is_reset_after_block(self, log_stream):
        from session_store.observability.logging import (
            get_logger,
            get_session_id,
            session_id_context,
        )

        with session_id_context("abc"):
            assert get_session_id() == "abc"

        assert get_session_id() is None
        get_logger("test").info("outside")
        assert "session_id" not in _last_event(log_stream)

    def test_explicit_session_id_is_redacted(self, log_stream):
        from session_store.observability.logging import get_logger

        get_logger("test").info("explicit", session_id="0123456789abcdef")

        assert _last_event(log_stream)["session_id"] == "01234567..."

    def test_set_and_clear(self):
        from session_store.observability.logging import (
            clear_session_id,
            get_session_id,
            set_session_id,
        )

        set_session_id("xyz")
        assert get_session_id() == "xyz"
        clear_session_id()
        assert get_session_id() is None


class TestRedaction:
    def test_short_ids_are_kept(self):
        from session_store.observability.logging import redact_session_id

        assert redact_session_id("a") == "a"

    def test_none_passes_through(self):
        from session_store.observability.logging import redact_session_id

        assert redact_session_id(None) is None
