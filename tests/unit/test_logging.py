"""Tests for logging configuration helpers."""

import structlog

from app.core.logging import (
    add_request_id,
    build_processors,
    clear_request_context,
    set_request_context,
)


class TestRequestId:
    def test_request_id_added_while_set(self) -> None:
        set_request_context("req-123")
        try:
            event = add_request_id(None, "info", {"event": "room_joined"})
        finally:
            clear_request_context()

        assert event["request_id"] == "req-123"

    def test_no_request_id_outside_requests(self) -> None:
        event = add_request_id(None, "info", {"event": "room_joined"})

        assert "request_id" not in event


class TestProcessors:
    def test_development_uses_console_renderer(self) -> None:
        processors = build_processors("development", "console")

        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)

    def test_development_can_opt_into_json(self) -> None:
        processors = build_processors("development", "json")

        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_production_renders_json(self) -> None:
        processors = build_processors("production", "console")

        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        assert add_request_id in processors
