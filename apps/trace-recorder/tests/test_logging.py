from __future__ import annotations

import structlog

from trace_recorder.logging_utils import (
    MAX_VALUE_LENGTH,
    RichConsoleRenderer,
    bind_run_context,
    clear_run_context,
    shorten_long_values,
)


def test_long_values_are_clipped() -> None:
    body = "x" * (MAX_VALUE_LENGTH + 40)

    event = shorten_long_values(None, "info", {"event": "body_recorded", "body": body, "status": 200})

    assert event["body"].startswith("x" * MAX_VALUE_LENGTH)
    assert event["body"].endswith("(+40 chars)")
    assert event["status"] == 200


def test_console_renderer_prints_event_and_pairs() -> None:
    line = RichConsoleRenderer()(
        None,
        "warning",
        {"timestamp": "2024-01-01T00:00:00Z", "level": "warning", "event": "response_unmatched", "request_id": "r9"},
    )

    assert "response_unmatched" in line
    assert "request_id=" in line
    assert "r9" in line


def test_run_context_is_bound_and_cleared() -> None:
    clear_run_context()
    bind_run_context(test_name="login.feature", run_dir=None)
    try:
        assert structlog.contextvars.get_contextvars() == {"test_name": "login.feature"}
    finally:
        clear_run_context()
    assert structlog.contextvars.get_contextvars() == {}
