"""structlog setup shared by the recorder and viewer commands."""

from __future__ import annotations

import logging
import sys
from io import StringIO
from typing import Any, MutableMapping

import structlog
from rich.console import Console
from rich.text import Text

from .output_config import LogFormat

LOGGER_NAME = "trace_recorder"
MAX_VALUE_LENGTH = 160

# Keys that tie a log line to a node or request in the trace.
_ID_KEYS = frozenset({"action_id", "request_id", "scenario", "step", "test_name"})
_SKIPPED_KEYS = frozenset({"color_message", "stack", "exception"})

_LEVEL_STYLES = {
    "debug": "dim cyan",
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
    "critical": "bold white on red",
}


def shorten_long_values(logger: Any, name: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Clip URLs, bodies and other long strings so one event stays on one line."""

    for key, value in event_dict.items():
        if key == "event" or not isinstance(value, str) or len(value) <= MAX_VALUE_LENGTH:
            continue
        event_dict[key] = f"{value[:MAX_VALUE_LENGTH]}... (+{len(value) - MAX_VALUE_LENGTH} chars)"
    return event_dict


class RichConsoleRenderer:
    """Renders ``timestamp [level] event key=value ...`` with trace ids highlighted."""

    def __init__(self, event_width: int = 32) -> None:
        self.event_width = event_width

    def __call__(self, logger: Any, name: str, event_dict: MutableMapping[str, Any]) -> str:
        level = event_dict.pop("level", "info")
        line = Text()
        line.append(str(event_dict.pop("timestamp", "")), style="dim white")
        line.append(f" [{level:<8}] ", style=_LEVEL_STYLES.get(level, "white"))
        event = str(event_dict.pop("event", ""))
        line.append(event.ljust(self.event_width), style="bold white")

        pairs = sorted((key, value) for key, value in event_dict.items() if key not in _SKIPPED_KEYS)
        for key, value in pairs:
            line.append(f" {key}=", style="dim white")
            line.append(str(value), style="bold green" if key in _ID_KEYS else "bright_cyan")

        buffer = StringIO()
        Console(file=buffer, force_terminal=True, width=240, legacy_windows=False).print(line, end="")
        return buffer.getvalue().rstrip()


def bind_run_context(**values: Any) -> None:
    """Attach run-wide fields (test name, run directory) to every later event."""

    structlog.contextvars.bind_contextvars(**{key: value for key, value in values.items() if value is not None})


def clear_run_context() -> None:
    structlog.contextvars.clear_contextvars()


def configure_logging(log_level: str = "info", log_format: LogFormat = "console") -> structlog.stdlib.BoundLogger:
    """Send recorder diagnostics to stderr, keeping stdout for the run summary."""

    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, stream=sys.stderr, format="%(message)s", force=True)

    renderers = {
        "console": RichConsoleRenderer(),
        "plain": structlog.dev.ConsoleRenderer(colors=False),
        "json": structlog.processors.JSONRenderer(),
    }
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
            structlog.processors.format_exc_info,
            shorten_long_values,
            renderers.get(log_format, renderers["console"]),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    return structlog.get_logger(LOGGER_NAME)
