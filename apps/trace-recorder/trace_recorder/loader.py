"""Replay log loading utilities."""

from __future__ import annotations

from pathlib import Path
import json

import yaml
from pydantic import TypeAdapter, ValidationError

from .events import TraceEvent
from .models import now_ms

_EVENT_ADAPTER: TypeAdapter[TraceEvent] = TypeAdapter(TraceEvent)


def load_events(path: Path) -> list[TraceEvent]:
    """Load and validate a recorded event log (JSON Lines or a YAML list)."""

    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".yaml", ".yml"}:
        data = yaml.safe_load(text) or []
        if not isinstance(data, list):
            raise ValueError(f"Event log {path} must contain a list of events")
        records = list(enumerate(data, start=1))
    else:
        records = []
        for line_no, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                records.append((line_no, json.loads(line)))
            except json.JSONDecodeError as exc:
                raise ValueError(f"{path}:{line_no}: invalid JSON: {exc.msg}") from exc

    events: list[TraceEvent] = []
    for position, record in records:
        try:
            events.append(_EVENT_ADAPTER.validate_python(record))
        except ValidationError as exc:
            raise ValueError(f"{path}:{position}: invalid event: {exc.errors()[0]['msg']}") from exc
    return events


class ReplayClock:
    """Clock that follows the ``at`` stamps of replayed events."""

    def __init__(self, start: int | None = None) -> None:
        self._now = now_ms() if start is None else start

    def advance_to(self, timestamp: int | None) -> None:
        if timestamp is not None and timestamp > self._now:
            self._now = timestamp

    def __call__(self) -> int:
        return self._now
