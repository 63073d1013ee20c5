"""Attaches asynchronous console and network events to the trace."""

from __future__ import annotations

import base64
import binascii
from concurrent.futures import Future
from typing import Any, Callable, Optional, TypeVar

import structlog

from .bodies import BodyFetch, BodyFetchRegistry
from .events import BodyAvailable, ConsoleMessage, RequestBegun, ResponseCompleted
from .models import Action, ConsoleEntry, ConsoleLevel, NetworkEntry, NetworkTiming, Trace, now_ms

LOGGER = structlog.get_logger("trace_recorder")

T = TypeVar("T")

_CONSOLE_LEVELS: dict[str, ConsoleLevel] = {
    "log": "log",
    "info": "info",
    "warn": "warn",
    "warning": "warn",
    "error": "error",
    "severe": "error",
    "debug": "debug",
    "trace": "debug",
}


class EventCorrelator:
    """Correlates browser events with the action that is open when they begin.

    Requests are scoped to an action purely by arrival time: if an action is
    pending when "request begun" arrives, the entry id is added to that
    action's local list as well as the global store. Nothing here raises;
    malformed or unmatched events are logged and dropped.
    """

    def __init__(
        self,
        trace: Callable[[], Optional[Trace]],
        open_action: Callable[[], Optional[Action]],
        *,
        bodies: BodyFetchRegistry | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._trace = trace
        self._open_action = open_action
        self._bodies = bodies
        self._clock = clock
        self._requests: dict[str, NetworkEntry] = {}

    def reset(self) -> None:
        """Forget request identities from a previous run."""

        self._requests.clear()

    def entry_for(self, request_id: str) -> NetworkEntry | None:
        return self._requests.get(request_id)

    def record_console(self, message: ConsoleMessage) -> ConsoleEntry | None:
        return self._safely("console-entry", self._record_console, message)

    def request_begun(self, event: RequestBegun) -> NetworkEntry | None:
        return self._safely("request-begun", self._request_begun, event)

    def response_completed(self, event: ResponseCompleted) -> NetworkEntry | None:
        return self._safely("response-completed", self._response_completed, event)

    def body_available(self, event: BodyAvailable) -> NetworkEntry | None:
        return self._safely("body-available", self._body_available, event)

    def schedule_body_fetch(self, request_id: str, fetch: BodyFetch) -> Future | None:
        """Start a detached body fetch; its result lands on the entry whenever it resolves."""

        if self._bodies is None:
            LOGGER.debug("body_fetch_skipped", request_id=request_id, reason="no registry")
            return None
        return self._bodies.submit(request_id, fetch, self.body_available)

    def _safely(self, kind: str, handler: Callable[[Any], T], event: Any) -> T | None:
        try:
            return handler(event)
        except Exception as exc:
            LOGGER.warning("event_dropped", kind=kind, error=str(exc))
            return None

    def _require_trace(self) -> Trace:
        trace = self._trace()
        if trace is None:
            raise ValueError("no trace has been started")
        return trace

    def _record_console(self, message: ConsoleMessage) -> ConsoleEntry:
        trace = self._require_trace()
        entry = ConsoleEntry(
            timestamp=self._clock(),
            type=_CONSOLE_LEVELS.get(message.level.lower(), "log"),
            message=message.text or " ".join(message.args),
            location=message.source_url,
            args=list(message.args),
        )
        trace.add_console_entry(entry)
        return entry

    def _request_begun(self, event: RequestBegun) -> NetworkEntry:
        trace = self._require_trace()
        timestamp = self._clock()
        entry = NetworkEntry(
            id=event.request_id,
            request_id=event.request_id,
            timestamp=timestamp,
            method=event.method or "GET",
            url=event.url,
            resource_type=event.resource_type or (event.initiator.type if event.initiator else "other"),
            request_headers=event.headers,
            request_body=event.body,
            request_body_size=len(event.body) if event.body is not None else None,
            timing=NetworkTiming(start_time=timestamp),
            cookies=list(event.cookies),
            initiator=event.initiator,
        )
        trace.add_network_entry(entry, rename_duplicate=True)
        self._requests[event.request_id] = entry

        action = self._open_action()
        if action is not None:
            action.network_ids.append(entry.id)
        LOGGER.debug(
            "request_recorded",
            request_id=event.request_id,
            url=event.url,
            action_id=action.id if action is not None else None,
        )
        return entry

    def _response_completed(self, event: ResponseCompleted) -> NetworkEntry | None:
        entry = self._requests.get(event.request_id)
        if entry is None:
            LOGGER.warning("response_unmatched", request_id=event.request_id)
            return None
        now = self._clock()
        entry.status = event.status
        entry.status_text = event.status_text
        entry.mime_type = event.mime_type
        entry.duration = max(now - entry.timestamp, 0)

        timing = entry.timing or NetworkTiming(start_time=entry.timestamp)
        timing.response_end = now
        if event.response_time is not None:
            timing.response_start = timing.start_time + event.response_time
        entry.timing = timing

        if event.headers is not None:
            entry.response_headers = event.headers
        size = event.content_length
        if size is None and event.headers:
            size = _content_length(event.headers)
        if size is not None:
            entry.size = size
        if event.content_size is not None:
            entry.response_body_size = event.content_size
        return entry

    def _body_available(self, event: BodyAvailable) -> NetworkEntry | None:
        entry = self._requests.get(event.request_id)
        if entry is None:
            LOGGER.warning("body_unmatched", request_id=event.request_id)
            return None
        if event.encoding == "base64":
            try:
                decoded = base64.b64decode(event.value, validate=True)
            except binascii.Error as exc:
                raise ValueError(f"invalid base64 body for {event.request_id}") from exc
            entry.response_body_size = len(decoded)
        else:
            entry.response_body_size = len(event.value)
        entry.response_body_encoding = event.encoding
        entry.response_body = event.value
        return entry


def _content_length(headers: dict[str, str]) -> int | None:
    for name, value in headers.items():
        if name.lower() == "content-length":
            try:
                return int(value)
            except ValueError:
                return None
    return None
