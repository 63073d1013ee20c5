"""Background response-body fetches, tracked per request so run end can drain them."""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Optional

import structlog

from .events import BodyAvailable

LOGGER = structlog.get_logger("trace_recorder")

BodyFetch = Callable[[], Optional[BodyAvailable]]


@dataclass
class DrainReport:
    completed: int = 0
    abandoned: list[str] = field(default_factory=list)


class BodyFetchRegistry:
    """Runs body fetches on a small worker pool and remembers which are still in flight."""

    def __init__(self, max_workers: int = 4) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="body-fetch")
        self._lock = threading.Lock()
        self._pending: dict[Future, str] = {}
        self._closed = False

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def submit(
        self,
        request_id: str,
        fetch: BodyFetch,
        on_result: Callable[[BodyAvailable], object],
    ) -> Future | None:
        with self._lock:
            if self._closed:
                LOGGER.warning("body_fetch_rejected", request_id=request_id, reason="registry closed")
                return None
            future = self._executor.submit(self._run, request_id, fetch, on_result)
            self._pending[future] = request_id
        future.add_done_callback(self._forget)
        return future

    def drain(self, timeout: float) -> DrainReport:
        """Wait up to ``timeout`` seconds, then cancel whatever has not finished."""

        with self._lock:
            in_flight = dict(self._pending)
        if not in_flight:
            return DrainReport()
        done, not_done = wait(list(in_flight), timeout=max(timeout, 0.0))
        report = DrainReport(completed=len(done))
        for future in not_done:
            future.cancel()
            report.abandoned.append(in_flight[future])
        if report.abandoned:
            LOGGER.warning(
                "body_fetch_abandoned",
                count=len(report.abandoned),
                request_ids=report.abandoned,
                grace_period_s=timeout,
            )
        return report

    def shutdown(self) -> None:
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.pop(future, None)

    @staticmethod
    def _run(request_id: str, fetch: BodyFetch, on_result: Callable[[BodyAvailable], object]) -> None:
        try:
            body = fetch()
        except Exception as exc:
            LOGGER.warning("body_fetch_failed", request_id=request_id, error=str(exc))
            return
        if body is not None:
            on_result(body)
