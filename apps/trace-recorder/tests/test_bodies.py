from __future__ import annotations

import threading

from trace_recorder.bodies import BodyFetchRegistry
from trace_recorder.events import BodyAvailable


def test_drain_waits_for_quick_fetches() -> None:
    registry = BodyFetchRegistry(max_workers=2)
    received: list[BodyAvailable] = []

    registry.submit("r1", lambda: BodyAvailable(request_id="r1", value="a"), received.append)
    registry.submit("r2", lambda: BodyAvailable(request_id="r2", value="b"), received.append)
    report = registry.drain(timeout=5)
    registry.shutdown()

    assert report.abandoned == []
    assert sorted(body.request_id for body in received) == ["r1", "r2"]


def test_drain_abandons_fetches_past_the_grace_period() -> None:
    registry = BodyFetchRegistry(max_workers=1)
    release = threading.Event()
    received: list[BodyAvailable] = []

    def slow() -> BodyAvailable:
        release.wait(timeout=5)
        return BodyAvailable(request_id="slow", value="late")

    registry.submit("slow", slow, received.append)
    registry.submit("queued", lambda: BodyAvailable(request_id="queued", value="never"), received.append)
    report = registry.drain(timeout=0.05)
    release.set()
    registry.shutdown()

    assert set(report.abandoned) == {"slow", "queued"}
    assert all(body.request_id != "queued" for body in received)


def test_failing_fetch_is_logged_not_raised() -> None:
    registry = BodyFetchRegistry(max_workers=1)
    received: list[BodyAvailable] = []

    def broken() -> BodyAvailable:
        raise ConnectionError("socket closed")

    future = registry.submit("r1", broken, received.append)
    future.result(timeout=5)
    registry.shutdown()

    assert received == []


def test_submissions_after_shutdown_are_rejected() -> None:
    registry = BodyFetchRegistry()
    registry.shutdown()

    assert registry.submit("r1", lambda: None, lambda body: None) is None
    assert registry.pending_count == 0
