"""Test-runner hook facade that records a trace and writes its viewer."""

from __future__ import annotations

import sys
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Callable, Optional, Sequence, TypeVar

import structlog

from trace_viewer.renderer import generate_trace_viewer
from trace_viewer.index import TraceIndexBuilder

from .bodies import BodyFetch, BodyFetchRegistry
from .capture import AutomationDriver, SnapshotCapturer
from .config import TraceServiceOptions
from .console_reporter import ConsoleReporter
from .correlator import EventCorrelator
from .errors import PersistenceError, ProtocolViolation
from .events import (
    BodyAvailable,
    CommandEnd,
    CommandStart,
    ConsoleMessage,
    RequestBegun,
    ResponseCompleted,
    RunEnd,
    RunStart,
    ScenarioEnd,
    ScenarioStart,
    StepEnd,
    StepStart,
    TraceEvent,
)
from .lifecycle import RunMetadata, TraceLifecycle
from .logging_utils import bind_run_context, clear_run_context
from .models import Action, ConsoleEntry, NetworkEntry, Scenario, Step, StepLocation, Trace, Viewport, now_ms
from .store import RunArtifacts, TraceStore

LOGGER = structlog.get_logger("trace_recorder")

T = TypeVar("T")


class TraceService:
    """Receives runner callbacks and browser events, persists the finished trace.

    Capture and correlation problems never abort the test run. Lifecycle
    contract violations are logged as ``protocol_violation`` and kept on the
    trace (or re-raised with ``strict_protocol``). Only persistence failures
    reach the operator as errors.
    """

    def __init__(
        self,
        options: TraceServiceOptions | None = None,
        *,
        driver: AutomationDriver | None = None,
        clock: Callable[[], int] = now_ms,
        reporter: ConsoleReporter | None = None,
    ) -> None:
        self.options = options or TraceServiceOptions()
        self.driver = driver
        self.reporter = reporter or ConsoleReporter()
        self.store = TraceStore(self.options.output_dir)
        self.lifecycle = TraceLifecycle(commands_to_trace=self.options.commands_to_trace, clock=clock)
        self.bodies = BodyFetchRegistry(max_workers=self.options.body_fetch_workers)
        self.correlator = EventCorrelator(
            lambda: self.lifecycle.trace,
            self.lifecycle.open_action,
            bodies=self.bodies,
            clock=clock,
        )
        self.artifacts: RunArtifacts | None = None

    @property
    def trace(self) -> Trace | None:
        return self.lifecycle.trace

    # Runner lifecycle hooks

    def on_prepare(self) -> None:
        """Start from an empty output directory."""

        self.store.prepare(clean=True)

    def before(
        self,
        capabilities: dict[str, Any] | None = None,
        spec_files: Sequence[str] = (),
        *,
        viewport: Viewport | dict[str, int] | None = None,
        user_agent: str | None = None,
        base_url: str | None = None,
    ) -> Trace | None:
        capabilities = capabilities or {}
        meta = RunMetadata(
            test_name=Path(spec_files[0]).name if spec_files else "Unknown Test",
            browser=str(capabilities.get("browserName") or "unknown"),
            browser_version=capabilities.get("browserVersion"),
            platform=str(capabilities.get("platformName") or sys.platform),
            base_url=base_url,
            viewport=Viewport.model_validate(viewport) if isinstance(viewport, dict) else viewport,
            user_agent=user_agent,
        )
        trace = self._protocol(self.lifecycle.open_run, meta)
        if trace is None:
            return None

        # The open run keeps its directory and capturer until it closes.
        try:
            self.artifacts = self.store.create_run()
        except OSError as exc:
            self.artifacts = None
            LOGGER.error("run_dir_unavailable", output_dir=str(self.options.output_dir), error=str(exc))

        self.lifecycle.capturer = SnapshotCapturer(
            self.driver,
            self.artifacts.snapshots_dir if self.artifacts else None,
            screenshots=self.options.screenshots,
            dom_snapshots=self.options.snapshots,
            max_snapshots=self.options.max_snapshots,
            highlight_color=self.options.highlight_color,
        )
        self.correlator.reset()
        bind_run_context(
            test_name=trace.test_name,
            run_dir=self.artifacts.run_dir.name if self.artifacts else None,
        )
        self.reporter.start_run(trace.test_name, trace.browser)
        return trace

    def before_scenario(
        self,
        name: str,
        feature: str = "",
        tags: Sequence[str] = (),
        feature_file: str | None = None,
    ) -> Scenario | None:
        return self._protocol(self.lifecycle.open_scenario, name, feature, tags, feature_file)

    def before_step(
        self,
        keyword: str,
        text: str,
        location: StepLocation | dict[str, Any] | None = None,
    ) -> Step | None:
        if isinstance(location, dict):
            location = StepLocation.model_validate(location)
        return self._protocol(self.lifecycle.open_step, keyword, text, location)

    def before_command(self, name: str, args: Sequence[Any] = ()) -> Action | None:
        return self._protocol(self.lifecycle.begin_action, name, args)

    def after_command(
        self,
        name: str,
        args: Sequence[Any] = (),
        result: Any = None,
        error: Any = None,
    ) -> Action | None:
        return self._protocol(self.lifecycle.end_action, name, result, error)

    def after_step(self, passed: bool, error: Any = None, duration: int | None = None) -> Step | None:
        return self._protocol(self.lifecycle.close_step, passed, error)

    def after_scenario(self, passed: bool | None = None, error: Any = None) -> Scenario | None:
        scenario = self._protocol(self.lifecycle.close_scenario, passed)
        if scenario is not None:
            self.reporter.report_scenario(scenario)
        return scenario

    def after(self, exit_code: int = 0) -> RunArtifacts | None:
        """Close the run, give body fetches a grace period, then write trace.json and the viewer."""

        trace = self._protocol(self.lifecycle.close_run)
        if trace is None:
            return None
        self.bodies.drain(self.options.body_grace_period)
        self.reporter.finish_run(trace)

        if self.artifacts is None:
            self._report_persist_failure("no run directory was created")
            return None
        try:
            self.store.write_trace(trace, self.artifacts)
            self.store.write_viewer(generate_trace_viewer(trace), self.artifacts)
        except PersistenceError as exc:
            self._report_persist_failure(str(exc))
            return None
        LOGGER.info("trace_written", path=str(self.artifacts.trace_file), exit_code=exit_code)
        self.reporter.print_artifact("Trace viewer", self.artifacts.viewer_file)
        return self.artifacts

    def on_complete(self) -> Path | None:
        """Write the cross-run index and stop the body-fetch workers."""

        self.bodies.shutdown()
        clear_run_context()
        builder = TraceIndexBuilder(self.options.output_dir)
        try:
            index_file = builder.write()
        except PersistenceError as exc:
            self._report_persist_failure(str(exc))
            return None
        if index_file is not None:
            self.reporter.print_artifact("Trace index", index_file)
        return index_file

    # Browser event stream

    def on_console(self, message: ConsoleMessage) -> ConsoleEntry | None:
        if not self.options.console_logs:
            return None
        return self.correlator.record_console(message)

    def on_request_begun(self, event: RequestBegun) -> NetworkEntry | None:
        if not self.options.network:
            return None
        return self.correlator.request_begun(event)

    def on_response_completed(self, event: ResponseCompleted) -> NetworkEntry | None:
        if not self.options.network:
            return None
        return self.correlator.response_completed(event)

    def on_body_available(self, event: BodyAvailable) -> NetworkEntry | None:
        if not self.options.network:
            return None
        return self.correlator.body_available(event)

    def fetch_body(self, request_id: str, fetch: BodyFetch) -> Future | None:
        if not self.options.network:
            return None
        return self.correlator.schedule_body_fetch(request_id, fetch)

    def dispatch(self, event: TraceEvent) -> Any:
        """Route one recorded event to the matching hook."""

        match event:
            case RunStart():
                return self.before(
                    event.capabilities,
                    event.spec_files,
                    viewport=event.viewport,
                    user_agent=event.user_agent,
                    base_url=event.base_url,
                )
            case ScenarioStart():
                return self.before_scenario(event.name, event.feature, event.tags, event.feature_file)
            case StepStart():
                return self.before_step(event.keyword, event.text, event.location)
            case CommandStart():
                return self.before_command(event.name, event.args)
            case CommandEnd():
                return self.after_command(event.name, event.args, event.result, event.error)
            case StepEnd():
                return self.after_step(event.passed, event.error, event.duration)
            case ScenarioEnd():
                return self.after_scenario(event.passed, event.error)
            case RunEnd():
                return self.after(event.exit_code)
            case RequestBegun():
                return self.on_request_begun(event)
            case ResponseCompleted():
                return self.on_response_completed(event)
            case BodyAvailable():
                return self.on_body_available(event)
            case ConsoleMessage():
                return self.on_console(event)
        raise TypeError(f"Unsupported event: {type(event).__name__}")

    def _protocol(self, operation: Callable[..., T], *args: Any) -> Optional[T]:
        try:
            return operation(*args)
        except ProtocolViolation as exc:
            LOGGER.error("protocol_violation", operation=exc.operation, detail=exc.message)
            trace = self.lifecycle.trace
            if trace is not None:
                trace.protocol_violations.append(str(exc))
            if self.options.strict_protocol:
                raise
            return None

    def _report_persist_failure(self, detail: str) -> None:
        LOGGER.error("trace_persist_failed", detail=detail)
        self.reporter.print_error(f"Trace could not be saved: {detail}")
