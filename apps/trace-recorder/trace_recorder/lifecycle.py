"""Lifecycle state machine driven by the test runner's ordered callbacks."""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Iterable, Optional, Sequence

import structlog
from pydantic import BaseModel

from .capture import SnapshotCapturer
from .commands import DEFAULT_COMMANDS_TO_TRACE, extract_selector, extract_value, spec_for
from .errors import ProtocolViolation
from .models import (
    Action,
    Scenario,
    Step,
    StepLocation,
    Trace,
    TraceMetadata,
    Viewport,
    now_ms,
)

LOGGER = structlog.get_logger("trace_recorder")

Clock = Callable[[], int]


class LifecycleState(str, Enum):
    IDLE = "idle"
    RUN_OPEN = "run-open"
    SCENARIO_OPEN = "scenario-open"
    STEP_OPEN = "step-open"
    ACTION_OPEN = "action-open"


class RunMetadata(BaseModel):
    """Identifying details supplied when a run starts."""

    test_name: str = "Unknown Test"
    browser: str = "unknown"
    browser_version: Optional[str] = None
    platform: str = "unknown"
    base_url: Optional[str] = None
    viewport: Optional[Viewport] = None
    user_agent: Optional[str] = None
    framework_version: Optional[str] = None


def error_message(error: Any) -> str | None:
    if error is None:
        return None
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    return str(error)


class TraceLifecycle:
    """Creates and closes scenarios, steps and actions.

    Holds the three "current" pointers (scenario, step, pending action).
    The correlator only ever reads the pending action through
    :meth:`open_action`; every write happens here.
    """

    def __init__(
        self,
        *,
        commands_to_trace: Iterable[str] | None = None,
        capturer: SnapshotCapturer | None = None,
        clock: Clock = now_ms,
    ) -> None:
        traced = DEFAULT_COMMANDS_TO_TRACE if commands_to_trace is None else commands_to_trace
        self._traced = frozenset(traced)
        self.capturer = capturer
        self._clock = clock
        self._trace: Trace | None = None
        self._run_open = False
        self._scenario: Scenario | None = None
        self._step: Step | None = None
        self._pending: Action | None = None
        self._pending_step: Step | None = None
        self._pending_selector: str | None = None

    @property
    def state(self) -> LifecycleState:
        if not self._run_open:
            return LifecycleState.IDLE
        if self._pending is not None:
            return LifecycleState.ACTION_OPEN
        if self._step is not None:
            return LifecycleState.STEP_OPEN
        if self._scenario is not None:
            return LifecycleState.SCENARIO_OPEN
        return LifecycleState.RUN_OPEN

    @property
    def trace(self) -> Trace | None:
        """The current trace; stays available after the run closes for late events."""

        return self._trace

    @property
    def current_scenario(self) -> Scenario | None:
        return self._scenario

    @property
    def current_step(self) -> Step | None:
        return self._step

    def is_traced(self, command_name: str) -> bool:
        return command_name in self._traced

    def open_action(self) -> Action | None:
        return self._pending

    def current_open_action_id(self) -> str | None:
        return self._pending.id if self._pending is not None else None

    def open_run(self, meta: RunMetadata) -> Trace:
        if self._run_open:
            raise ProtocolViolation("open_run", "a run is already open")
        self._trace = Trace(
            test_name=meta.test_name,
            browser=meta.browser,
            browser_version=meta.browser_version,
            platform=meta.platform,
            start_time=self._clock(),
            metadata=TraceMetadata(
                base_url=meta.base_url,
                viewport=meta.viewport,
                user_agent=meta.user_agent,
                framework_version=meta.framework_version,
            ),
        )
        self._run_open = True
        self._scenario = self._step = self._pending = self._pending_step = None
        LOGGER.info("run_opened", test_name=meta.test_name, browser=meta.browser)
        return self._trace

    def open_scenario(
        self,
        name: str,
        feature: str = "",
        tags: Sequence[str] = (),
        feature_file: str | None = None,
    ) -> Scenario:
        trace = self._require_run("open_scenario")
        if self._scenario is not None:
            raise ProtocolViolation("open_scenario", f"scenario '{self._scenario.name}' is still open")
        scenario = Scenario(
            name=name,
            feature=feature,
            feature_file=feature_file,
            tags=list(tags),
            start_time=self._clock(),
        )
        trace.add_scenario(scenario)
        self._scenario = scenario
        LOGGER.debug("scenario_opened", scenario=name, feature=feature)
        return scenario

    def open_step(self, keyword: str, text: str, location: StepLocation | None = None) -> Step:
        self._require_run("open_step")
        if self._scenario is None:
            raise ProtocolViolation("open_step", "no scenario is open")
        if self._step is not None:
            raise ProtocolViolation("open_step", f"step '{self._step.text}' is still open")
        step = Step(keyword=keyword.strip(), text=text, start_time=self._clock(), location=location)
        self._scenario.add_step(step)
        self._step = step
        return step

    def begin_action(self, command_name: str, args: Sequence[Any] = ()) -> Action | None:
        """Open an action for a traced command; untraced commands return ``None``."""

        if not self.is_traced(command_name):
            return None
        self._require_run("begin_action")
        if self._step is None:
            raise ProtocolViolation("begin_action", f"'{command_name}' started while no step is open")
        if self._pending is not None:
            raise ProtocolViolation(
                "begin_action",
                f"'{command_name}' started while '{self._pending.name}' ({self._pending.id}) is pending",
            )

        spec = spec_for(command_name)
        selector = extract_selector(args) if spec.targets_element else None
        timestamp = self._clock()
        action = Action(
            timestamp=timestamp,
            type=spec.action_type,
            category=spec.category,
            name=command_name,
            selector=selector,
            value=extract_value(command_name, args),
        )
        if self.capturer is not None:
            before = self.capturer.capture_before(selector, spec)
            action.before_snapshot = before.screenshot
            action.before_dom = before.dom
            if before.page is not None:
                action.page_url = before.page.url
                action.page_title = before.page.title
            action.target_element = before.element
            action.click_point = before.click_point

        self._pending = action
        self._pending_step = self._step
        self._pending_selector = selector
        return action

    def end_action(self, command_name: str, result: Any = None, error: Any = None) -> Action | None:
        if not self.is_traced(command_name) or self._pending is None:
            return None
        if self._pending.name != command_name:
            LOGGER.debug(
                "action_end_ignored",
                command=command_name,
                pending=self._pending.name,
            )
            return None

        action = self._pending
        action.close(self._clock(), error_message(error))
        if self.capturer is not None:
            after = self.capturer.capture_after(self._pending_selector)
            action.after_snapshot = after.screenshot
            action.after_dom = after.dom
            if after.page is not None:
                action.page_url = after.page.url
                action.page_title = after.page.title
            if after.element is not None:
                action.target_element = after.element
        self._attach(action)
        return action

    def close_step(self, passed: bool, error: Any = None) -> Step:
        self._require_run("close_step")
        if self._step is None:
            raise ProtocolViolation("close_step", "no step is open")
        self._flush_pending("step closed while the action was pending")
        step = self._step
        step.close(self._clock(), passed, error_message(error))
        self._step = None
        return step

    def close_scenario(self, passed: bool | None = None) -> Scenario:
        self._require_run("close_scenario")
        if self._scenario is None:
            raise ProtocolViolation("close_scenario", "no scenario is open")
        if self._step is not None:
            LOGGER.warning("step_left_open", step=self._step.text, scenario=self._scenario.name)
            self.close_step(False, "Step did not finish before its scenario closed")
        scenario = self._scenario
        status = scenario.close(self._clock())
        if passed is not None and passed != (status == "passed"):
            LOGGER.warning(
                "scenario_verdict_mismatch",
                scenario=scenario.name,
                runner_passed=passed,
                recorded_status=status,
            )
        self._scenario = None
        LOGGER.debug("scenario_closed", scenario=scenario.name, status=status)
        return scenario

    def close_run(self) -> Trace:
        trace = self._require_run("close_run")
        self._flush_pending("run closed while the action was pending")
        if self._scenario is not None:
            LOGGER.warning("scenario_left_open", scenario=self._scenario.name)
            self.close_scenario()
        trace.close(self._clock())
        self._run_open = False
        LOGGER.info(
            "run_closed",
            test_name=trace.test_name,
            status=trace.overall_status(),
            duration_ms=trace.duration_ms,
        )
        return trace

    def _flush_pending(self, reason: str) -> None:
        action = self._pending
        if action is None:
            return
        LOGGER.warning("pending_action_flushed", action=action.name, action_id=action.id, reason=reason)
        action.close(self._clock(), f"Action did not complete: {reason}")
        self._attach(action)

    def _attach(self, action: Action) -> None:
        step = self._pending_step
        self._pending = None
        self._pending_step = None
        self._pending_selector = None
        if step is None:
            raise ProtocolViolation("end_action", f"action {action.id} has no owning step")
        step.add_action(action)

    def _require_run(self, operation: str) -> Trace:
        if not self._run_open or self._trace is None:
            raise ProtocolViolation(operation, "no run is open")
        return self._trace
