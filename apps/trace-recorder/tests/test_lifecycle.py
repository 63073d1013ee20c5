from __future__ import annotations

from pathlib import Path

import pytest

from trace_recorder.capture import SnapshotCapturer
from trace_recorder.errors import ProtocolViolation
from trace_recorder.lifecycle import LifecycleState, RunMetadata, TraceLifecycle


@pytest.fixture
def lifecycle(clock, driver, tmp_path: Path) -> TraceLifecycle:
    capturer = SnapshotCapturer(driver, tmp_path / "snapshots")
    return TraceLifecycle(capturer=capturer, clock=clock)


def _open_to_step(lifecycle: TraceLifecycle) -> None:
    lifecycle.open_run(RunMetadata(test_name="login.feature", browser="chrome"))
    lifecycle.open_scenario("Successful login", feature="Login", tags=["@smoke"])
    lifecycle.open_step("When ", "I submit the form")


def test_states_follow_the_callback_sequence(lifecycle: TraceLifecycle, clock) -> None:
    assert lifecycle.state is LifecycleState.IDLE
    lifecycle.open_run(RunMetadata())
    assert lifecycle.state is LifecycleState.RUN_OPEN
    lifecycle.open_scenario("s")
    assert lifecycle.state is LifecycleState.SCENARIO_OPEN
    lifecycle.open_step("Given", "a page")
    assert lifecycle.state is LifecycleState.STEP_OPEN
    lifecycle.begin_action("click", ["#go"])
    assert lifecycle.state is LifecycleState.ACTION_OPEN
    clock.advance(30)
    lifecycle.end_action("click")
    assert lifecycle.state is LifecycleState.STEP_OPEN
    lifecycle.close_step(True)
    lifecycle.close_scenario(True)
    assert lifecycle.state is LifecycleState.RUN_OPEN
    trace = lifecycle.close_run()
    assert lifecycle.state is LifecycleState.IDLE
    assert trace.overall_status() == "passed"
    assert lifecycle.trace is trace


def test_step_keyword_is_trimmed_and_scenario_metadata_kept(lifecycle: TraceLifecycle) -> None:
    _open_to_step(lifecycle)

    scenario = lifecycle.current_scenario
    assert scenario.tags == ["@smoke"]
    assert scenario.feature == "Login"
    assert lifecycle.current_step.keyword == "When"


def test_second_run_while_open_is_a_protocol_violation(lifecycle: TraceLifecycle) -> None:
    lifecycle.open_run(RunMetadata())

    with pytest.raises(ProtocolViolation) as excinfo:
        lifecycle.open_run(RunMetadata())
    assert excinfo.value.operation == "open_run"


def test_step_without_scenario_is_a_protocol_violation(lifecycle: TraceLifecycle) -> None:
    lifecycle.open_run(RunMetadata())

    with pytest.raises(ProtocolViolation):
        lifecycle.open_step("Given", "orphan step")


def test_untraced_commands_do_not_open_actions(lifecycle: TraceLifecycle) -> None:
    _open_to_step(lifecycle)

    assert lifecycle.begin_action("getText", ["#title"]) is None
    assert lifecycle.open_action() is None
    assert lifecycle.end_action("getText") is None


def test_beginning_while_pending_is_rejected_without_overwriting(lifecycle: TraceLifecycle) -> None:
    _open_to_step(lifecycle)
    first = lifecycle.begin_action("click", ["#submit"])

    with pytest.raises(ProtocolViolation):
        lifecycle.begin_action("setValue", ["#name", "abc"])
    assert lifecycle.open_action() is first
    assert lifecycle.current_open_action_id() == first.id


def test_end_without_matching_begin_is_a_no_op(lifecycle: TraceLifecycle) -> None:
    _open_to_step(lifecycle)
    assert lifecycle.end_action("click") is None

    pending = lifecycle.begin_action("click", ["#submit"])
    assert lifecycle.end_action("setValue") is None
    assert lifecycle.open_action() is pending


def test_closed_action_has_duration_status_and_captures(lifecycle: TraceLifecycle, clock, driver, tmp_path: Path) -> None:
    driver.add_element("#submit", x=10, y=20)
    _open_to_step(lifecycle)
    start = clock()

    action = lifecycle.begin_action("click", ["#submit"])
    clock.advance(120)
    driver.url = "https://shop.example/account"
    driver.title = "Account"
    lifecycle.end_action("click", result=None, error=None)

    assert action.status == "passed"
    assert action.duration == 120
    assert action.timestamp == start
    assert action.selector == "#submit"
    assert action.click_point.x == 60 and action.click_point.y == 40
    assert action.target_element.tag_name == "button"
    assert action.before_snapshot == "snapshots/screenshot-00001-before.png"
    assert action.after_snapshot == "snapshots/screenshot-00003-after.png"
    assert action.before_dom == "snapshots/dom-00002-before.html"
    assert (tmp_path / "snapshots" / "screenshot-00001-before.png").exists()
    assert driver.screenshot_calls == ["#submit", None]
    assert action.page_url == "https://shop.example/account"
    assert action.page_title == "Account"
    assert lifecycle.current_step.actions == [action]


def test_failed_command_records_error(lifecycle: TraceLifecycle, clock) -> None:
    _open_to_step(lifecycle)

    lifecycle.begin_action("setValue", ["#name", "abc"])
    clock.advance(5)
    action = lifecycle.end_action("setValue", error=RuntimeError("element not interactable"))

    assert action.status == "failed"
    assert action.error == "element not interactable"
    assert action.value == "abc"
    assert action.category == "fill"


def test_capture_failures_degrade_to_absent(lifecycle: TraceLifecycle, driver) -> None:
    driver.fail_screenshots = True
    driver.fail_dom = True
    _open_to_step(lifecycle)

    action = lifecycle.begin_action("click", ["#missing"])
    lifecycle.end_action("click")

    assert action.status == "passed"
    assert action.before_snapshot is None
    assert action.after_dom is None
    assert action.target_element is None
    assert action.click_point is None


def test_after_snapshots_stop_at_the_limit(clock, driver, tmp_path: Path) -> None:
    capturer = SnapshotCapturer(driver, tmp_path / "snapshots", max_snapshots=0)
    lifecycle = TraceLifecycle(capturer=capturer, clock=clock)
    _open_to_step(lifecycle)

    action = lifecycle.begin_action("url", ["https://shop.example"])
    lifecycle.end_action("url")

    assert action.before_snapshot is not None
    assert action.after_snapshot is None
    assert action.type == "navigation"
    assert action.selector is None


def test_closing_a_step_flushes_the_pending_action(lifecycle: TraceLifecycle) -> None:
    _open_to_step(lifecycle)
    pending = lifecycle.begin_action("waitForDisplayed", ["#spinner"])

    step = lifecycle.close_step(True)

    assert step.actions == [pending]
    assert pending.status == "failed"
    assert pending.error.startswith("Action did not complete")
    assert lifecycle.open_action() is None


def test_run_end_flushes_pending_action_and_open_nodes(lifecycle: TraceLifecycle) -> None:
    _open_to_step(lifecycle)
    pending = lifecycle.begin_action("click", ["#submit"])

    trace = lifecycle.close_run()

    scenario = trace.scenarios[0]
    step = scenario.steps[0]
    assert step.actions == [pending]
    assert pending.status == "failed"
    assert step.status == "failed"
    assert scenario.status == "failed"
    assert trace.end_time is not None
    assert all(action.status != "pending" for _, _, action in trace.iter_actions())


def test_scenario_status_is_derived_from_steps(lifecycle: TraceLifecycle) -> None:
    _open_to_step(lifecycle)
    lifecycle.close_step(False, "assertion failed")

    scenario = lifecycle.close_scenario(passed=True)

    assert scenario.status == "failed"
    assert scenario.steps[0].error == "assertion failed"


def test_command_outside_a_step_is_a_protocol_violation(lifecycle: TraceLifecycle, driver) -> None:
    lifecycle.open_run(RunMetadata())
    lifecycle.open_scenario("s")

    with pytest.raises(ProtocolViolation) as excinfo:
        lifecycle.begin_action("click", ["#outside"])

    assert excinfo.value.operation == "begin_action"
    assert lifecycle.open_action() is None
    assert driver.screenshot_calls == []
    assert lifecycle.end_action("click") is None


def test_capturer_without_snapshot_directory_skips_the_driver(driver) -> None:
    capturer = SnapshotCapturer(driver, None)

    assert capturer.screenshot("before", "#submit") is None
    assert capturer.dom("after", None) is None
    assert driver.screenshot_calls == []
