"""Pydantic models describing a recorded test run."""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass
from typing import Any, Iterator, Literal, Optional

from pydantic import BaseModel, Field, PrivateAttr

from .errors import StatusTransitionError

TRACE_FORMAT_VERSION = "1.0.0"

Status = Literal["pending", "passed", "failed"]
ActionType = Literal["action", "navigation", "wait", "assertion"]
ActionCategory = Literal["click", "fill", "navigate", "select", "keyboard", "wait", "scroll", "other"]
ConsoleLevel = Literal["log", "info", "warn", "error", "debug"]
BodyEncoding = Literal["string", "base64"]


def now_ms() -> int:
    """Wall-clock time in epoch milliseconds."""

    return int(time.time() * 1000)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _finish(node: Any, status: Status) -> None:
    if status == "pending":
        raise StatusTransitionError(f"{type(node).__name__} {node.id} cannot close as pending")
    if node.status != "pending":
        raise StatusTransitionError(f"{type(node).__name__} {node.id} is already {node.status}")
    node.status = status


class Viewport(BaseModel):
    width: int
    height: int


class TraceMetadata(BaseModel):
    """Environment details captured when the run starts."""

    base_url: Optional[str] = None
    viewport: Optional[Viewport] = None
    user_agent: Optional[str] = None
    framework_version: Optional[str] = None


class BoundingBox(BaseModel):
    x: float
    y: float
    width: float
    height: float


class ClickPoint(BaseModel):
    x: int
    y: int


class TargetElement(BaseModel):
    """Resolved element an action was aimed at."""

    selector: str
    tag_name: str
    id: Optional[str] = None
    class_name: Optional[str] = None
    text_content: Optional[str] = None
    input_value: Optional[str] = None
    bounding_box: Optional[BoundingBox] = None

    def center(self) -> ClickPoint | None:
        """Viewport-relative centre of the bounding box, rounded to pixels."""

        box = self.bounding_box
        if box is None:
            return None
        return ClickPoint(x=round(box.x + box.width / 2), y=round(box.y + box.height / 2))


class PageInfo(BaseModel):
    url: str = ""
    title: str = ""


class StepLocation(BaseModel):
    file: str
    line: int


class NetworkTiming(BaseModel):
    start_time: int
    response_start: Optional[int] = None
    response_end: Optional[int] = None


class Cookie(BaseModel):
    name: str
    value: str
    domain: Optional[str] = None
    path: Optional[str] = None


class Initiator(BaseModel):
    type: str = "other"
    url: Optional[str] = None
    line_number: Optional[int] = None


class ConsoleEntry(BaseModel):
    timestamp: int
    type: ConsoleLevel = "log"
    message: str = ""
    location: Optional[str] = None
    args: list[str] = Field(default_factory=list)


class NetworkEntry(BaseModel):
    """One browser request; fields fill in as later events arrive."""

    id: str
    request_id: str
    timestamp: int
    method: str = "GET"
    url: str = ""
    resource_type: str = "other"
    status: Optional[int] = None
    status_text: Optional[str] = None
    mime_type: Optional[str] = None
    duration: Optional[int] = None
    size: Optional[int] = None
    request_headers: Optional[dict[str, str]] = None
    response_headers: Optional[dict[str, str]] = None
    request_body: Optional[str] = None
    request_body_size: Optional[int] = None
    response_body: Optional[str] = None
    response_body_encoding: Optional[BodyEncoding] = None
    response_body_size: Optional[int] = None
    timing: Optional[NetworkTiming] = None
    cookies: list[Cookie] = Field(default_factory=list)
    initiator: Optional[Initiator] = None

    @property
    def completed(self) -> bool:
        return self.status is not None


class Action(BaseModel):
    """One traced automation command and everything observed while it ran."""

    id: str = Field(default_factory=lambda: new_id("action"))
    timestamp: int
    type: ActionType = "action"
    category: ActionCategory = "other"
    name: str
    selector: Optional[str] = None
    value: Optional[str] = None
    duration: Optional[int] = None
    before_snapshot: Optional[str] = None
    after_snapshot: Optional[str] = None
    before_dom: Optional[str] = None
    after_dom: Optional[str] = None
    page_url: Optional[str] = None
    page_title: Optional[str] = None
    target_element: Optional[TargetElement] = None
    click_point: Optional[ClickPoint] = None
    network_ids: list[str] = Field(default_factory=list)
    status: Status = "pending"
    error: Optional[str] = None

    @property
    def end_time(self) -> int | None:
        if self.duration is None:
            return None
        return self.timestamp + self.duration

    def close(self, end_time: int, error: str | None = None) -> None:
        _finish(self, "failed" if error is not None else "passed")
        self.duration = max(end_time, self.timestamp) - self.timestamp
        self.error = error


class Step(BaseModel):
    id: str = Field(default_factory=lambda: new_id("step"))
    keyword: str = ""
    text: str
    start_time: int
    end_time: Optional[int] = None
    status: Status = "pending"
    error: Optional[str] = None
    actions: list[Action] = Field(default_factory=list)
    location: Optional[StepLocation] = None

    def add_action(self, action: Action) -> None:
        self.actions.append(action)

    def close(self, end_time: int, passed: bool, error: str | None = None) -> None:
        _finish(self, "passed" if passed else "failed")
        self.end_time = max(end_time, self.start_time)
        if error:
            self.error = error


class Scenario(BaseModel):
    id: str = Field(default_factory=lambda: new_id("scenario"))
    name: str
    feature: str = ""
    feature_file: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    start_time: int
    end_time: Optional[int] = None
    status: Status = "pending"
    steps: list[Step] = Field(default_factory=list)

    def add_step(self, step: Step) -> None:
        self.steps.append(step)

    def derived_status(self) -> Status:
        """A scenario passes iff every one of its steps passed."""

        return "passed" if all(step.status == "passed" for step in self.steps) else "failed"

    def close(self, end_time: int) -> Status:
        _finish(self, self.derived_status())
        self.end_time = max(end_time, self.start_time)
        return self.status


class Trace(BaseModel):
    """Root of a recorded run; ``network_logs`` owns every network entry."""

    version: str = TRACE_FORMAT_VERSION
    test_name: str
    browser: str = "unknown"
    browser_version: Optional[str] = None
    platform: str = "unknown"
    metadata: TraceMetadata = Field(default_factory=TraceMetadata)
    start_time: int
    end_time: Optional[int] = None
    scenarios: list[Scenario] = Field(default_factory=list)
    console_logs: list[ConsoleEntry] = Field(default_factory=list)
    network_logs: list[NetworkEntry] = Field(default_factory=list)
    protocol_violations: list[str] = Field(default_factory=list)

    _network_by_id: dict[str, NetworkEntry] = PrivateAttr(default_factory=dict)
    _network_lock: threading.Lock = PrivateAttr(default_factory=threading.Lock)

    def model_post_init(self, __context: Any) -> None:
        self._network_by_id = {entry.id: entry for entry in self.network_logs}

    @property
    def closed(self) -> bool:
        return self.end_time is not None

    @property
    def duration_ms(self) -> int:
        if self.end_time is None:
            return 0
        return self.end_time - self.start_time

    def add_scenario(self, scenario: Scenario) -> None:
        self.scenarios.append(scenario)

    def add_console_entry(self, entry: ConsoleEntry) -> None:
        self.console_logs.append(entry)

    def add_network_entry(self, entry: NetworkEntry, *, rename_duplicate: bool = False) -> NetworkEntry:
        """Store an entry under its id.

        With ``rename_duplicate`` a taken id becomes ``<id>#2``, ``<id>#3`` and so
        on; the free id is chosen and stored under one lock.
        """

        with self._network_lock:
            if entry.id in self._network_by_id:
                if not rename_duplicate:
                    raise ValueError(f"Network entry {entry.id} is already recorded")
                base_id = entry.id
                suffix = 2
                while f"{base_id}#{suffix}" in self._network_by_id:
                    suffix += 1
                entry.id = f"{base_id}#{suffix}"
            self.network_logs.append(entry)
            self._network_by_id[entry.id] = entry
        return entry

    def network_entry(self, entry_id: str) -> NetworkEntry | None:
        return self._network_by_id.get(entry_id)

    def network_for(self, action: Action) -> list[NetworkEntry]:
        """Resolve an action's local network scope against the shared store."""

        entries = (self._network_by_id.get(entry_id) for entry_id in action.network_ids)
        return [entry for entry in entries if entry is not None]

    def iter_actions(self) -> Iterator[tuple[Scenario, Step, Action]]:
        for scenario in self.scenarios:
            for step in scenario.steps:
                for action in step.actions:
                    yield scenario, step, action

    def overall_status(self) -> Literal["passed", "failed"]:
        return "passed" if all(s.status == "passed" for s in self.scenarios) else "failed"

    def close(self, end_time: int) -> None:
        if self.end_time is not None:
            raise StatusTransitionError(f"Trace {self.test_name} is already closed")
        self.end_time = max(end_time, self.start_time)


@dataclass(frozen=True)
class NodeLocation:
    """Where a tree node sits: its scenario, and step/action when deeper."""

    scenario: Scenario
    step: Step | None = None
    action: Action | None = None


class TraceIndex:
    """Identity lookup over scenarios, steps and actions, built once."""

    def __init__(self, trace: Trace) -> None:
        self.trace = trace
        self._nodes: dict[str, NodeLocation] = {}
        self._actions: list[Action] = []
        for scenario in trace.scenarios:
            self._nodes[scenario.id] = NodeLocation(scenario=scenario)
            for step in scenario.steps:
                self._nodes[step.id] = NodeLocation(scenario=scenario, step=step)
                for action in step.actions:
                    self._nodes[action.id] = NodeLocation(scenario=scenario, step=step, action=action)
                    self._actions.append(action)

    @classmethod
    def build(cls, trace: Trace) -> "TraceIndex":
        return cls(trace)

    def locate(self, node_id: str) -> NodeLocation | None:
        return self._nodes.get(node_id)

    def action(self, action_id: str) -> Action | None:
        location = self._nodes.get(action_id)
        return location.action if location else None

    @property
    def actions(self) -> list[Action]:
        return list(self._actions)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)
