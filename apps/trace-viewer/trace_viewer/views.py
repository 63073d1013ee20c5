"""Pure view builders over a recorded trace: action tree, filmstrip and network waterfall."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Literal, Optional, Sequence
from urllib.parse import urlsplit

from trace_recorder.models import Action, NetworkEntry, Trace

ResourceType = Literal["document", "stylesheet", "script", "image", "font", "xhr", "other"]
TreeNodeKind = Literal["scenario", "step", "action"]

RESOURCE_TYPES: tuple[ResourceType, ...] = ("document", "stylesheet", "script", "image", "font", "xhr", "other")

RESOURCE_COLORS: dict[ResourceType, str] = {
    "document": "#4ec9b0",
    "stylesheet": "#569cd6",
    "script": "#dcdcaa",
    "image": "#c586c0",
    "font": "#9cdcfe",
    "xhr": "#ce9178",
    "other": "#808080",
}

DEFAULT_SPAN_MS = 1000
MIN_BAR_WIDTH = 1.0

_IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".ico")
_FONT_SUFFIXES = (".woff", ".woff2", ".ttf", ".otf", ".eot")

_STEP_ICONS = {"given": "📋", "when": "▶️", "then": "✓", "and": "➕", "but": "➕"}
_ACTION_ICONS = {
    "click": "🖱",
    "fill": "✏",
    "navigate": "🔗",
    "wait": "⏳",
    "keyboard": "⌨",
    "select": "☑",
    "scroll": "↕",
    "other": "•",
}


def classify_resource(entry: NetworkEntry) -> ResourceType:
    """Map an entry onto exactly one resource type.

    Precedence is fixed: document, stylesheet, script, image, font, xhr,
    then other. URL suffixes are checked on the path with the query
    string removed.
    """

    mime = (entry.mime_type or "").lower()
    path = urlsplit(entry.url or "").path.lower()
    declared = (entry.resource_type or "").lower()

    if "html" in mime or declared == "document":
        return "document"
    if "css" in mime or path.endswith(".css"):
        return "stylesheet"
    if "javascript" in mime or "ecmascript" in mime or path.endswith(".js"):
        return "script"
    if "image" in mime or path.endswith(_IMAGE_SUFFIXES):
        return "image"
    if "font" in mime or path.endswith(_FONT_SUFFIXES):
        return "font"
    if "json" in mime or declared in ("xhr", "fetch"):
        return "xhr"
    return "other"


@dataclass(frozen=True)
class WaterfallBar:
    entry: NetworkEntry
    resource_type: ResourceType
    start_offset_ms: int
    start_percent: float
    width_percent: float

    @property
    def color(self) -> str:
        return RESOURCE_COLORS[self.resource_type]


@dataclass(frozen=True)
class Waterfall:
    min_start: int
    max_end: int
    bars: tuple[WaterfallBar, ...] = ()

    @property
    def span_ms(self) -> int:
        return self.max_end - self.min_start

    def __len__(self) -> int:
        return len(self.bars)


def compute_waterfall(entries: Sequence[NetworkEntry]) -> Waterfall:
    """Lay entries out proportionally between the earliest start and the latest end."""

    if not entries:
        return Waterfall(min_start=0, max_end=0)

    min_start = min(entry.timestamp for entry in entries)
    max_end = max(entry.timestamp + (entry.duration or 0) for entry in entries)
    if max_end <= min_start:
        max_end = min_start + DEFAULT_SPAN_MS
    span = max_end - min_start

    bars = []
    for entry in entries:
        offset = entry.timestamp - min_start
        start_percent = _clamp(offset / span * 100)
        width_percent = _clamp(max((entry.duration or 0) / span * 100, MIN_BAR_WIDTH))
        bars.append(
            WaterfallBar(
                entry=entry,
                resource_type=classify_resource(entry),
                start_offset_ms=offset,
                start_percent=start_percent,
                width_percent=width_percent,
            )
        )
    return Waterfall(min_start=min_start, max_end=max_end, bars=tuple(bars))


def filter_bars(waterfall: Waterfall, resource_filter: str = "all") -> list[WaterfallBar]:
    if resource_filter == "all":
        return list(waterfall.bars)
    return [bar for bar in waterfall.bars if bar.resource_type == resource_filter]


def _clamp(value: float) -> float:
    return min(max(value, 0.0), 100.0)


@dataclass
class TreeNode:
    """One row of the flattened scenario → step → action tree."""

    id: str
    kind: TreeNodeKind
    depth: int
    label: str
    icon: str
    status: str
    parent_id: Optional[str] = None
    duration: Optional[int] = None
    category: Optional[str] = None
    network_count: int = 0
    expanded: bool = True


def build_action_tree(trace: Trace, collapsed: Iterable[str] = ()) -> list[TreeNode]:
    """Flatten the trace into display rows; each node carries its own expanded flag."""

    collapsed_ids = set(collapsed)
    nodes: list[TreeNode] = []
    for scenario in trace.scenarios:
        nodes.append(
            TreeNode(
                id=scenario.id,
                kind="scenario",
                depth=0,
                label=scenario.name,
                icon="📁",
                status=scenario.status,
                expanded=scenario.id not in collapsed_ids,
            )
        )
        for step in scenario.steps:
            nodes.append(
                TreeNode(
                    id=step.id,
                    kind="step",
                    depth=1,
                    label=f"{step.keyword} {step.text}".strip(),
                    icon=step_icon(step.keyword),
                    status=step.status,
                    parent_id=scenario.id,
                    expanded=step.id not in collapsed_ids,
                )
            )
            for action in step.actions:
                nodes.append(
                    TreeNode(
                        id=action.id,
                        kind="action",
                        depth=2,
                        label=format_action_name(action),
                        icon=action_icon(action.category),
                        status=action.status,
                        parent_id=step.id,
                        duration=action.duration,
                        category=action.category,
                        network_count=len(trace.network_for(action)),
                    )
                )
    return nodes


def visible_nodes(nodes: Sequence[TreeNode]) -> list[TreeNode]:
    """Drop rows that sit below a collapsed ancestor."""

    visible: list[TreeNode] = []
    hidden_below: int | None = None
    for node in nodes:
        if hidden_below is not None:
            if node.depth > hidden_below:
                continue
            hidden_below = None
        visible.append(node)
        if not node.expanded:
            hidden_below = node.depth
    return visible


@dataclass(frozen=True)
class FilmstripFrame:
    action_id: str
    name: str
    snapshot: Optional[str]
    offset_seconds: float

    @property
    def label(self) -> str:
        return f"{self.offset_seconds:.1f}s"


def build_filmstrip(trace: Trace) -> list[FilmstripFrame]:
    """Every action across the run in time order, with its preferred snapshot."""

    actions = sorted((action for _, _, action in trace.iter_actions()), key=lambda action: action.timestamp)
    return [
        FilmstripFrame(
            action_id=action.id,
            name=action.name,
            snapshot=action.before_snapshot or action.after_snapshot,
            offset_seconds=(action.timestamp - trace.start_time) / 1000,
        )
        for action in actions
    ]


def format_duration(ms: int | None) -> str:
    ms = ms or 0
    if ms < 1000:
        return f"{ms}ms"
    return f"{ms / 1000:.1f}s"


def format_bytes(size: int | None) -> str:
    if not size:
        return "0 B"
    scaled = float(size)
    for unit in ("B", "KB", "MB"):
        if scaled < 1024:
            return f"{round(scaled, 1):g} {unit}"
        scaled /= 1024
    return f"{round(scaled, 1):g} GB"


def format_action_name(action: Action) -> str:
    name = action.name
    if action.selector:
        selector = action.selector if len(action.selector) <= 20 else action.selector[:20] + "..."
        name += f" ({selector})"
    if action.value and action.category == "fill":
        value = action.value if len(action.value) <= 15 else action.value[:15] + "..."
        name += f' "{value}"'
    return name


def step_icon(keyword: str) -> str:
    return _STEP_ICONS.get(keyword.strip().lower(), "•")


def action_icon(category: str) -> str:
    return _ACTION_ICONS.get(category, "•")


def status_class(status: int | None) -> str:
    """CSS class for an HTTP status badge."""

    if status is None:
        return ""
    if status < 300:
        return "success"
    if status < 400:
        return "redirect"
    return "error"


@dataclass(frozen=True)
class RunSummary:
    """One line of the cross-run index."""

    run_dir: str
    test_name: str
    browser: str
    status: str
    duration_ms: int
    scenarios: int
    viewer_path: str
