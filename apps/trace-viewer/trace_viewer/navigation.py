"""Selection and tab state for exploring a materialized trace."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal, Optional

from trace_recorder.models import Action, ClickPoint, NetworkEntry, Trace, TraceIndex

from .views import Waterfall, WaterfallBar, compute_waterfall, filter_bars


class SnapshotTab(str, Enum):
    BEFORE = "before"
    AFTER = "after"
    DOM_BEFORE = "dom-before"
    DOM_AFTER = "dom-after"


class DetailsTab(str, Enum):
    CALL = "call"
    CONSOLE = "console"
    NETWORK = "network"


class NetworkFilter(str, Enum):
    ALL = "all"
    DOCUMENT = "document"
    STYLESHEET = "stylesheet"
    SCRIPT = "script"
    IMAGE = "image"
    XHR = "xhr"
    FONT = "font"


@dataclass(frozen=True)
class SnapshotView:
    """What the snapshot pane shows for the current selection and tab."""

    kind: Literal["image", "dom", "empty"]
    source: Optional[str] = None
    message: Optional[str] = None
    click_point: Optional[ClickPoint] = None
    page_url: Optional[str] = None


class TraceNavigator:
    """
    Client-side navigation over a trace that is never modified.

    Selecting an action re-scopes the network view to that action's own
    entries; with nothing selected the whole run's entries are shown.
    """

    def __init__(self, trace: Trace, index: TraceIndex | None = None) -> None:
        self.trace = trace
        self.index = index or TraceIndex.build(trace)
        self.selected_action_id: str | None = None
        self.snapshot_tab = SnapshotTab.BEFORE
        self.details_tab = DetailsTab.CALL
        self.network_filter = NetworkFilter.ALL

    @property
    def selected_action(self) -> Action | None:
        if self.selected_action_id is None:
            return None
        return self.index.action(self.selected_action_id)

    def select_action(self, action_id: str | None) -> Action | None:
        if action_id is None:
            self.selected_action_id = None
            return None
        action = self.index.action(action_id)
        if action is None:
            raise KeyError(f"Unknown action id: {action_id}")
        self.selected_action_id = action_id
        return action

    def select_first(self) -> Action | None:
        actions = self.index.actions
        return self.select_action(actions[0].id) if actions else None

    def set_snapshot_tab(self, tab: SnapshotTab | str) -> None:
        self.snapshot_tab = SnapshotTab(tab)

    def set_details_tab(self, tab: DetailsTab | str) -> None:
        self.details_tab = DetailsTab(tab)

    def set_network_filter(self, network_filter: NetworkFilter | str) -> None:
        self.network_filter = NetworkFilter(network_filter)

    def network_entries(self) -> list[NetworkEntry]:
        action = self.selected_action
        if action is None:
            return list(self.trace.network_logs)
        return self.trace.network_for(action)

    def network_badge_count(self) -> int:
        return len(self.network_entries())

    def waterfall(self) -> Waterfall:
        return compute_waterfall(self.network_entries())

    def visible_bars(self) -> list[WaterfallBar]:
        return filter_bars(self.waterfall(), self.network_filter.value)

    def snapshot_view(self) -> SnapshotView:
        action = self.selected_action
        if action is None:
            return SnapshotView(kind="empty", message="Select an action to view snapshot")

        if self.snapshot_tab in (SnapshotTab.DOM_BEFORE, SnapshotTab.DOM_AFTER):
            dom = action.before_dom if self.snapshot_tab is SnapshotTab.DOM_BEFORE else action.after_dom
            if dom is None:
                return SnapshotView(kind="empty", message="No DOM snapshot available")
            return SnapshotView(kind="dom", source=dom, page_url=action.page_url or "about:blank")

        before = self.snapshot_tab is SnapshotTab.BEFORE
        image = action.before_snapshot if before else action.after_snapshot
        if image is None:
            return SnapshotView(kind="empty", message=f"No {self.snapshot_tab.value} snapshot available")
        return SnapshotView(kind="image", source=image, click_point=action.click_point if before else None)
