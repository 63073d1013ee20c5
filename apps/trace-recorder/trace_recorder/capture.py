"""Snapshot and element capture delegated to the automation driver."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Optional, Protocol

import structlog

from .commands import CommandSpec
from .models import ClickPoint, PageInfo, TargetElement

LOGGER = structlog.get_logger("trace_recorder")

Phase = Literal["before", "after"]


class AutomationDriver(Protocol):
    """Browser-side collaborator; every call may raise."""

    def take_screenshot(self, highlight_selector: Optional[str], highlight_color: str) -> bytes:
        ...

    def get_dom(self, highlight_selector: Optional[str], highlight_color: str) -> str:
        ...

    def resolve_element(self, selector: str) -> Optional[TargetElement]:
        ...

    def get_page_info(self) -> PageInfo:
        ...


@dataclass
class BeforeCapture:
    screenshot: str | None = None
    dom: str | None = None
    page: PageInfo | None = None
    element: TargetElement | None = None
    click_point: ClickPoint | None = None


@dataclass
class AfterCapture:
    screenshot: str | None = None
    dom: str | None = None
    page: PageInfo | None = None
    element: TargetElement | None = None


class SnapshotCapturer:
    """Wraps a driver so that capture failures degrade to "no snapshot available"."""

    def __init__(
        self,
        driver: AutomationDriver | None,
        snapshot_dir: Path | None,
        *,
        screenshots: bool = True,
        dom_snapshots: bool = True,
        max_snapshots: int = 1000,
        highlight_color: str = "rgba(255, 0, 0, 0.3)",
    ) -> None:
        self._driver = driver
        self._snapshot_dir = snapshot_dir
        self._screenshots = screenshots
        self._dom_snapshots = dom_snapshots
        self._max_snapshots = max_snapshots
        self._highlight_color = highlight_color
        self._sequence = 0
        self.after_snapshot_count = 0

    def capture_before(self, selector: str | None, spec: CommandSpec) -> BeforeCapture:
        result = BeforeCapture(
            screenshot=self.screenshot("before", selector),
            dom=self.dom("before", selector) if self._dom_snapshots else None,
            page=self.page_info(),
        )
        if spec.targets_element:
            result.element = self.element(selector)
        if spec.records_click_point:
            result.click_point = self.click_point(selector, result.element)
        return result

    def capture_after(self, selector: str | None) -> AfterCapture:
        result = AfterCapture()
        if self.after_snapshot_count < self._max_snapshots:
            result.screenshot = self.screenshot("after", None)
            if self._dom_snapshots:
                result.dom = self.dom("after", None)
            self.after_snapshot_count += 1
        result.page = self.page_info()
        if selector:
            result.element = self.element(selector)
        return result

    def screenshot(self, phase: Phase, selector: str | None) -> str | None:
        directory = self._snapshot_dir
        if self._driver is None or directory is None or not self._screenshots:
            return None
        highlight = selector if phase == "before" else None
        try:
            image = self._driver.take_screenshot(highlight, self._highlight_color)
            return self._write(directory, f"screenshot-{self._next_sequence():05d}-{phase}.png", image)
        except Exception as exc:
            LOGGER.debug("capture_failed", capture="screenshot", phase=phase, error=str(exc))
            return None

    def dom(self, phase: Phase, selector: str | None) -> str | None:
        directory = self._snapshot_dir
        if self._driver is None or directory is None:
            return None
        highlight = selector if phase == "before" else None
        try:
            markup = self._driver.get_dom(highlight, self._highlight_color)
            return self._write(directory, f"dom-{self._next_sequence():05d}-{phase}.html", markup.encode("utf-8"))
        except Exception as exc:
            LOGGER.debug("capture_failed", capture="dom", phase=phase, error=str(exc))
            return None

    def page_info(self) -> PageInfo:
        if self._driver is None:
            return PageInfo()
        try:
            return self._driver.get_page_info()
        except Exception as exc:
            LOGGER.debug("capture_failed", capture="page_info", error=str(exc))
            return PageInfo()

    def element(self, selector: str | None) -> TargetElement | None:
        if self._driver is None or not selector:
            return None
        try:
            return self._driver.resolve_element(selector)
        except Exception as exc:
            LOGGER.debug("capture_failed", capture="element", selector=selector, error=str(exc))
            return None

    def click_point(self, selector: str | None, element: TargetElement | None) -> ClickPoint | None:
        if element is None:
            element = self.element(selector)
        return element.center() if element is not None else None

    def _next_sequence(self) -> int:
        self._sequence += 1
        return self._sequence

    @staticmethod
    def _write(directory: Path, name: str, payload: bytes) -> str:
        directory.mkdir(parents=True, exist_ok=True)
        (directory / name).write_bytes(payload)
        return f"{directory.name}/{name}"
