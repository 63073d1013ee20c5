"""Test bootstrap for trace-recorder."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import pytest

APPS_DIR = Path(__file__).resolve().parents[2]
for package in ["trace-recorder", "trace-viewer"]:
    package_root = APPS_DIR / package
    path_str = str(package_root)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from trace_recorder.models import BoundingBox, PageInfo, TargetElement  # noqa: E402


class ManualClock:
    """Deterministic millisecond clock advanced by hand."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now

    def __call__(self) -> int:
        return self.now


class FakeDriver:
    """Automation driver double that records calls and can be told to fail."""

    def __init__(self) -> None:
        self.url = "https://shop.example/login"
        self.title = "Login"
        self.fail_screenshots = False
        self.fail_dom = False
        self.screenshot_calls: list[Optional[str]] = []
        self.elements: dict[str, TargetElement] = {}

    def add_element(self, selector: str, tag: str = "button", x: float = 10, y: float = 20) -> TargetElement:
        element = TargetElement(
            selector=selector,
            tag_name=tag,
            id=selector.lstrip("#"),
            text_content="Submit",
            bounding_box=BoundingBox(x=x, y=y, width=100, height=40),
        )
        self.elements[selector] = element
        return element

    def take_screenshot(self, highlight_selector: Optional[str], highlight_color: str) -> bytes:
        self.screenshot_calls.append(highlight_selector)
        if self.fail_screenshots:
            raise RuntimeError("screenshot failed")
        return b"\x89PNG fake"

    def get_dom(self, highlight_selector: Optional[str], highlight_color: str) -> str:
        if self.fail_dom:
            raise RuntimeError("dom failed")
        return f"<html><body data-highlight='{highlight_selector}'></body></html>"

    def resolve_element(self, selector: str) -> Optional[TargetElement]:
        return self.elements.get(selector)

    def get_page_info(self) -> PageInfo:
        return PageInfo(url=self.url, title=self.title)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()
