"""Test bootstrap for trace-viewer."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

APPS_DIR = Path(__file__).resolve().parents[2]
for package in ["trace-recorder", "trace-viewer"]:
    package_root = APPS_DIR / package
    path_str = str(package_root)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from trace_recorder.models import (  # noqa: E402
    Action,
    BoundingBox,
    ClickPoint,
    ConsoleEntry,
    NetworkEntry,
    Scenario,
    Step,
    TargetElement,
    Trace,
)


def build_checkout_trace() -> Trace:
    """One scenario, two steps, three actions and three requests (one outside any action)."""

    pay = Action(
        id="a1",
        timestamp=1100,
        category="click",
        name="click",
        selector="#pay",
        duration=200,
        before_snapshot="snapshots/screenshot-00001-before.png",
        before_dom="snapshots/dom-00002-before.html",
        target_element=TargetElement(
            selector="#pay",
            tag_name="button",
            id="pay",
            text_content="Pay now",
            bounding_box=BoundingBox(x=10, y=20, width=100, height=40),
        ),
        click_point=ClickPoint(x=60, y=40),
        network_ids=["r1", "r2"],
        status="passed",
    )
    email = Action(
        id="a2",
        timestamp=1500,
        category="fill",
        name="setValue",
        selector="#email",
        value="user@example.com",
        duration=50,
        after_snapshot="snapshots/screenshot-00004-after.png",
        page_url="https://shop.example/checkout",
        page_title="Checkout",
        status="passed",
    )
    receipt = Action(
        id="a3",
        timestamp=1300,
        type="navigation",
        category="navigate",
        name="url",
        value="https://shop.example/receipt",
        duration=400,
        status="failed",
        error="Timed out",
    )
    scenario = Scenario(
        id="s1",
        name="Checkout",
        feature="Payments",
        start_time=1000,
        end_time=2900,
        status="failed",
        steps=[
            Step(id="st1", keyword="When", text="I pay", start_time=1050, end_time=1600, status="passed", actions=[pay, email]),
            Step(id="st2", keyword="Then", text="I see the receipt", start_time=1250, end_time=2800, status="failed", actions=[receipt]),
        ],
    )
    network = [
        NetworkEntry(
            id="r1",
            request_id="r1",
            timestamp=1100,
            url="https://shop.example/checkout",
            resource_type="document",
            status=200,
            mime_type="text/html",
            duration=100,
            size=2048,
            response_body="<h1>Pay</h1>",
        ),
        NetworkEntry(
            id="r2",
            request_id="r2",
            timestamp=1150,
            method="POST",
            url="https://shop.example/api/pay?attempt=1",
            resource_type="fetch",
            status=500,
            mime_type="application/json",
            duration=150,
            request_body='{"card": "4242"}',
            response_body='{"ok": false}',
            response_headers={"Content-Type": "application/json"},
        ),
        NetworkEntry(
            id="r3",
            request_id="r3",
            timestamp=1000,
            url="https://cdn.example/app.js?v=3",
            resource_type="script",
        ),
    ]
    return Trace(
        test_name="checkout.feature",
        browser="chrome",
        browser_version="120.0",
        platform="linux",
        start_time=1000,
        end_time=3000,
        scenarios=[scenario],
        console_logs=[ConsoleEntry(timestamp=1200, type="error", message="</script><script>alert(1)</script>")],
        network_logs=network,
    )


@pytest.fixture
def checkout_trace() -> Trace:
    return build_checkout_trace()
