from __future__ import annotations

import json
import re

from trace_recorder.models import NetworkEntry, Trace
from trace_viewer.renderer import generate_index_page, generate_trace_viewer
from trace_viewer.views import RunSummary

_TRACE_DATA = re.compile(r'<script type="application/json" id="trace-data">(.*?)</script>', re.S)


def test_viewer_is_self_contained(checkout_trace) -> None:
    html = generate_trace_viewer(checkout_trace)

    assert html.startswith("<!DOCTYPE html>")
    assert "<link" not in html
    assert "<script src" not in html
    assert 'src="snapshots/screenshot-00001-before.png"' in html


def test_embedded_trace_cannot_close_its_script_tag(checkout_trace) -> None:
    html = generate_trace_viewer(checkout_trace)

    assert "<script>alert(1)" not in html
    (payload,) = _TRACE_DATA.findall(html)
    data = json.loads(payload)
    assert data["test_name"] == "checkout.feature"
    assert data["console_logs"][0]["message"] == "</script><script>alert(1)</script>"


def test_templates_exist_per_action_and_request(checkout_trace) -> None:
    html = generate_trace_viewer(checkout_trace)

    assert 'id="tpl-waterfall-global"' in html
    assert 'id="tpl-console"' in html
    for action_id in ("a1", "a2", "a3"):
        assert f'id="tpl-call-{action_id}"' in html
        assert f'id="tpl-waterfall-{action_id}"' in html
    for entry_id in ("r1", "r2", "r3"):
        assert f'id="tpl-net-{entry_id}"' in html


def test_action_rows_carry_their_network_count(checkout_trace) -> None:
    html = generate_trace_viewer(checkout_trace)

    assert 'data-action-id="a1" data-network-count="2"' in html
    assert 'data-action-id="a2" data-network-count="0"' in html
    assert "No network requests for this action" in html


def test_missing_response_body_is_stated(checkout_trace) -> None:
    html = generate_trace_viewer(checkout_trace)

    net_r3 = html.split('id="tpl-net-r3"', 1)[1].split("</template>", 1)[0]
    assert "No response body captured" in net_r3


def _net_template(html: str, entry_id: str) -> str:
    return html.split(f'id="tpl-net-{entry_id}"', 1)[1].split("</template>", 1)[0]


def test_html_preview_stays_offline(checkout_trace) -> None:
    net_r1 = _net_template(generate_trace_viewer(checkout_trace), "r1")

    assert "srcdoc=" in net_r1
    assert "base href" not in net_r1
    assert "Content-Security-Policy" in net_r1


def test_image_without_recorded_bytes_is_not_fetched(checkout_trace) -> None:
    checkout_trace.add_network_entry(
        NetworkEntry(
            id="r4",
            request_id="r4",
            timestamp=1200,
            url="https://cdn.example/logo.png",
            resource_type="image",
            status=200,
            mime_type="image/png",
            response_body="not-recorded-as-base64",
        )
    )

    net_r4 = _net_template(generate_trace_viewer(checkout_trace), "r4")

    assert "No preview available" in net_r4
    assert "<img" not in net_r4


def test_call_template_names_the_owning_step_and_scenario(checkout_trace) -> None:
    html = generate_trace_viewer(checkout_trace)

    call_a1 = html.split('id="tpl-call-a1"', 1)[1].split("</template>", 1)[0]
    assert "When I pay" in call_a1
    assert "Checkout" in call_a1


def test_empty_trace_renders_placeholders() -> None:
    html = generate_trace_viewer(Trace(test_name="empty.feature", start_time=0, end_time=0))

    assert "No network requests captured" in html
    assert "No console logs captured" in html
    assert '<span class="badge" id="network-badge">0</span>' in html


def test_index_page_links_each_run() -> None:
    summaries = [
        RunSummary(
            run_dir="trace-1",
            test_name="login.feature",
            browser="firefox",
            status="passed",
            duration_ms=2500,
            scenarios=2,
            viewer_path="trace-1/trace-viewer.html",
        )
    ]

    page = generate_index_page(summaries)

    assert 'href="trace-1/trace-viewer.html"' in page
    assert "2.5s" in page
    assert "No recorded runs" in generate_index_page([])
