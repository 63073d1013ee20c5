from __future__ import annotations

import pytest

from trace_recorder.models import Action, NetworkEntry
from trace_viewer.views import (
    DEFAULT_SPAN_MS,
    RESOURCE_COLORS,
    RESOURCE_TYPES,
    build_action_tree,
    build_filmstrip,
    classify_resource,
    compute_waterfall,
    filter_bars,
    format_action_name,
    format_bytes,
    format_duration,
    status_class,
    step_icon,
    visible_nodes,
)


def _entry(entry_id: str = "r", **fields) -> NetworkEntry:
    fields.setdefault("timestamp", 0)
    return NetworkEntry(id=entry_id, request_id=entry_id, **fields)


@pytest.mark.parametrize(
    ("fields", "expected"),
    [
        ({"mime_type": "text/html; charset=utf-8"}, "document"),
        ({"resource_type": "document"}, "document"),
        ({"mime_type": "text/html", "url": "https://x.example/app.js"}, "document"),
        ({"url": "https://x.example/site.css?v=2"}, "stylesheet"),
        ({"mime_type": "application/json", "url": "https://x.example/theme.css"}, "stylesheet"),
        ({"mime_type": "application/javascript"}, "script"),
        ({"url": "https://x.example/bundle.js?cache=1"}, "script"),
        ({"mime_type": "image/svg+xml"}, "image"),
        ({"url": "https://x.example/LOGO.PNG"}, "image"),
        ({"mime_type": "font/woff2"}, "font"),
        ({"url": "https://x.example/inter.woff2"}, "font"),
        ({"mime_type": "application/json"}, "xhr"),
        ({"resource_type": "fetch", "url": "https://x.example/api"}, "xhr"),
        ({"resource_type": "xhr"}, "xhr"),
        ({"url": "https://x.example/download.bin", "mime_type": "application/octet-stream"}, "other"),
        ({}, "other"),
    ],
)
def test_classification_is_total_and_ordered(fields, expected) -> None:
    resource_type = classify_resource(_entry(**fields))

    assert resource_type == expected
    assert resource_type in RESOURCE_TYPES
    assert resource_type in RESOURCE_COLORS


def test_global_waterfall_is_proportional(checkout_trace) -> None:
    waterfall = compute_waterfall(checkout_trace.network_logs)

    assert waterfall.min_start == 1000
    assert waterfall.max_end == 1300
    assert waterfall.span_ms == 300
    bars = {bar.entry.id: bar for bar in waterfall.bars}
    assert bars["r3"].start_percent == 0
    assert bars["r3"].width_percent == 1.0
    assert bars["r2"].start_percent == pytest.approx(50.0)
    assert bars["r2"].width_percent == pytest.approx(50.0)
    assert bars["r1"].start_offset_ms == 100


def test_action_waterfall_uses_its_own_bounds(checkout_trace) -> None:
    action = checkout_trace.scenarios[0].steps[0].actions[0]

    waterfall = compute_waterfall(checkout_trace.network_for(action))

    assert waterfall.span_ms == 200
    first, second = waterfall.bars
    assert (first.start_percent, first.width_percent) == (0.0, pytest.approx(50.0))
    assert second.start_percent == pytest.approx(25.0)
    assert second.width_percent == pytest.approx(75.0)


def test_zero_span_falls_back_to_default_window() -> None:
    waterfall = compute_waterfall([_entry(timestamp=5000)])

    assert waterfall.span_ms == DEFAULT_SPAN_MS
    (bar,) = waterfall.bars
    assert bar.start_percent == 0
    assert bar.width_percent == 1.0


def test_bars_stay_within_the_track() -> None:
    entries = [
        _entry("a", timestamp=0, duration=10),
        _entry("b", timestamp=3, duration=0),
        _entry("c", timestamp=9, duration=100_000),
    ]

    for bar in compute_waterfall(entries).bars:
        assert 0 <= bar.start_percent <= 100
        assert 1 <= bar.width_percent <= 100


def test_empty_waterfall() -> None:
    waterfall = compute_waterfall([])

    assert len(waterfall) == 0
    assert waterfall.span_ms == 0


def test_filter_bars_by_resource_type(checkout_trace) -> None:
    waterfall = compute_waterfall(checkout_trace.network_logs)

    assert len(filter_bars(waterfall)) == 3
    assert [bar.entry.id for bar in filter_bars(waterfall, "xhr")] == ["r2"]
    assert filter_bars(waterfall, "font") == []


def test_action_tree_rows(checkout_trace) -> None:
    nodes = build_action_tree(checkout_trace)

    assert [(node.id, node.depth) for node in nodes] == [
        ("s1", 0),
        ("st1", 1),
        ("a1", 2),
        ("a2", 2),
        ("st2", 1),
        ("a3", 2),
    ]
    by_id = {node.id: node for node in nodes}
    assert by_id["st1"].label == "When I pay"
    assert by_id["st1"].icon == step_icon("When")
    assert by_id["a1"].label == "click (#pay)"
    assert by_id["a1"].network_count == 2
    assert by_id["a2"].network_count == 0
    assert by_id["a3"].parent_id == "st2"


def test_collapsed_nodes_hide_their_descendants(checkout_trace) -> None:
    assert [n.id for n in visible_nodes(build_action_tree(checkout_trace, collapsed={"st1"}))] == [
        "s1",
        "st1",
        "st2",
        "a3",
    ]
    assert [n.id for n in visible_nodes(build_action_tree(checkout_trace, collapsed={"s1"}))] == ["s1"]


def test_filmstrip_follows_time_not_tree_order(checkout_trace) -> None:
    frames = build_filmstrip(checkout_trace)

    assert [frame.action_id for frame in frames] == ["a1", "a3", "a2"]
    assert frames[0].snapshot == "snapshots/screenshot-00001-before.png"
    assert frames[0].label == "0.1s"
    assert frames[1].snapshot is None
    assert frames[2].snapshot == "snapshots/screenshot-00004-after.png"
    assert frames[2].offset_seconds == pytest.approx(0.5)


def test_action_names_truncate_long_selectors_and_values() -> None:
    action = Action(
        timestamp=0,
        category="fill",
        name="setValue",
        selector="form#checkout input[name='email']",
        value="someone@example.com",
    )

    assert format_action_name(action) == 'setValue (form#checkout input[...) "someone@example..."'
    assert format_action_name(Action(timestamp=0, name="pause")) == "pause"


@pytest.mark.parametrize(
    ("ms", "expected"),
    [(None, "0ms"), (0, "0ms"), (999, "999ms"), (1000, "1.0s"), (1540, "1.5s")],
)
def test_format_duration(ms, expected) -> None:
    assert format_duration(ms) == expected


@pytest.mark.parametrize(
    ("size", "expected"),
    [(None, "0 B"), (0, "0 B"), (512, "512 B"), (1536, "1.5 KB"), (1024 * 1024, "1 MB"), (3 * 1024**3, "3 GB")],
)
def test_format_bytes(size, expected) -> None:
    assert format_bytes(size) == expected


def test_status_class() -> None:
    assert [status_class(code) for code in (None, 204, 302, 404, 503)] == ["", "success", "redirect", "error", "error"]
