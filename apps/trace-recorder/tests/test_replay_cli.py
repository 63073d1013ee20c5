from __future__ import annotations

import json
from pathlib import Path

import yaml
from typer.testing import CliRunner

from trace_recorder.main import app
from trace_recorder.store import load_trace

runner = CliRunner()

EVENTS = [
    {"kind": "run-start", "at": 1000, "capabilities": {"browserName": "chrome"}, "spec_files": ["features/cart.feature"]},
    {"kind": "scenario-start", "at": 1001, "name": "Add to cart", "feature": "Cart", "tags": ["@cart"]},
    {"kind": "step-start", "at": 1002, "keyword": "When", "text": "I add an item"},
    {"kind": "command-start", "at": 1003, "name": "click", "args": ["#add"]},
    {
        "kind": "request-begun",
        "at": 1004,
        "request_id": "r1",
        "method": "POST",
        "url": "https://shop.example/api/cart",
        "resource_type": "fetch",
    },
    {"kind": "response-completed", "at": 1040, "request_id": "r1", "status": 201, "mime_type": "application/json"},
    {"kind": "body-available", "at": 1041, "request_id": "r1", "value": '{"items": 1}'},
    {"kind": "command-end", "at": 1050, "name": "click", "args": ["#add"]},
    {"kind": "request-begun", "at": 1055, "request_id": "poll", "url": "https://shop.example/poll"},
    {"kind": "console-entry", "at": 1056, "level": "info", "text": "cart updated"},
    {"kind": "step-end", "at": 1060, "passed": True},
    {"kind": "scenario-end", "at": 1070, "passed": True},
    {"kind": "run-end", "at": 1080, "exit_code": 0},
]


def _write_jsonl(path: Path, events: list[dict]) -> Path:
    path.write_text("\n".join(json.dumps(event) for event in events) + "\n", encoding="utf-8")
    return path


def _run_dirs(output_dir: Path) -> list[Path]:
    return sorted(path for path in output_dir.iterdir() if path.is_dir() and path.name.startswith("trace-"))


def _invoke(*args: str):
    return runner.invoke(app, ["replay", *args, "--output-format", "json", "--log-level", "critical"])


def test_replay_writes_trace_viewer_and_index(tmp_path: Path) -> None:
    events = _write_jsonl(tmp_path / "events.jsonl", EVENTS)
    output_dir = tmp_path / "trace-output"

    result = _invoke("--events", str(events), "--output-dir", str(output_dir))

    assert result.exit_code == 0, result.output
    (run_dir,) = _run_dirs(output_dir)
    assert (run_dir / "trace-viewer.html").exists()
    assert (output_dir / "index.html").exists()
    assert (output_dir / "index.json").exists()

    trace = load_trace(run_dir / "trace.json")
    assert trace.start_time == 1000
    assert trace.end_time == 1080
    action = trace.scenarios[0].steps[0].actions[0]
    assert action.duration == 47
    assert action.network_ids == ["r1"]
    cart, poll = trace.network_logs
    assert cart.duration == 36
    assert cart.response_body == '{"items": 1}'
    assert poll.id not in action.network_ids
    assert trace.console_logs[0].message == "cart updated"
    assert trace.overall_status() == "passed"


def test_replay_accepts_yaml_logs_and_closes_unfinished_runs(tmp_path: Path) -> None:
    events = tmp_path / "events.yaml"
    events.write_text(yaml.safe_dump(EVENTS[:5]), encoding="utf-8")
    output_dir = tmp_path / "out"

    result = _invoke("--events", str(events), "--output-dir", str(output_dir))

    assert result.exit_code == 0, result.output
    (run_dir,) = _run_dirs(output_dir)
    trace = load_trace(run_dir)
    action = trace.scenarios[0].steps[0].actions[0]
    assert action.status == "failed"
    assert trace.scenarios[0].status == "failed"


def test_replay_loads_a_driver_by_reference(tmp_path: Path) -> None:
    driver_root = tmp_path / "drivers"
    driver_root.mkdir()
    (driver_root / "replay_screens.py").write_text(
        "from trace_recorder.models import PageInfo\n"
        "\n"
        "class Screens:\n"
        "    def take_screenshot(self, highlight_selector, highlight_color):\n"
        "        return b'png'\n"
        "\n"
        "    def get_dom(self, highlight_selector, highlight_color):\n"
        "        return '<html></html>'\n"
        "\n"
        "    def resolve_element(self, selector):\n"
        "        return None\n"
        "\n"
        "    def get_page_info(self):\n"
        "        return PageInfo(url='https://shop.example/cart', title='Cart')\n"
        "\n"
        "def create():\n"
        "    return Screens()\n",
        encoding="utf-8",
    )
    events = _write_jsonl(tmp_path / "events.jsonl", EVENTS)
    output_dir = tmp_path / "out"

    result = _invoke(
        "--events",
        str(events),
        "--output-dir",
        str(output_dir),
        "--driver",
        "replay_screens:create",
        "--driver-root",
        str(driver_root),
    )

    assert result.exit_code == 0, result.output
    (run_dir,) = _run_dirs(output_dir)
    action = load_trace(run_dir).scenarios[0].steps[0].actions[0]
    assert action.page_title == "Cart"
    assert (run_dir / action.before_snapshot).exists()


def test_invalid_event_log_is_rejected(tmp_path: Path) -> None:
    events = tmp_path / "broken.jsonl"
    events.write_text('{"kind": "run-start"}\n{"kind": "teleport"}\n', encoding="utf-8")

    result = _invoke("--events", str(events), "--output-dir", str(tmp_path / "out"))

    assert result.exit_code == 2
    assert not (tmp_path / "out").exists()


def test_strict_replay_stops_on_protocol_violation(tmp_path: Path) -> None:
    events = _write_jsonl(
        tmp_path / "events.jsonl",
        [
            EVENTS[0],
            {"kind": "step-start", "at": 1001, "keyword": "Given", "text": "orphan"},
        ],
    )

    result = _invoke("--events", str(events), "--output-dir", str(tmp_path / "out"), "--strict")

    assert result.exit_code == 1
