"""Cross-run index of recorded traces."""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any

import structlog

from trace_recorder.errors import PersistenceError
from trace_recorder.store import TRACE_FILE, VIEWER_FILE, TraceStore, load_trace

from .renderer import generate_index_page
from .views import RunSummary

LOGGER = structlog.get_logger("trace_viewer")

INDEX_HTML = "index.html"
INDEX_JSON = "index.json"


class TraceIndexBuilder:
    """Summarises every ``trace-*`` run directory under an output root."""

    def __init__(self, output_root: Path) -> None:
        self.output_root = output_root
        self._runs: list[RunSummary] = []

    @property
    def runs(self) -> list[RunSummary]:
        return list(self._runs)

    def collect(self) -> list[RunSummary]:
        """Read one summary per run directory; unreadable traces fall back to the folder name."""

        self._runs = [self._summarise(run_dir) for run_dir in TraceStore(self.output_root).run_dirs()]
        return self.runs

    def write(self) -> Path | None:
        """Write ``index.html`` and ``index.json``; nothing is written when there are no runs."""

        self.collect()
        if not self._runs:
            return None

        index_data: dict[str, Any] = {
            "format": "json",
            "version": "1.0",
            "total_runs": len(self._runs),
            "runs": [asdict(run) for run in self._runs],
        }
        html_path = self.output_root / INDEX_HTML
        json_path = self.output_root / INDEX_JSON
        try:
            html_path.write_text(generate_index_page(self._runs), encoding="utf-8")
            json_path.write_text(json.dumps(index_data, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(f"Could not write run index under {self.output_root}: {exc}") from exc
        LOGGER.info("index_written", path=str(html_path), runs=len(self._runs))
        return html_path

    def _summarise(self, run_dir: Path) -> RunSummary:
        viewer_path = f"{run_dir.name}/{VIEWER_FILE}"
        try:
            trace = load_trace(run_dir / TRACE_FILE)
        except (OSError, ValueError) as exc:
            LOGGER.warning("trace_unreadable", run_dir=str(run_dir), error=str(exc))
            return RunSummary(
                run_dir=run_dir.name,
                test_name=run_dir.name,
                browser="unknown",
                status="failed",
                duration_ms=0,
                scenarios=0,
                viewer_path=viewer_path,
            )
        return RunSummary(
            run_dir=run_dir.name,
            test_name=trace.test_name,
            browser=trace.browser,
            status=trace.overall_status(),
            duration_ms=trace.duration_ms,
            scenarios=len(trace.scenarios),
            viewer_path=viewer_path,
        )
