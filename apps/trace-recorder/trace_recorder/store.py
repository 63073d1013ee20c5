"""On-disk layout for recorded runs."""

from __future__ import annotations

import re
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from .errors import PersistenceError
from .models import Trace

RUN_DIR_PREFIX = "trace-"
TRACE_FILE = "trace.json"
VIEWER_FILE = "trace-viewer.html"
SNAPSHOTS_DIR = "snapshots"


@dataclass
class RunArtifacts:
    run_dir: Path
    snapshots_dir: Path
    trace_file: Path
    viewer_file: Path


class TraceStore:
    """Creates run directories under an output root and persists trace documents."""

    def __init__(self, output_root: Path) -> None:
        self.output_root = output_root

    def prepare(self, *, clean: bool = True) -> None:
        if clean and self.output_root.exists():
            shutil.rmtree(self.output_root)
        self.output_root.mkdir(parents=True, exist_ok=True)

    def create_run(self, started_at: datetime | None = None) -> RunArtifacts:
        stamp = (started_at or datetime.now(timezone.utc)).isoformat()
        base_name = RUN_DIR_PREFIX + re.sub(r"[:.+]", "-", stamp)
        run_dir = self.output_root / base_name
        suffix = 1
        while run_dir.exists():
            suffix += 1
            run_dir = self.output_root / f"{base_name}-{suffix}"
        snapshots_dir = run_dir / SNAPSHOTS_DIR
        snapshots_dir.mkdir(parents=True, exist_ok=True)
        return RunArtifacts(
            run_dir=run_dir,
            snapshots_dir=snapshots_dir,
            trace_file=run_dir / TRACE_FILE,
            viewer_file=run_dir / VIEWER_FILE,
        )

    def write_trace(self, trace: Trace, artifacts: RunArtifacts) -> Path:
        return _write(artifacts.trace_file, trace.model_dump_json(indent=2))

    def write_viewer(self, html: str, artifacts: RunArtifacts) -> Path:
        return _write(artifacts.viewer_file, html)

    def run_dirs(self) -> list[Path]:
        if not self.output_root.is_dir():
            return []
        return sorted(
            path for path in self.output_root.iterdir() if path.is_dir() and path.name.startswith(RUN_DIR_PREFIX)
        )


def load_trace(path: Path) -> Trace:
    """Read a persisted trace from a ``trace.json`` file or its run directory."""

    trace_file = path / TRACE_FILE if path.is_dir() else path
    try:
        return Trace.model_validate_json(trace_file.read_text(encoding="utf-8"))
    except ValidationError as exc:
        raise ValueError(f"{trace_file} is not a valid trace document: {exc.error_count()} error(s)") from exc


def _write(path: Path, content: str) -> Path:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise PersistenceError(f"Could not write {path}: {exc}") from exc
    return path
