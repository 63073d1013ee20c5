"""Recorder options and their loading rules."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field

from .commands import DEFAULT_COMMANDS_TO_TRACE

OUTPUT_DIR_ENV = "TRACE_OUTPUT_DIR"
DEFAULT_OUTPUT_DIR = Path("trace-output")


class TraceServiceOptions(BaseModel):
    """What the recorder captures and where it writes."""

    output_dir: Path = DEFAULT_OUTPUT_DIR
    screenshots: bool = True
    snapshots: bool = True
    console_logs: bool = True
    network: bool = True
    max_snapshots: int = Field(default=1000, ge=0)
    highlight_color: str = "rgba(255, 0, 0, 0.3)"
    commands_to_trace: list[str] = Field(default_factory=lambda: list(DEFAULT_COMMANDS_TO_TRACE))
    body_grace_period: float = Field(default=2.0, ge=0)
    body_fetch_workers: int = Field(default=4, ge=1)
    strict_protocol: bool = False


def load_options(path: Optional[Path] = None, **overrides: Any) -> TraceServiceOptions:
    """Build options from an optional YAML file, the environment and explicit overrides.

    Priority: overrides > ``TRACE_OUTPUT_DIR`` > file > defaults.
    """

    payload: dict[str, Any] = {}
    if path is not None:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Options file {path} must contain a mapping")
        payload.update(data)

    env_output = os.environ.get(OUTPUT_DIR_ENV)
    if env_output:
        payload["output_dir"] = env_output

    payload.update({key: value for key, value in overrides.items() if value is not None})
    return TraceServiceOptions.model_validate(payload)
