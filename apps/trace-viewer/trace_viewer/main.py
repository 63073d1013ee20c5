"""Entry point for the trace-viewer application."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import typer

if __package__ in {None, ""}:
    sys.path.append(str(Path(__file__).resolve().parents[1]))
    __package__ = "trace_viewer"

from trace_recorder.errors import PersistenceError
from trace_recorder.logging_utils import configure_logging
from trace_recorder.output_config import get_log_format
from trace_recorder.store import TRACE_FILE, VIEWER_FILE, load_trace

from .index import TraceIndexBuilder
from .renderer import generate_trace_viewer

app = typer.Typer(help="Render recorded traces and the cross-run index.")


@app.callback()
def main(
    log_level: str = typer.Option("warning", help="Log level for viewer diagnostics."),
    log_format: Optional[str] = typer.Option(None, help="Log renderer: console, plain or json."),
) -> None:
    """Trace viewer commands."""

    configure_logging(log_level, get_log_format(log_format))


@app.command()
def render(
    trace: Path = typer.Option(..., exists=True, help="trace.json file or the run directory holding it."),
    output: Optional[Path] = typer.Option(None, help="Destination HTML file (defaults next to trace.json)."),
) -> None:
    """Regenerate the self-contained viewer for one recorded run."""

    try:
        document = load_trace(trace)
    except (OSError, ValueError) as exc:
        raise typer.BadParameter(str(exc)) from exc

    trace_file = trace / TRACE_FILE if trace.is_dir() else trace
    destination = output or trace_file.parent / VIEWER_FILE
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(generate_trace_viewer(document), encoding="utf-8")
    except OSError as exc:
        typer.secho(f"Could not write {destination}: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    typer.secho(f"Trace viewer written -> {destination}", fg=typer.colors.GREEN)


@app.command()
def index(
    output_dir: Path = typer.Option(Path("trace-output"), help="Directory containing trace-* run folders."),
) -> None:
    """Rebuild index.html and index.json over every recorded run."""

    try:
        index_file = TraceIndexBuilder(output_dir).write()
    except PersistenceError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    if index_file is None:
        typer.secho(f"No recorded runs under {output_dir}", fg=typer.colors.YELLOW)
        return
    typer.secho(f"Index updated at {index_file}", fg=typer.colors.CYAN)


def run() -> None:
    """CLI entry point for console_scripts."""

    app()


if __name__ == "__main__":  # pragma: no cover
    run()
