"""Entry point for the trace-recorder application."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import typer

if __package__ in {None, ""}:
    sys.path.append(str(Path(__file__).resolve().parents[1]))
    __package__ = "trace_recorder"

from .config import load_options
from .console_reporter import ConsoleReporter
from .drivers import DriverRegistry
from .errors import ProtocolViolation
from .lifecycle import LifecycleState
from .loader import ReplayClock, load_events
from .logging_utils import configure_logging
from .output_config import get_log_format, get_output_format
from .service import TraceService

app = typer.Typer(help="Record BDD browser test runs as self-contained trace viewers.")


@app.callback()
def main() -> None:
    """Trace recorder commands."""


@app.command()
def replay(
    events: Path = typer.Option(..., exists=True, dir_okay=False, help="Recorded event log (JSON Lines or YAML)."),
    output_dir: Optional[Path] = typer.Option(None, help="Directory that receives trace-* run folders."),
    config: Optional[Path] = typer.Option(None, exists=True, dir_okay=False, help="Optional recorder options YAML."),
    driver: Optional[str] = typer.Option(None, help="Automation driver factory as 'module:factory'."),
    driver_root: Path = typer.Option(Path("."), help="Directory searched when importing the driver module."),
    strict: bool = typer.Option(False, "--strict", help="Abort on lifecycle protocol violations."),
    output_format: Optional[str] = typer.Option(None, help="Console output: auto, rich, plain or json."),
    log_level: str = typer.Option("warning", help="Log level for recorder diagnostics."),
    log_format: Optional[str] = typer.Option(None, help="Log renderer: console, plain or json."),
) -> None:
    """Feed a recorded runner and browser event log through the recorder."""

    logger = configure_logging(log_level, get_log_format(log_format or output_format))
    try:
        options = load_options(config, output_dir=output_dir, strict_protocol=strict or None)
        recorded = load_events(events)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    automation_driver = None
    if driver:
        try:
            automation_driver = DriverRegistry(driver_root.resolve()).create(driver)
        except (ImportError, AttributeError, TypeError, ValueError) as exc:
            raise typer.BadParameter(f"Cannot load driver {driver}: {exc}") from exc

    clock = ReplayClock(recorded[0].at if recorded else None)
    reporter = ConsoleReporter(get_output_format(output_format))
    service = TraceService(options, driver=automation_driver, clock=clock, reporter=reporter)
    logger.info("replay_started", events=len(recorded), output_dir=str(options.output_dir))

    service.on_prepare()
    artifacts = None
    try:
        for event in recorded:
            clock.advance_to(event.at)
            outcome = service.dispatch(event)
            if event.kind == "run-end":
                artifacts = outcome
        if service.lifecycle.state is not LifecycleState.IDLE:
            logger.warning("run_end_missing", events=len(recorded))
            artifacts = service.after()
    except ProtocolViolation as exc:
        reporter.print_error(str(exc))
        raise typer.Exit(code=1) from exc
    finally:
        service.on_complete()

    if artifacts is None:
        raise typer.Exit(code=1)


def run() -> None:
    """CLI entry point for console_scripts."""

    app()


if __name__ == "__main__":  # pragma: no cover
    run()
