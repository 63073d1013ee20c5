"""Console reporter with environment detection for recorded run summaries."""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .models import Scenario, Trace
from .output_config import OutputFormat

_CI_MARKERS = ("CI", "JENKINS_HOME", "GITLAB_CI", "TRAVIS", "GITHUB_ACTIONS")


class ConsoleReporter:
    """
    Prints scenario results and artifact locations.

    Rich tables in interactive terminals, plain text in CI or when piped,
    one JSON object per line in ``json`` mode.
    """

    def __init__(self, output_format: OutputFormat = OutputFormat.AUTO, console: Optional[Console] = None):
        self.output_format = output_format
        self.use_rich = self._detect_rich()
        self.console = console or (Console() if self.use_rich else None)
        self._table: Optional[Table] = None

    def _detect_rich(self) -> bool:
        if self.output_format == OutputFormat.RICH:
            return True
        if self.output_format in (OutputFormat.PLAIN, OutputFormat.JSON):
            return False
        is_terminal = sys.stdout.isatty()
        is_ci = any(marker in os.environ for marker in _CI_MARKERS)
        return is_terminal and not is_ci

    def start_run(self, test_name: str, browser: str) -> None:
        if self.output_format == OutputFormat.JSON:
            self._emit({"event": "run_started", "test_name": test_name, "browser": browser})
            return
        if self.use_rich:
            self._table = Table(show_header=True, header_style="bold cyan", title=f"Trace: {test_name}")
            self._table.add_column("Scenario", width=40)
            self._table.add_column("Steps", justify="right", width=6)
            self._table.add_column("Actions", justify="right", width=8)
            self._table.add_column("Status", width=10)
            self._table.add_column("Duration", justify="right", width=10)
        else:
            print(f"Recording trace: {test_name} ({browser})")
            print("-" * 80)

    def report_scenario(self, scenario: Scenario) -> None:
        passed = scenario.status == "passed"
        actions = sum(len(step.actions) for step in scenario.steps)
        duration_ms = (scenario.end_time or scenario.start_time) - scenario.start_time
        if self.output_format == OutputFormat.JSON:
            self._emit(
                {
                    "event": "scenario_finished",
                    "scenario": scenario.name,
                    "status": scenario.status,
                    "steps": len(scenario.steps),
                    "actions": actions,
                    "duration_ms": duration_ms,
                }
            )
            return
        if self.use_rich and self._table is not None:
            status = Text("✓ PASS" if passed else "✗ FAIL", style="green" if passed else "red")
            self._table.add_row(scenario.name, str(len(scenario.steps)), str(actions), status, f"{duration_ms}ms")
            for step in scenario.steps:
                if step.status == "failed" and step.error:
                    self._table.add_row(Text(f"  {step.keyword} {step.text}: {step.error}", style="red"), "", "", "", "")
        else:
            marker = "✓ PASS" if passed else "✗ FAIL"
            print(f"{marker} {scenario.name} ({len(scenario.steps)} steps, {actions} actions, {duration_ms}ms)")

    def finish_run(self, trace: Trace) -> None:
        steps = sum(len(s.steps) for s in trace.scenarios)
        actions = sum(1 for _ in trace.iter_actions())
        passed = trace.overall_status() == "passed"
        if self.output_format == OutputFormat.JSON:
            self._emit(
                {
                    "event": "run_finished",
                    "status": trace.overall_status(),
                    "scenarios": len(trace.scenarios),
                    "steps": steps,
                    "actions": actions,
                    "console_entries": len(trace.console_logs),
                    "network_entries": len(trace.network_logs),
                    "protocol_violations": len(trace.protocol_violations),
                    "duration_ms": trace.duration_ms,
                }
            )
            return
        if self.use_rich:
            if self._table is not None:
                self.console.print(self._table)
            summary = Text()
            summary.append(f"Scenarios: {len(trace.scenarios)}  ", style="bold")
            summary.append(f"Steps: {steps}  ", style="bold")
            summary.append(f"Actions: {actions}  ", style="bold")
            summary.append(f"Network: {len(trace.network_logs)}  ", style="bold cyan")
            summary.append(f"Console: {len(trace.console_logs)}  ", style="bold cyan")
            summary.append(f"Duration: {trace.duration_ms}ms", style="bold cyan")
            if trace.protocol_violations:
                summary.append(f"\nProtocol violations: {len(trace.protocol_violations)}", style="bold yellow")
            title = "✓ ALL SCENARIOS PASSED" if passed else "✗ SOME SCENARIOS FAILED"
            self.console.print()
            self.console.print(
                Panel(
                    summary,
                    title=Text(title, style="bold green" if passed else "bold red"),
                    border_style="green" if passed else "red",
                )
            )
        else:
            print("-" * 80)
            print(
                f"Scenarios: {len(trace.scenarios)} | Steps: {steps} | Actions: {actions} | "
                f"Network: {len(trace.network_logs)} | Console: {len(trace.console_logs)} | "
                f"Duration: {trace.duration_ms}ms"
            )
            if trace.protocol_violations:
                print(f"Protocol violations: {len(trace.protocol_violations)}")
            print("✓ ALL SCENARIOS PASSED" if passed else "✗ SOME SCENARIOS FAILED")

    def print_artifact(self, label: str, path: Path) -> None:
        if self.output_format == OutputFormat.JSON:
            self._emit({"event": "artifact_written", "label": label, "path": str(path)})
        elif self.use_rich:
            self.console.print(f"[cyan]{label}:[/] {path}")
        else:
            print(f"{label}: {path}")

    def print_error(self, message: str) -> None:
        if self.output_format == OutputFormat.JSON:
            self._emit({"event": "error", "message": message})
        elif self.use_rich:
            self.console.print(f"[bold red]Error:[/] {message}")
        else:
            print(f"Error: {message}", file=sys.stderr)

    @staticmethod
    def _emit(payload: dict[str, object]) -> None:
        print(json.dumps(payload))
