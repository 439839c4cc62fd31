"""Console reporter with environment detection for collection run output."""

import json
import os
import sys
from typing import Optional, Sequence

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
)
from rich.table import Table
from rich.text import Text

from .collection import CollectionRequest
from .errors import RunnerError
from .models import RequestResult, ResultStatus, RunReport, RunStatus
from .output_config import OutputFormat
from .session import RunSession

_STATUS_STYLES = {
    ResultStatus.PASSED: ("✓ PASS", "green"),
    ResultStatus.FAILED: ("✗ FAIL", "red"),
    ResultStatus.ERROR: ("! ERROR", "bold red"),
    ResultStatus.SKIPPED: ("- SKIP", "dim"),
}


class ConsoleReporter:
    """
    Run listener that renders progress to the console.

    Automatically detects:
    - Interactive terminals (use rich with progress bars)
    - CI/CD environments (use plain text)
    - Pipe/redirect scenarios (use plain text)
    JSON mode stays silent during the run and prints the final report.
    """

    def __init__(self, output_format: OutputFormat = OutputFormat.AUTO, console: Console | None = None):
        self.output_format = output_format
        self._detect_environment()
        self.console = console or Console()
        self.progress: Optional[Progress] = None
        self.progress_task: Optional[TaskID] = None
        self.live: Optional[Live] = None
        self.results_table: Optional[Table] = None

    def _detect_environment(self) -> None:
        """Detect if we should use rich output or plain text."""
        if self.output_format == OutputFormat.RICH:
            self.use_rich = True
        elif self.output_format in (OutputFormat.PLAIN, OutputFormat.JSON):
            self.use_rich = False
        else:  # AUTO
            is_terminal = sys.stdout.isatty()
            is_ci = any(
                name in os.environ
                for name in ("CI", "GITHUB_ACTIONS", "JENKINS_HOME", "GITLAB_CI", "TRAVIS")
            )
            self.use_rich = is_terminal and not is_ci

    @property
    def quiet(self) -> bool:
        return self.output_format == OutputFormat.JSON

    # -- RunListener -------------------------------------------------------

    def run_started(self, session: RunSession, requests: Sequence[CollectionRequest]) -> None:
        """Initialize run display."""
        title = " / ".join([session.collection_name, *session.folder_path])
        if self.quiet:
            return
        if self.use_rich:
            self.results_table = Table(show_header=True, header_style="bold cyan")
            self.results_table.add_column("#", style="dim", width=5)
            self.results_table.add_column("Request", width=48)
            self.results_table.add_column("Status", width=10)
            self.results_table.add_column("HTTP", justify="right", width=6)
            self.results_table.add_column("Duration", justify="right", width=10)
            self.progress = Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
                TimeRemainingColumn(),
                console=self.console,
            )
            self.progress_task = self.progress.add_task(f"[cyan]Running {title}", total=len(requests))
            self.live = Live(
                Group(self.progress, self.results_table),
                console=self.console,
                refresh_per_second=4,
            )
            self.live.start()
        else:
            print(f"Running collection: {title}")
            print(f"Total requests: {len(requests)}")
            print("-" * 80)

    def step_completed(self, result: RequestResult, session: RunSession) -> None:
        """Report one request result."""
        if self.quiet:
            return
        label, style = _STATUS_STYLES.get(result.status, (result.status.value.upper(), "white"))
        endpoint = f"{result.request.method} {result.request.resolved_url or result.request.url}"
        http_status = str(result.response.status_code) if result.response else "-"
        detail = _failure_detail(result)
        if self.use_rich and self.results_table is not None:
            self.results_table.add_row(
                str(result.index + 1),
                f"{result.request.name}\n[dim]{endpoint}[/]",
                Text(label, style=style),
                http_status,
                f"{result.duration_ms:.0f}ms",
            )
            if detail:
                self.results_table.add_row("", Text(detail, style="red"), "", "", "")
            if self.progress is not None and self.progress_task is not None:
                self.progress.update(self.progress_task, advance=1)
        else:
            print(f"[{session.progress()}] {result.request.name} {endpoint} ... {label} ({result.duration_ms:.0f}ms)")
            if detail:
                print(f"  {detail}")

    def run_finished(self, report: RunReport) -> None:
        """Display final run summary."""
        if self.quiet:
            print(report.model_dump_json(indent=2))
            return
        if self.live:
            if self.results_table is not None:
                for result in report.results:
                    if result.status == ResultStatus.SKIPPED:
                        self.results_table.add_row(
                            str(result.index + 1), result.request.name, Text("- SKIP", style="dim"), "-", "-"
                        )
            self.live.stop()
            self.live = None

        summary = (
            f"Total: {report.total_requests} | Passed: {report.passed} | Failed: {report.failed} | "
            f"Errors: {report.errored} | Skipped: {report.skipped} | "
            f"Assertions: {report.assertions_passed}/{report.total_assertions} | "
            f"Duration: {report.duration_ms or 0:.0f}ms"
        )
        headline = _headline(report)
        if self.use_rich:
            summary_text = Text(summary, style="bold")
            border = "green" if report.succeeded else "red"
            self.console.print()
            self.console.print(Panel(summary_text, title=Text(headline, style=f"bold {border}"), border_style=border))
        else:
            print("-" * 80)
            print(summary)
            print(headline)

    def run_failed(self, error: RunnerError) -> None:
        self.print_error(str(error))

    # -- misc --------------------------------------------------------------

    def print_error(self, message: str) -> None:
        """Print an error message."""
        if self.quiet:
            print(json.dumps({"error": message}), file=sys.stderr)
        elif self.use_rich:
            self.console.print(f"[bold red]Error:[/] {message}")
        else:
            print(f"Error: {message}")

    def print_info(self, message: str) -> None:
        """Print an info message."""
        if self.quiet:
            return
        if self.use_rich:
            self.console.print(f"[cyan]{message}[/]")
        else:
            print(message)


def _failure_detail(result: RequestResult) -> str:
    if result.error is not None:
        return f"{result.error.kind.value}: {result.error.message} {result.error.details}".strip()
    if result.status == ResultStatus.FAILED and result.post_script_result is not None:
        failed = [a.name for a in result.post_script_result.assertions if not a.passed]
        return "failed assertions: " + ", ".join(failed)
    return ""


def _headline(report: RunReport) -> str:
    if report.succeeded:
        return "✓ RUN COMPLETED"
    if report.status == RunStatus.CANCELLED:
        return "✗ RUN CANCELLED"
    if report.status == RunStatus.STOPPED:
        return "✗ RUN STOPPED ON FAILURE"
    return "✗ SOME REQUESTS FAILED"
