"""CLI entry point for the collection runner."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Optional

import typer

from .console_reporter import ConsoleReporter
from .errors import ExportError, LoaderError, RunnerError
from .http_sender import UrllibHttpSender
from .loader import load_collection, load_environment
from .logging_utils import configure_logging
from .models import DEFAULT_SCRIPT_TIMEOUT_SECONDS, RunConfig, RunReport
from .output_config import get_log_format, get_output_format, get_report_dir
from .report import export_run_report, write_junit
from .runner import CollectionRunner
from .scheduler import RunScheduler
from .scripting import PythonScriptRunner

app = typer.Typer(help="Run collections of saved HTTP requests with script hooks.")


@app.callback()
def main() -> None:
    """Collection runner."""


def _split_folder(folder: Optional[str]) -> list[str]:
    if not folder:
        return []
    return [part for part in folder.strip("/").split("/") if part]


def _drive(scheduler: RunScheduler) -> RunReport:
    """Run the scheduler off the main thread so Ctrl+C becomes a cancellation."""

    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="collection-runner") as pool:
        future = pool.submit(scheduler.run)
        while True:
            try:
                return future.result(timeout=0.25)
            except FutureTimeoutError:
                continue
            except KeyboardInterrupt:
                scheduler.cancel()


@app.command()
def run(
    collection: Path = typer.Option(..., "--collection", "-c", exists=True, readable=True, help="Collection YAML/JSON file."),
    folder: Optional[str] = typer.Option(None, "--folder", "-f", help="Run only this folder, e.g. 'Users/Admin'."),
    env: Optional[Path] = typer.Option(None, "--env", "-e", exists=True, readable=True, help="Environment YAML/JSON file."),
    stop_on_failure: bool = typer.Option(False, "--stop-on-failure", help="Skip the remaining requests after the first failure."),
    delay_ms: int = typer.Option(0, "--delay-ms", help="Pause between requests, in milliseconds."),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="HTTP timeout in seconds."),
    script_timeout: float = typer.Option(DEFAULT_SCRIPT_TIMEOUT_SECONDS, "--script-timeout", help="Script timeout in seconds."),
    export: bool = typer.Option(False, "--export", help="Export the run report as JSON."),
    export_dir: Optional[Path] = typer.Option(None, "--export-dir", help="Directory for exported reports."),
    junit: Optional[Path] = typer.Option(None, "--junit", help="Also write a JUnit XML report here."),
    output_format: Optional[str] = typer.Option(None, "--output-format", help="auto, rich, plain or json."),
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level for structured logs."),
) -> None:
    """Run every request of a collection (or folder) in order."""

    resolved_format = get_output_format(output_format)
    configure_logging(log_level, get_log_format(resolved_format))
    reporter = ConsoleReporter(output_format=resolved_format)

    try:
        loaded_collection = load_collection(collection)
        environment = load_environment(env) if env else None
    except LoaderError as exc:
        reporter.print_error(str(exc))
        raise typer.Exit(code=2) from exc

    sender = UrllibHttpSender(timeout=timeout)
    config = RunConfig(
        stop_on_failure=stop_on_failure,
        delay_ms=delay_ms,
        timeout_seconds=sender.timeout,
        script_timeout_seconds=script_timeout,
    )
    runner = CollectionRunner(
        sender=sender,
        script_runner=PythonScriptRunner(root=collection.resolve().parent, timeout_seconds=script_timeout),
        listener=reporter,
    )
    try:
        scheduler = runner.prepare(loaded_collection, _split_folder(folder), environment, config)
    except RunnerError as exc:
        raise typer.Exit(code=2) from exc

    report = _drive(scheduler)

    if export or export_dir is not None:
        try:
            path = export_run_report(report, get_report_dir(export_dir))
        except ExportError as exc:
            reporter.print_error(f"Export failed: {exc}")
        else:
            reporter.print_info(f"Report exported -> {path}")
    if junit is not None:
        try:
            write_junit(report, junit)
        except ExportError as exc:
            reporter.print_error(f"JUnit export failed: {exc}")
        else:
            reporter.print_info(f"JUnit report written -> {junit}")

    if not report.succeeded:
        raise typer.Exit(code=1)


def cli() -> None:
    """Console_scripts hook."""

    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
