from __future__ import annotations

import io
import json

import pytest
from helpers import FakeSender, make_request
from rich.console import Console

from collection_runner.collection import Collection
from collection_runner.console_reporter import ConsoleReporter
from collection_runner.models import RunConfig
from collection_runner.output_config import OutputFormat
from collection_runner.runner import CollectionRunner


def _collection() -> Collection:
    return Collection(
        name="Shop",
        requests=[
            make_request("list", "http://api.test/items"),
            make_request("down", "http://api.test/down"),
            make_request("never", "http://api.test/never"),
        ],
    )


def _run(reporter: ConsoleReporter):
    runner = CollectionRunner(sender=FakeSender(failures={"/down": "connection refused"}), listener=reporter)
    return runner.run(_collection(), config=RunConfig(stop_on_failure=True))


def test_plain_output_lists_steps_and_summary(capsys: pytest.CaptureFixture[str]) -> None:
    _run(ConsoleReporter(output_format=OutputFormat.PLAIN))

    out = capsys.readouterr().out
    assert "Running collection: Shop" in out
    assert "[1/3] list GET http://api.test/items ... ✓ PASS" in out
    assert "network: HTTP request failed connection refused" in out
    assert "Skipped: 1" in out
    assert "RUN STOPPED ON FAILURE" in out


def test_json_output_is_the_report(capsys: pytest.CaptureFixture[str]) -> None:
    report = _run(ConsoleReporter(output_format=OutputFormat.JSON))

    payload = json.loads(capsys.readouterr().out)
    assert payload["run_id"] == report.run_id
    assert payload["status"] == "stopped"
    assert [r["status"] for r in payload["results"]] == ["passed", "error", "skipped"]


def test_rich_output_renders_summary_panel() -> None:
    buffer = io.StringIO()
    console = Console(file=buffer, width=160, force_terminal=False)

    _run(ConsoleReporter(output_format=OutputFormat.RICH, console=console))

    rendered = buffer.getvalue()
    assert "RUN STOPPED ON FAILURE" in rendered
    assert "Passed: 1" in rendered
