from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path

import pytest
from helpers import FakeScriptRunner, FakeSender, assertions, make_request

from collection_runner.errors import ExportError
from collection_runner.models import RunConfig, RunStatus
from collection_runner.report import export_run_report, generate_report, load_run_report, write_junit
from collection_runner.runner import CollectionRunner, start_collection_run
from collection_runner.collection import Collection


def _collection() -> Collection:
    return Collection(
        name="Shop",
        requests=[
            make_request("list", "http://api.test/items", post="two-pass"),
            make_request("get", "http://api.test/items/1", post="one-fail"),
            make_request("broken", "http://api.test/down"),
        ],
    )


def _runner() -> CollectionRunner:
    scripts = FakeScriptRunner(
        post={
            "two-pass": lambda req, resp, env: assertions(True, True),
            "one-fail": lambda req, resp, env: assertions(True, False),
        }
    )
    return CollectionRunner(sender=FakeSender(failures={"/down": "connection refused"}), script_runner=scripts)


def test_report_counts_statuses_and_assertions() -> None:
    report = _runner().run(_collection())

    assert report.status == RunStatus.COMPLETED
    assert (report.passed, report.failed, report.errored, report.skipped) == (1, 1, 1, 0)
    assert report.completed == 3
    assert (report.assertions_passed, report.assertions_failed, report.total_assertions) == (3, 1, 4)
    assert report.duration_ms is not None and report.duration_ms >= 0
    assert not report.succeeded


def test_report_mid_run_has_no_end_and_is_stable() -> None:
    session, requests = start_collection_run(_collection(), config=RunConfig())

    first = generate_report(session)
    second = generate_report(session)

    assert first == second
    assert first.status == RunStatus.RUNNING
    assert first.end_time is None and first.duration_ms is None
    assert first.results == []


def test_export_round_trips(tmp_path: Path) -> None:
    report = _runner().run(_collection())

    path = export_run_report(report, tmp_path / "reports")

    assert path.parent == tmp_path / "reports"
    assert path.name.startswith("run_") and path.suffix == ".json"
    assert load_run_report(path) == report


def test_export_failure_raises_export_error(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")
    report = _runner().run(_collection())

    with pytest.raises(ExportError):
        export_run_report(report, blocker)


def test_junit_output(tmp_path: Path) -> None:
    config = RunConfig(stop_on_failure=True)
    report = _runner().run(_collection(), config=config)
    junit_file = tmp_path / "results.junit.xml"

    write_junit(report, junit_file)

    suite = ET.parse(junit_file).getroot()
    assert suite.attrib["tests"] == "3"
    assert suite.attrib["failures"] == "1"
    assert suite.attrib["skipped"] == "1"
    cases = suite.findall("testcase")
    assert [case.attrib["name"] for case in cases] == ["list", "get", "broken"]
    assert cases[1].find("failure") is not None
    assert cases[2].find("skipped") is not None


def test_runner_export_writes_json_and_junit(tmp_path: Path) -> None:
    report = _runner().run(_collection())

    path = CollectionRunner.export(report, directory=tmp_path, junit_file=tmp_path / "junit.xml")

    assert path.exists()
    assert (tmp_path / "junit.xml").exists()
