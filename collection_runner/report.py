"""Run report aggregation and export."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from datetime import datetime
from pathlib import Path

import structlog

from .errors import ExportError
from .models import ResultStatus, RunReport
from .session import RunSession

LOGGER = structlog.get_logger("collection_runner")

DEFAULT_REPORT_DIR = Path(".collection-runner/reports")


def generate_report(session: RunSession) -> RunReport:
    """Aggregate the session's results. Pure; safe to call mid-run."""

    passed = failed = errored = skipped = 0
    assertions_passed = assertions_failed = 0
    total_duration_ms = 0.0
    for result in session.results:
        if result.status in (ResultStatus.PASSED, ResultStatus.FAILED):
            if result.status == ResultStatus.PASSED:
                passed += 1
            else:
                failed += 1
            ok, not_ok = result.assertion_counts()
            assertions_passed += ok
            assertions_failed += not_ok
        elif result.status == ResultStatus.ERROR:
            errored += 1
        elif result.status == ResultStatus.SKIPPED:
            skipped += 1
        total_duration_ms += result.duration_ms

    duration_ms = None
    if session.start_time is not None and session.end_time is not None:
        duration_ms = round((session.end_time - session.start_time).total_seconds() * 1000, 3)

    return RunReport(
        run_id=session.run_id,
        collection_name=session.collection_name,
        folder_path=list(session.folder_path),
        environment_name=session.environment_name,
        status=session.status,
        start_time=session.start_time,
        end_time=session.end_time,
        duration_ms=duration_ms,
        settings=session.config,
        total_requests=session.total_requests,
        completed=passed + failed + errored,
        passed=passed,
        failed=failed,
        errored=errored,
        skipped=skipped,
        assertions_passed=assertions_passed,
        assertions_failed=assertions_failed,
        total_assertions=assertions_passed + assertions_failed,
        total_duration_ms=round(total_duration_ms, 3),
        results=[result.model_copy(deep=True) for result in session.results],
    )


def export_run_report(report: RunReport, directory: Path | str = DEFAULT_REPORT_DIR) -> Path:
    """Write ``report`` as indented JSON into ``directory`` and return the file path."""

    target_dir = Path(directory)
    filename = f"run_{datetime.now().strftime('%Y%m%d_%H%M%S')}.json"
    path = target_dir / filename
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
    except OSError as exc:
        raise ExportError(f"failed to write report file {path}: {exc}") from exc
    LOGGER.info("report_exported", run_id=report.run_id, path=str(path))
    return path


def load_run_report(path: Path) -> RunReport:
    return RunReport.model_validate_json(path.read_text(encoding="utf-8"))


def write_junit(report: RunReport, junit_file: Path) -> Path:
    """Write the run as a JUnit XML test suite."""

    failures = [r for r in report.results if r.status == ResultStatus.FAILED]
    errors = [r for r in report.results if r.status == ResultStatus.ERROR]
    suite = ET.Element(
        "testsuite",
        attrib={
            "name": report.collection_name,
            "tests": str(len(report.results)),
            "failures": str(len(failures)),
            "errors": str(len(errors)),
            "skipped": str(report.skipped),
            "time": str((report.duration_ms or 0) / 1000),
        },
    )
    classname = "/".join([report.collection_name, *report.folder_path])
    for result in report.results:
        case = ET.SubElement(
            suite,
            "testcase",
            attrib={
                "classname": classname,
                "name": result.request.name or f"request-{result.index}",
                "time": str(result.duration_ms / 1000),
            },
        )
        if result.status == ResultStatus.SKIPPED:
            ET.SubElement(case, "skipped")
        elif result.status == ResultStatus.ERROR:
            error = result.error
            element = ET.SubElement(
                case,
                "error",
                attrib={
                    "type": error.kind.value if error else "error",
                    "message": error.message if error else "Request errored",
                },
            )
            element.text = error.details if error else ""
        elif result.status == ResultStatus.FAILED:
            failed_names = [
                assertion.name
                for assertion in (result.post_script_result.assertions if result.post_script_result else [])
                if not assertion.passed
            ]
            element = ET.SubElement(
                case,
                "failure",
                attrib={"message": f"{len(failed_names)} assertion(s) failed"},
            )
            element.text = "\n".join(failed_names)
    try:
        junit_file.parent.mkdir(parents=True, exist_ok=True)
        ET.ElementTree(suite).write(junit_file, encoding="utf-8", xml_declaration=True)
    except OSError as exc:
        raise ExportError(f"failed to write JUnit file {junit_file}: {exc}") from exc
    return junit_file
