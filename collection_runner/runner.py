"""Collection run orchestration: validate, collect, schedule, report."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

import structlog

from .collection import Collection, CollectionRequest, Environment, collect_requests
from .contracts import HTTPSender, NullListener, RunListener, ScriptRunner
from .errors import ConfigError, NoRequestsError
from .executor import StepExecutor
from .models import RunConfig, RunReport
from .report import DEFAULT_REPORT_DIR, export_run_report, write_junit
from .scheduler import RunScheduler
from .session import RunSession

LOGGER = structlog.get_logger("collection_runner")


def start_collection_run(
    collection: Collection,
    folder_path: Sequence[str] = (),
    environment: Environment | None = None,
    config: RunConfig | None = None,
) -> tuple[RunSession, list[CollectionRequest]]:
    """Validate the config, resolve the requests and return a running session.

    Raises ``ConfigError`` or ``NoRequestsError`` before anything starts.
    """

    resolved_config = config or RunConfig()
    resolved_config.validate_config()
    requests = collect_requests(collection, folder_path)
    session = RunSession(collection.name, folder_path, environment, resolved_config)
    session.start(len(requests))
    return session, requests


class CollectionRunner:
    """Runs collections end to end and reports lifecycle events to a listener."""

    def __init__(
        self,
        *,
        sender: HTTPSender,
        script_runner: ScriptRunner | None = None,
        listener: RunListener | None = None,
    ) -> None:
        self._executor = StepExecutor(sender, script_runner)
        self._listener = listener or NullListener()
        self._scheduler: Optional[RunScheduler] = None

    def prepare(
        self,
        collection: Collection,
        folder_path: Sequence[str] = (),
        environment: Environment | None = None,
        config: RunConfig | None = None,
    ) -> RunScheduler:
        """Start a session and return the scheduler that will drive it."""

        try:
            session, requests = start_collection_run(collection, folder_path, environment, config)
        except (ConfigError, NoRequestsError) as exc:
            LOGGER.error("run_rejected", collection=collection.name, error=str(exc))
            self._listener.run_failed(exc)
            raise
        self._listener.run_started(session, requests)
        self._scheduler = RunScheduler(session, requests, self._executor, listener=self._listener)
        return self._scheduler

    def run(
        self,
        collection: Collection,
        folder_path: Sequence[str] = (),
        environment: Environment | None = None,
        config: RunConfig | None = None,
    ) -> RunReport:
        return self.prepare(collection, folder_path, environment, config).run()

    async def run_async(
        self,
        collection: Collection,
        folder_path: Sequence[str] = (),
        environment: Environment | None = None,
        config: RunConfig | None = None,
    ) -> RunReport:
        return await self.prepare(collection, folder_path, environment, config).run_async()

    def cancel(self) -> None:
        """Cancel the run in progress, if any."""

        if self._scheduler is not None:
            self._scheduler.cancel()

    @staticmethod
    def export(
        report: RunReport,
        *,
        directory: Path | str = DEFAULT_REPORT_DIR,
        junit_file: Path | None = None,
    ) -> Path:
        path = export_run_report(report, directory)
        if junit_file is not None:
            write_junit(report, junit_file)
        return path
