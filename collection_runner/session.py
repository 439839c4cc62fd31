"""Run session: the state machine every run step mutates."""

from __future__ import annotations

import re
import time
from datetime import datetime, timezone
from typing import Optional, Sequence

import structlog

from .collection import CollectionRequest, Environment, EnvironmentVariable
from .errors import SessionStateError
from .models import TERMINAL_STATUSES, RequestInfo, RequestResult, RunConfig, RunStatus

LOGGER = structlog.get_logger("collection_runner")

_ID_UNSAFE = re.compile(r"[^a-zA-Z0-9_]")


def generate_run_id(collection_name: str) -> str:
    sanitized = _ID_UNSAFE.sub("", collection_name.replace(" ", "_"))[:30].lower()
    return f"run_{int(time.time())}_{sanitized}"


def new_request_result(request: CollectionRequest, index: int) -> RequestResult:
    return RequestResult(
        index=index,
        request=RequestInfo(id=request.id, name=request.name, method=request.method, url=request.url),
    )


class RunSession:
    """Holds one run's requests progress, results and session environment.

    Status moves ``pending -> running -> completed|cancelled|stopped`` and
    never leaves a terminal state; results are frozen once it is terminal.
    """

    def __init__(
        self,
        collection_name: str,
        folder_path: Sequence[str] = (),
        environment: Environment | None = None,
        config: RunConfig | None = None,
    ) -> None:
        self.run_id = generate_run_id(collection_name)
        self.collection_name = collection_name
        self.folder_path = list(folder_path)
        self.environment_name = environment.name if environment else ""
        seed = environment.clone() if environment else Environment(name="session")
        self.session_env: dict[str, EnvironmentVariable] = seed.variables
        self.config = config or RunConfig()
        self.results: list[RequestResult] = []
        self.current_index = 0
        self.total_requests = 0
        self.status = RunStatus.PENDING
        self.start_time: Optional[datetime] = None
        self.end_time: Optional[datetime] = None
        self._logger = LOGGER.bind(run_id=self.run_id)

    def __repr__(self) -> str:
        return f"RunSession(run_id={self.run_id!r}, status={self.status.value}, progress={self.progress()})"

    # -- transitions -------------------------------------------------------

    def start(self, total_requests: int) -> None:
        if self.status != RunStatus.PENDING:
            raise SessionStateError(f"cannot start a {self.status.value} run")
        self.total_requests = total_requests
        self.current_index = 0
        self.start_time = datetime.now(timezone.utc)
        self.status = RunStatus.RUNNING
        self._logger.info("run_started", collection=self.collection_name, total_requests=total_requests)

    def add_result(self, result: RequestResult) -> None:
        self._require_running("add a result to")
        if len(self.results) >= self.total_requests:
            raise SessionStateError("run already holds a result for every request")
        self.results.append(result)
        self.current_index += 1

    def complete(self) -> None:
        self._finish(RunStatus.COMPLETED, ())

    def stop(self, requests: Sequence[CollectionRequest] = ()) -> None:
        """Halt after a failure, marking the requests not yet attempted as skipped."""

        self._finish(RunStatus.STOPPED, requests)

    def cancel(self, requests: Sequence[CollectionRequest] = ()) -> None:
        """Halt on user request, marking the requests not yet attempted as skipped."""

        self._finish(RunStatus.CANCELLED, requests)

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def progress(self) -> str:
        return f"{self.current_index}/{self.total_requests}"

    # -- session environment ----------------------------------------------

    def env_variables(self) -> dict[str, str]:
        """Active variables only; inactive ones stay stored but invisible."""

        return {name: var.value for name, var in self.session_env.items() if var.active}

    def set_session_env_variable(self, name: str, value: str) -> None:
        existing = self.session_env.get(name)
        if existing is None:
            self.session_env[name] = EnvironmentVariable(value=value)
        else:
            existing.value = value
            existing.active = True

    def unset_session_env_variable(self, name: str) -> None:
        self.session_env.pop(name, None)

    # -- internals ---------------------------------------------------------

    def _require_running(self, action: str) -> None:
        if self.status != RunStatus.RUNNING:
            raise SessionStateError(f"cannot {action} a {self.status.value} run")

    def _finish(self, status: RunStatus, pending: Sequence[CollectionRequest]) -> None:
        self._require_running(f"mark as {status.value}")
        for index in range(self.current_index, len(pending)):
            if len(self.results) >= self.total_requests:
                break
            skipped = new_request_result(pending[index], index)
            skipped.set_skipped()
            self.results.append(skipped)
        self.end_time = datetime.now(timezone.utc)
        self.status = status
        self._logger.info(
            f"run_{status.value}",
            progress=self.progress(),
            results=len(self.results),
        )
