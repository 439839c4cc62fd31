"""Run configuration, per-step results and report models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import ConfigError, ErrorKind

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_SCRIPT_TIMEOUT_SECONDS = 5.0


class RunStatus(str, Enum):
    """Lifecycle of a collection run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    STOPPED = "stopped"


TERMINAL_STATUSES = frozenset({RunStatus.COMPLETED, RunStatus.CANCELLED, RunStatus.STOPPED})


class ResultStatus(str, Enum):
    """Outcome of a single request within a run."""

    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"
    SKIPPED = "skipped"


class RunConfig(BaseModel):
    """Knobs controlling one run. Frozen once built."""

    model_config = ConfigDict(frozen=True)

    stop_on_failure: bool = False
    delay_ms: int = 0
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    script_timeout_seconds: float = DEFAULT_SCRIPT_TIMEOUT_SECONDS

    def validate_config(self) -> None:
        """Raise ``ConfigError`` when a knob is out of range."""

        if self.delay_ms < 0:
            raise ConfigError(f"delay must be >= 0 ms, got {self.delay_ms}")
        if self.timeout_seconds <= 0:
            raise ConfigError("timeout must be positive")
        if self.script_timeout_seconds <= 0:
            raise ConfigError("script timeout must be positive")


# --- script results -------------------------------------------------------


class EnvChangeKind(str, Enum):
    SET = "set"
    UNSET = "unset"


class EnvChange(BaseModel):
    """One environment mutation declared by a script."""

    kind: EnvChangeKind
    name: str
    value: str = ""
    previous_value: Optional[str] = None


class AssertionResult(BaseModel):
    """Named pass/fail check declared by a script."""

    name: str
    passed: bool
    expected: Any = None
    actual: Any = None
    message: str = ""


class ConsoleLogEntry(BaseModel):
    level: str = "log"
    message: str
    timestamp: datetime


class ScriptErrorInfo(BaseModel):
    type: str = "Error"
    message: str
    line: Optional[int] = None
    column: Optional[int] = None
    stack_trace: Optional[str] = None


class ScriptResult(BaseModel):
    """Everything a pre-request or post-response script produced."""

    success: bool = True
    duration_ms: float = 0.0
    console_output: list[ConsoleLogEntry] = Field(default_factory=list)
    assertions: list[AssertionResult] = Field(default_factory=list)
    env_changes: list[EnvChange] = Field(default_factory=list)
    error: Optional[ScriptErrorInfo] = None
    request_modified: bool = False

    def has_assertion_failures(self) -> bool:
        return any(not assertion.passed for assertion in self.assertions)

    def passed_assertion_count(self) -> int:
        return sum(1 for assertion in self.assertions if assertion.passed)

    def failed_assertion_count(self) -> int:
        return sum(1 for assertion in self.assertions if not assertion.passed)


# --- per-step results -----------------------------------------------------


class RequestInfo(BaseModel):
    """Snapshot of the request a step executed."""

    id: str = ""
    name: str = ""
    method: str = "GET"
    url: str = ""
    resolved_url: str = ""


class ResponseInfo(BaseModel):
    status_code: int
    status_text: str = ""
    time_ms: float = 0.0
    size_bytes: int = 0
    headers: dict[str, str] = Field(default_factory=dict)


class ErrorInfo(BaseModel):
    kind: ErrorKind
    message: str
    details: str = ""


class RequestResult(BaseModel):
    """Outcome record of one attempted or skipped step."""

    index: int
    request: RequestInfo
    status: ResultStatus = ResultStatus.PENDING
    response: Optional[ResponseInfo] = None
    error: Optional[ErrorInfo] = None
    pre_script_result: Optional[ScriptResult] = None
    post_script_result: Optional[ScriptResult] = None
    duration_ms: float = 0.0

    def set_running(self) -> None:
        self.status = ResultStatus.RUNNING

    def set_completed(self, response: ResponseInfo) -> None:
        """Attach the response; the step passes unless assertions say otherwise."""

        self.response = response
        self.status = ResultStatus.PASSED

    def set_error(self, kind: ErrorKind, message: str, details: str = "") -> None:
        self.error = ErrorInfo(kind=kind, message=message, details=details)
        self.status = ResultStatus.ERROR

    def set_skipped(self) -> None:
        self.status = ResultStatus.SKIPPED

    def assertion_counts(self) -> tuple[int, int]:
        """Return ``(passed, failed)`` for the post-response assertions."""

        if self.post_script_result is None:
            return 0, 0
        return (
            self.post_script_result.passed_assertion_count(),
            self.post_script_result.failed_assertion_count(),
        )


# --- report ---------------------------------------------------------------


class RunReport(BaseModel):
    """Read-only snapshot of a run, regenerated from the session on demand."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    collection_name: str
    folder_path: list[str] = Field(default_factory=list)
    environment_name: str = ""
    status: RunStatus
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration_ms: Optional[float] = None
    settings: RunConfig
    total_requests: int
    completed: int
    passed: int
    failed: int
    errored: int
    skipped: int
    assertions_passed: int
    assertions_failed: int
    total_assertions: int
    total_duration_ms: float
    results: list[RequestResult] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.COMPLETED and self.failed == 0 and self.errored == 0
