"""Exception hierarchy shared by the collection runner."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .models import ScriptResult


class ErrorKind(str, Enum):
    """Classification recorded on a step that ended in an error."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    SCRIPT = "script"


class RunnerError(Exception):
    """Base class for every error raised by the runner."""


class ConfigError(RunnerError):
    """Raised when a run configuration is invalid."""


class NoRequestsError(RunnerError):
    """Raised when a collection or folder yields nothing to run."""

    def __init__(self, message: str = "no requests to run") -> None:
        super().__init__(message)


class SessionStateError(RunnerError):
    """Raised on an illegal run session transition."""


class NetworkError(RunnerError):
    """Raised by an HTTP sender when a request could not be completed."""


class ScriptError(RunnerError):
    """Raised by a script runner when a pre-request or post-response script fails.

    ``result`` holds whatever the script produced before failing (console
    output, assertions), when the runner was able to capture it.
    """

    def __init__(
        self,
        message: str,
        *,
        error_type: str = "Error",
        result: Optional["ScriptResult"] = None,
        line: int | None = None,
        column: int | None = None,
        stack_trace: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.result = result
        self.line = line
        self.column = column
        self.stack_trace = stack_trace


class ExportError(RunnerError):
    """Raised when a run report cannot be written."""


class LoaderError(RunnerError):
    """Raised when a collection or environment file cannot be loaded."""


def classify_network_error(exc: BaseException) -> ErrorKind:
    """Return ``timeout`` for deadline/timeout failures, ``network`` otherwise."""

    if isinstance(exc, TimeoutError) or isinstance(exc.__cause__, TimeoutError):
        return ErrorKind.TIMEOUT
    text = str(exc).lower()
    if "timeout" in text or "timed out" in text or "deadline exceeded" in text:
        return ErrorKind.TIMEOUT
    return ErrorKind.NETWORK
