"""Collaborator contracts the runner consumes and the events it emits."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping, Protocol, Sequence

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .collection import CollectionRequest
    from .errors import RunnerError
    from .models import RequestResult, RunReport, ScriptResult
    from .script_bridge import ScriptRequest, ScriptResponse
    from .session import RunSession


@dataclass
class HttpRequest:
    """Outbound request as handed to the transport."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None


@dataclass
class HttpResponse:
    """Response returned by the transport."""

    status_code: int
    status_text: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""
    elapsed_ms: float = 0.0

    @property
    def size_bytes(self) -> int:
        return len(self.body.encode("utf-8"))


class HTTPSender(Protocol):
    def send(self, request: HttpRequest) -> HttpResponse:
        """Perform one HTTP call. Raises ``NetworkError`` on transport failure."""


class ScriptRunner(Protocol):
    def execute_pre_request(
        self,
        script: str,
        request: "ScriptRequest",
        env: Mapping[str, str],
    ) -> "ScriptResult":
        """Run a pre-request script. May edit ``request``. Raises ``ScriptError``."""

    def execute_post_response(
        self,
        script: str,
        request: "ScriptRequest",
        response: "ScriptResponse",
        env: Mapping[str, str],
    ) -> "ScriptResult":
        """Run a post-response script. Raises ``ScriptError``."""


class RunListener(Protocol):
    """Lifecycle events a host can observe."""

    def run_started(self, session: "RunSession", requests: Sequence["CollectionRequest"]) -> None: ...

    def step_completed(self, result: "RequestResult", session: "RunSession") -> None: ...

    def run_finished(self, report: "RunReport") -> None: ...

    def run_failed(self, error: "RunnerError") -> None: ...


class NullListener:
    """Listener that ignores every event."""

    def run_started(self, session, requests) -> None:
        return None

    def step_completed(self, result, session) -> None:
        return None

    def run_finished(self, report) -> None:
        return None

    def run_failed(self, error) -> None:
        return None
