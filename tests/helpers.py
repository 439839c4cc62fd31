"""Fake collaborators shared by the runner tests."""

from __future__ import annotations

import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Callable, Mapping

from collection_runner.collection import CollectionRequest, RequestScripts
from collection_runner.contracts import HttpRequest, HttpResponse
from collection_runner.errors import NetworkError, ScriptError
from collection_runner.models import AssertionResult, EnvChange, EnvChangeKind, ScriptResult
from collection_runner.script_bridge import ScriptRequest, ScriptResponse


def make_request(
    name: str,
    url: str,
    *,
    method: str = "GET",
    headers: dict[str, str] | None = None,
    body=None,
    pre: str = "",
    post: str = "",
) -> CollectionRequest:
    scripts = RequestScripts(pre_request=pre, post_response=post) if (pre or post) else None
    return CollectionRequest(
        id=f"req-{name}",
        name=name,
        method=method,
        url=url,
        headers=headers or {},
        body=body,
        scripts=scripts,
    )


class FakeSender:
    """Answers 200 unless a URL fragment is mapped to a status or an error message."""

    def __init__(
        self,
        statuses: Mapping[str, int] | None = None,
        failures: Mapping[str, str] | None = None,
    ) -> None:
        self.statuses = dict(statuses or {})
        self.failures = dict(failures or {})
        self.sent: list[HttpRequest] = []

    def send(self, request: HttpRequest) -> HttpResponse:
        self.sent.append(request)
        for fragment, message in self.failures.items():
            if fragment in request.url:
                raise NetworkError(message)
        status = next((code for fragment, code in self.statuses.items() if fragment in request.url), 200)
        return HttpResponse(status_code=status, status_text=f"{status}", body='{"ok": true}', elapsed_ms=1.5)


PreHook = Callable[[ScriptRequest, Mapping[str, str]], ScriptResult]
PostHook = Callable[[ScriptRequest, ScriptResponse, Mapping[str, str]], ScriptResult]


class FakeScriptRunner:
    """Dispatches scripts by name to plain Python callables."""

    def __init__(
        self,
        pre: Mapping[str, PreHook] | None = None,
        post: Mapping[str, PostHook] | None = None,
    ) -> None:
        self.pre = dict(pre or {})
        self.post = dict(post or {})
        self.seen_env: list[dict[str, str]] = []
        self.seen_urls: list[str] = []

    def execute_pre_request(self, script, request, env):
        self.seen_env.append(dict(env))
        self.seen_urls.append(request.url)
        return self.pre[script](request, env)

    def execute_post_response(self, script, request, response, env):
        self.seen_env.append(dict(env))
        return self.post[script](request, response, env)


def sets(**values: str) -> ScriptResult:
    return ScriptResult(
        env_changes=[EnvChange(kind=EnvChangeKind.SET, name=name, value=value) for name, value in values.items()]
    )


def unsets(*names: str) -> ScriptResult:
    return ScriptResult(env_changes=[EnvChange(kind=EnvChangeKind.UNSET, name=name) for name in names])


def assertions(*outcomes: bool) -> ScriptResult:
    return ScriptResult(
        assertions=[AssertionResult(name=f"check-{i}", passed=passed) for i, passed in enumerate(outcomes)]
    )


def failing_script(message: str = "boom") -> Callable:
    def _hook(*_args):
        raise ScriptError(message, error_type="ExecutionError")

    return _hook


def start_test_server() -> tuple[HTTPServer, threading.Thread]:
    """Local server: ``/fail`` answers 500, POST echoes the body, anything else is 200."""

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:  # noqa: N802 - HTTP handler requirement
            self._reply(500 if self.path == "/fail" else 200, b'{"path": "%s"}' % self.path.encode())

        def do_POST(self) -> None:  # noqa: N802 - HTTP handler requirement
            length = int(self.headers.get("Content-Length", 0))
            self._reply(201, self.rfile.read(length))

        def _reply(self, status: int, payload: bytes) -> None:
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("X-Seen-Auth", self.headers.get("Authorization", ""))
            self.send_header("X-Seen-Content-Type", self.headers.get("Content-Type", ""))
            self.end_headers()
            self.wfile.write(payload)

        def log_message(self, format: str, *args: object) -> None:  # pragma: no cover - silence logs
            return

    server = HTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server, thread
