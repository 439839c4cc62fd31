"""Python hook scripts: the built-in ``ScriptRunner``.

A script is a ``module:function`` reference. The function receives a
``ScriptContext`` and works on it::

    def login(ctx):
        ctx.env.set("token", "abc")
        ctx.request.set_header("X-Trace", "1")

    def check_ok(ctx):
        ctx.check("status is 200", ctx.response.status == 200, expected=200, actual=ctx.response.status)
"""

from __future__ import annotations

import threading
import time
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

import structlog

from .drivers import DriverRegistry
from .errors import ScriptError
from .models import (
    DEFAULT_SCRIPT_TIMEOUT_SECONDS,
    AssertionResult,
    ConsoleLogEntry,
    EnvChange,
    EnvChangeKind,
    ScriptResult,
)
from .script_bridge import ScriptRequest, ScriptResponse

LOGGER = structlog.get_logger("collection_runner")


class ScriptEnvironment:
    """Variables visible to one script call, recording every change made."""

    def __init__(self, variables: Mapping[str, str]) -> None:
        self._variables = dict(variables)
        self.changes: list[EnvChange] = []

    def get(self, name: str, default: str = "") -> str:
        return self._variables.get(name, default)

    def has(self, name: str) -> bool:
        return name in self._variables

    def set(self, name: str, value: Any) -> None:
        text = str(value)
        previous = self._variables.get(name)
        self._variables[name] = text
        self.changes.append(EnvChange(kind=EnvChangeKind.SET, name=name, value=text, previous_value=previous))

    def unset(self, name: str) -> None:
        previous = self._variables.pop(name, None)
        self.changes.append(EnvChange(kind=EnvChangeKind.UNSET, name=name, previous_value=previous))

    def as_dict(self) -> dict[str, str]:
        return dict(self._variables)


class ScriptContext:
    """Object handed to a hook function."""

    def __init__(
        self,
        request: ScriptRequest,
        env: ScriptEnvironment,
        response: ScriptResponse | None = None,
    ) -> None:
        self.request = request
        self.response = response
        self.env = env
        self.console: list[ConsoleLogEntry] = []
        self.assertions: list[AssertionResult] = []

    def log(self, *parts: Any, level: str = "log") -> None:
        self.console.append(
            ConsoleLogEntry(
                level=level,
                message=" ".join(str(part) for part in parts),
                timestamp=datetime.now(timezone.utc),
            )
        )

    def check(self, name: str, passed: bool, *, expected: Any = None, actual: Any = None, message: str = "") -> bool:
        self.assertions.append(
            AssertionResult(name=name, passed=bool(passed), expected=expected, actual=actual, message=message)
        )
        return bool(passed)

    def test(self, name: str, func: Callable[[], Any]) -> bool:
        """Run ``func``; an ``AssertionError`` records a failed assertion."""

        try:
            func()
        except AssertionError as exc:
            return self.check(name, False, message=str(exc))
        return self.check(name, True)

    def to_result(self, duration_ms: float) -> ScriptResult:
        return ScriptResult(
            success=True,
            duration_ms=round(duration_ms, 3),
            console_output=list(self.console),
            assertions=list(self.assertions),
            env_changes=list(self.env.changes),
            request_modified=self.request.modified,
        )


class PythonScriptRunner:
    """Runs hook functions with a per-call timeout.

    Each call runs on its own daemon thread. A hook that overruns its timeout
    is abandoned, not interrupted; it never holds up interpreter exit.
    """

    def __init__(
        self,
        registry: DriverRegistry | None = None,
        *,
        root: Path | None = None,
        timeout_seconds: float = DEFAULT_SCRIPT_TIMEOUT_SECONDS,
    ) -> None:
        self._registry = registry or DriverRegistry(root)
        self._timeout = timeout_seconds

    def execute_pre_request(self, script: str, request: ScriptRequest, env: Mapping[str, str]) -> ScriptResult:
        return self._execute(script, ScriptContext(request, ScriptEnvironment(env)))

    def execute_post_response(
        self,
        script: str,
        request: ScriptRequest,
        response: ScriptResponse,
        env: Mapping[str, str],
    ) -> ScriptResult:
        return self._execute(script, ScriptContext(request, ScriptEnvironment(env), response))

    def _execute(self, script: str, context: ScriptContext) -> ScriptResult:
        hook = self._resolve(script)
        failures: list[Exception] = []

        def _call() -> None:
            try:
                hook(context)
            except Exception as exc:  # handed back to the calling thread
                failures.append(exc)

        started = time.perf_counter()
        worker = threading.Thread(target=_call, name=f"collection-runner-script:{script}", daemon=True)
        worker.start()
        worker.join(self._timeout)
        if worker.is_alive():
            LOGGER.warning("script_abandoned", script=script, timeout_seconds=self._timeout)
            raise ScriptError(
                f"script {script} timed out after {self._timeout}s",
                error_type="TimeoutError",
                result=self._partial(context, started),
            )
        if failures:
            exc = failures[0]
            LOGGER.debug("script_raised", script=script, error=str(exc))
            raise ScriptError(
                f"{type(exc).__name__}: {exc}",
                error_type="ExecutionError",
                result=self._partial(context, started),
                line=_last_line(exc),
                stack_trace="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            ) from exc
        return context.to_result((time.perf_counter() - started) * 1000)

    def _resolve(self, script: str) -> Callable:
        try:
            return self._registry.resolve(script)
        except SyntaxError as exc:
            raise ScriptError(
                f"syntax error in {script}: {exc.msg}",
                error_type="SyntaxError",
                line=exc.lineno,
                column=exc.offset,
            ) from exc
        except (ImportError, AttributeError, ValueError) as exc:
            raise ScriptError(str(exc), error_type="Error") from exc

    @staticmethod
    def _partial(context: ScriptContext, started: float) -> Optional[ScriptResult]:
        result = context.to_result((time.perf_counter() - started) * 1000)
        result.success = False
        return result


def _last_line(exc: BaseException) -> int | None:
    frames = traceback.extract_tb(exc.__traceback__)
    return frames[-1].lineno if frames else None
