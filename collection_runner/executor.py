"""Step executor: runs exactly one request of a run per call."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional, Sequence

import structlog

from .collection import CollectionRequest
from .contracts import HttpRequest, HttpResponse, HTTPSender, ScriptRunner
from .errors import ErrorKind, NetworkError, ScriptError, classify_network_error
from .models import RequestResult, ResponseInfo, ResultStatus, RunReport, ScriptErrorInfo, ScriptResult
from .report import generate_report
from .script_bridge import (
    ScriptRequest,
    ScriptResponse,
    apply_env_changes,
    apply_script_modifications,
    script_environment,
)
from .session import RunSession, new_request_result
from .variables import find_unresolved_variables, substitute_request

LOGGER = structlog.get_logger("collection_runner")


@dataclass
class StepOutcome:
    """What one ``execute_step`` call did.

    ``finished`` is set once the session is terminal; ``report`` is then the
    final report. Otherwise ``result`` is the step that was just recorded.
    """

    result: Optional[RequestResult] = None
    report: Optional[RunReport] = None
    finished: bool = False


def to_http_request(request: CollectionRequest) -> HttpRequest:
    """Outbound request built from a saved request, placeholders untouched."""

    return HttpRequest(
        method=request.method,
        url=request.url,
        headers=dict(request.headers),
        body=request.body,
    )


def _response_info(response: HttpResponse) -> ResponseInfo:
    return ResponseInfo(
        status_code=response.status_code,
        status_text=response.status_text,
        time_ms=round(response.elapsed_ms, 3),
        size_bytes=response.size_bytes,
        headers=dict(response.headers),
    )


def _failed_script_result(exc: ScriptError) -> ScriptResult:
    result = exc.result.model_copy(deep=True) if exc.result is not None else ScriptResult()
    result.success = False
    result.error = ScriptErrorInfo(
        type=exc.error_type,
        message=exc.message,
        line=exc.line,
        column=exc.column,
        stack_trace=exc.stack_trace,
    )
    return result


def _elapsed_ms(timer: float) -> float:
    return round((time.perf_counter() - timer) * 1000, 3)


class StepExecutor:
    """Runs one step: pre-request script, substitution, send, post-response script, record."""

    def __init__(self, sender: HTTPSender, script_runner: ScriptRunner | None = None) -> None:
        self._sender = sender
        self._script_runner = script_runner

    def execute_step(self, session: RunSession, requests: Sequence[CollectionRequest]) -> StepOutcome:
        if session.is_terminal():
            return StepOutcome(report=generate_report(session), finished=True)

        if session.current_index >= len(requests):
            session.complete()
            return StepOutcome(report=generate_report(session), finished=True)

        index = session.current_index
        saved = requests[index]
        logger = LOGGER.bind(run_id=session.run_id, index=index, request=saved.name)
        result = new_request_result(saved, index)
        result.set_running()
        timer = time.perf_counter()

        outgoing = to_http_request(saved)

        if saved.pre_request_script:
            script_request = ScriptRequest.from_http(outgoing, name=saved.name)
            try:
                pre_result = self._runner().execute_pre_request(
                    saved.pre_request_script,
                    script_request,
                    script_environment(session),
                )
            except ScriptError as exc:
                logger.warning("pre_request_script_failed", error=exc.message)
                result.pre_script_result = _failed_script_result(exc)
                result.set_error(ErrorKind.SCRIPT, "Pre-request script error", exc.message)
                return self._record(session, requests, result, timer)
            result.pre_script_result = pre_result
            # Env changes first: variables the script defines must be visible to substitution.
            apply_env_changes(session, pre_result)
            outgoing = apply_script_modifications(outgoing, script_request)

        variables = session.env_variables()
        unresolved = find_unresolved_variables(outgoing, variables)
        if unresolved:
            logger.warning("unresolved_variables", names=unresolved)
        outgoing = substitute_request(outgoing, variables, system_variables=True)
        result.request.resolved_url = outgoing.url

        try:
            response = self._sender.send(outgoing)
        except (NetworkError, OSError) as exc:
            kind = classify_network_error(exc)
            logger.warning("request_failed", kind=kind.value, error=str(exc))
            result.set_error(kind, "HTTP request failed", str(exc))
            return self._record(session, requests, result, timer)

        result.set_completed(_response_info(response))
        logger.debug("response_received", status=response.status_code, elapsed_ms=response.elapsed_ms)

        if saved.post_response_script:
            try:
                post_result = self._runner().execute_post_response(
                    saved.post_response_script,
                    ScriptRequest.from_http(outgoing, name=saved.name),
                    ScriptResponse.from_http(response),
                    script_environment(session),
                )
            except ScriptError as exc:
                logger.warning("post_response_script_failed", error=exc.message)
                result.post_script_result = _failed_script_result(exc)
                result.set_error(ErrorKind.SCRIPT, "Post-response script error", exc.message)
            else:
                apply_env_changes(session, post_result)
                result.post_script_result = post_result
                if post_result.has_assertion_failures():
                    result.status = ResultStatus.FAILED

        return self._record(session, requests, result, timer)

    def _runner(self) -> ScriptRunner:
        if self._script_runner is None:
            raise ScriptError("no script runner configured", error_type="Error")
        return self._script_runner

    def _record(
        self,
        session: RunSession,
        requests: Sequence[CollectionRequest],
        result: RequestResult,
        timer: float,
    ) -> StepOutcome:
        result.duration_ms = _elapsed_ms(timer)
        session.add_result(result)
        LOGGER.info(
            "step_completed",
            run_id=session.run_id,
            index=result.index,
            request=result.request.name,
            status=result.status.value,
            duration_ms=result.duration_ms,
        )
        if session.config.stop_on_failure and result.status in (ResultStatus.FAILED, ResultStatus.ERROR):
            session.stop(requests)
            return StepOutcome(result=result, report=generate_report(session), finished=True)
        return StepOutcome(result=result)
