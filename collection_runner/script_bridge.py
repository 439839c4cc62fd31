"""Translation between outgoing HTTP data, script-visible objects and session state."""

from __future__ import annotations

import json
from dataclasses import replace
from typing import Any

from .contracts import HttpRequest, HttpResponse
from .models import EnvChangeKind, ScriptResult
from .session import RunSession


def _body_text(body: Any) -> str:
    if body is None:
        return ""
    if isinstance(body, str):
        return body
    if isinstance(body, (dict, list)):
        return json.dumps(body)
    return str(body)


def _edited_body(original: Any, edited: str) -> Any:
    """Keep a JSON body structured when a script rewrote its text."""

    if not isinstance(original, (dict, list)):
        return edited
    try:
        parsed = json.loads(edited)
    except ValueError:
        return edited
    return parsed if isinstance(parsed, (dict, list)) else edited


class ScriptRequest:
    """Mutable working copy of a request that a script can read and edit."""

    def __init__(
        self,
        *,
        method: str = "GET",
        url: str = "",
        headers: dict[str, str] | None = None,
        body: str = "",
        name: str = "",
    ) -> None:
        self.name = name
        self.method = method
        self._url = url
        self._headers = dict(headers or {})
        self._body = body
        self._url_modified = False
        self._headers_modified = False
        self._body_modified = False

    @classmethod
    def from_http(cls, request: HttpRequest, name: str = "") -> "ScriptRequest":
        return cls(
            method=request.method,
            url=request.url,
            headers=request.headers,
            body=_body_text(request.body),
            name=name,
        )

    @property
    def url(self) -> str:
        return self._url

    @url.setter
    def url(self, value: str) -> None:
        self._url = value
        self._url_modified = True

    @property
    def body(self) -> str:
        return self._body

    @body.setter
    def body(self, value: str) -> None:
        self._body = value
        self._body_modified = True

    @property
    def headers(self) -> dict[str, str]:
        return dict(self._headers)

    def get_header(self, name: str) -> str:
        lowered = name.lower()
        for key, value in self._headers.items():
            if key.lower() == lowered:
                return value
        return ""

    def set_header(self, name: str, value: str) -> None:
        lowered = name.lower()
        key = next((key for key in self._headers if key.lower() == lowered), name)
        self._headers[key] = value
        self._headers_modified = True

    def remove_header(self, name: str) -> None:
        lowered = name.lower()
        for key in [key for key in self._headers if key.lower() == lowered]:
            del self._headers[key]
            self._headers_modified = True

    @property
    def url_modified(self) -> bool:
        return self._url_modified

    @property
    def headers_modified(self) -> bool:
        return self._headers_modified

    @property
    def body_modified(self) -> bool:
        return self._body_modified

    @property
    def modified(self) -> bool:
        return self._url_modified or self._headers_modified or self._body_modified


class ScriptResponse:
    """Read-only response view handed to post-response scripts."""

    def __init__(
        self,
        status: int = 0,
        status_text: str = "",
        headers: dict[str, str] | None = None,
        body: str = "",
        time_ms: float = 0.0,
    ) -> None:
        self.status = status
        self.status_text = status_text
        self._headers = dict(headers or {})
        self.body = body
        self.time_ms = time_ms

    @classmethod
    def from_http(cls, response: HttpResponse | None) -> "ScriptResponse":
        if response is None:
            return cls()
        return cls(
            status=response.status_code,
            status_text=response.status_text,
            headers=response.headers,
            body=response.body,
            time_ms=response.elapsed_ms,
        )

    @property
    def headers(self) -> dict[str, str]:
        return dict(self._headers)

    def get_header(self, name: str) -> str:
        lowered = name.lower()
        for key, value in self._headers.items():
            if key.lower() == lowered:
                return value
        return ""

    def json(self) -> Any:
        return json.loads(self.body)


def script_environment(session: RunSession) -> dict[str, str]:
    """Snapshot of the active session variables handed to a script call."""

    return session.env_variables()


def apply_env_changes(session: RunSession, result: ScriptResult | None) -> None:
    """Fold a script's declared environment changes into the session."""

    if result is None:
        return
    for change in result.env_changes:
        if change.kind == EnvChangeKind.SET:
            session.set_session_env_variable(change.name, change.value)
        elif change.kind == EnvChangeKind.UNSET:
            session.unset_session_env_variable(change.name)


def apply_script_modifications(request: HttpRequest, script_request: ScriptRequest) -> HttpRequest:
    """Return ``request`` with the URL, header and body edits a script made."""

    url = script_request.url if script_request.url_modified and script_request.url else request.url
    headers = script_request.headers if script_request.headers_modified else dict(request.headers)
    body = request.body
    if script_request.body_modified:
        body = _edited_body(request.body, script_request.body)
    return replace(request, url=url, headers=headers, body=body)
