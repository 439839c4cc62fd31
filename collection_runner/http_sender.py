"""Built-in HTTP transport on top of ``urllib``."""

from __future__ import annotations

import json
import os
import socket
import time
from typing import Any
from urllib import error, request

from .contracts import HttpRequest, HttpResponse
from .errors import NetworkError

DEFAULT_TIMEOUT = 30.0
TIMEOUT_ENV_VAR = "COLLECTION_RUNNER_TIMEOUT"


class UrllibHttpSender:
    """Sends one request per call. No retries; redirects are left to urllib."""

    def __init__(self, timeout: float | None = None) -> None:
        env_timeout = os.getenv(TIMEOUT_ENV_VAR, str(DEFAULT_TIMEOUT))
        self._timeout = timeout or float(env_timeout)

    @property
    def timeout(self) -> float:
        return self._timeout

    def send(self, http_request: HttpRequest) -> HttpResponse:
        method = http_request.method.upper()
        headers = dict(http_request.headers)
        body = self._encode_body(http_request.body)
        if body is not None and not any(key.lower() == "content-type" for key in headers):
            headers["Content-Type"] = "application/json" if not isinstance(http_request.body, str) else "text/plain"

        req = request.Request(http_request.url, data=body, headers=headers, method=method)
        start = time.perf_counter()
        try:
            with request.urlopen(req, timeout=self._timeout) as response:
                payload = response.read().decode("utf-8", errors="replace")
                status = response.getcode()
                reason = response.reason or ""
                response_headers = {key: value for key, value in response.headers.items()}
        except error.HTTPError as exc:
            payload = exc.read().decode("utf-8", errors="replace")
            status = exc.code
            reason = exc.reason or ""
            response_headers = {key: value for key, value in exc.headers.items()} if exc.headers else {}
        except error.URLError as exc:
            if isinstance(exc.reason, (socket.timeout, TimeoutError)):
                raise NetworkError(f"{method} {http_request.url}: timeout: {exc.reason}") from exc.reason
            raise NetworkError(f"{method} {http_request.url}: {exc.reason}") from exc
        except (socket.timeout, TimeoutError) as exc:
            raise NetworkError(f"{method} {http_request.url}: timeout: {exc}") from exc
        except (OSError, ValueError) as exc:
            raise NetworkError(f"{method} {http_request.url}: {exc}") from exc
        elapsed_ms = (time.perf_counter() - start) * 1000
        return HttpResponse(
            status_code=status,
            status_text=f"{status} {reason}".strip(),
            headers=response_headers,
            body=payload,
            elapsed_ms=elapsed_ms,
        )

    @staticmethod
    def _encode_body(body: Any) -> bytes | None:
        if body is None:
            return None
        if isinstance(body, (dict, list)):
            return json.dumps(body).encode("utf-8")
        if isinstance(body, bytes):
            return body
        if isinstance(body, str):
            return body.encode("utf-8") if body else None
        return str(body).encode("utf-8")
