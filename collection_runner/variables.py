"""``{{name}}`` placeholder substitution."""

from __future__ import annotations

import json
import random
import re
import string
import time
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Mapping

from .contracts import HttpRequest

_PLACEHOLDER_PATTERN = re.compile(r"\{\{([^}]+)\}\}")


def _random_string(length: int = 10) -> str:
    alphabet = string.ascii_letters + string.digits
    return "".join(random.choice(alphabet) for _ in range(length))


_SYSTEM_VARIABLES: dict[str, Callable[[], str]] = {
    "$timestamp": lambda: str(int(time.time())),
    "$datetime": lambda: datetime.now().astimezone().isoformat(timespec="seconds"),
    "$date": lambda: datetime.now().strftime("%Y-%m-%d"),
    "$time": lambda: datetime.now().strftime("%H:%M:%S"),
    "$randomInt": lambda: str(random.randrange(1_000_000)),
    "$uuid": lambda: str(uuid.uuid4()),
    "$guid": lambda: str(uuid.uuid4()),
    "$random": _random_string,
}


def substitute(text: str, variables: Mapping[str, str], *, system_variables: bool = False) -> str:
    """Replace ``{{name}}`` placeholders found in ``variables``; leave the rest as-is."""

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1).strip()
        if system_variables and name in _SYSTEM_VARIABLES:
            return _SYSTEM_VARIABLES[name]()
        if name in variables:
            return variables[name]
        return match.group(0)

    return _PLACEHOLDER_PATTERN.sub(_replace, text)


def substitute_value(value: Any, variables: Mapping[str, str], *, system_variables: bool = False) -> Any:
    """Substitute inside strings and, recursively, dict keys/values and list items."""

    if isinstance(value, str):
        return substitute(value, variables, system_variables=system_variables)
    if isinstance(value, dict):
        return {
            substitute_value(key, variables, system_variables=system_variables): substitute_value(
                item, variables, system_variables=system_variables
            )
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [substitute_value(item, variables, system_variables=system_variables) for item in value]
    return value


def substitute_request(
    request: HttpRequest,
    variables: Mapping[str, str],
    *,
    system_variables: bool = False,
) -> HttpRequest:
    """Return a copy of ``request`` with URL, headers and body substituted."""

    headers = {
        substitute(name, variables, system_variables=system_variables): substitute(
            value, variables, system_variables=system_variables
        )
        for name, value in request.headers.items()
    }
    return replace(
        request,
        url=substitute(request.url, variables, system_variables=system_variables),
        headers=headers,
        body=substitute_value(request.body, variables, system_variables=system_variables),
    )


def find_variables(text: str) -> list[str]:
    return [match.strip() for match in _PLACEHOLDER_PATTERN.findall(text)]


def find_unresolved_variables(request: HttpRequest, variables: Mapping[str, str]) -> list[str]:
    """Names referenced by ``request`` that neither ``variables`` nor system variables resolve."""

    texts = [request.url]
    for name, value in request.headers.items():
        texts.extend((name, value))
    if isinstance(request.body, str):
        texts.append(request.body)
    elif isinstance(request.body, (dict, list)):
        texts.append(json.dumps(request.body))

    unresolved: list[str] = []
    for text in texts:
        for name in find_variables(text):
            if name.startswith("$") or name in variables or name in unresolved:
                continue
            unresolved.append(name)
    return unresolved
