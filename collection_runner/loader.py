"""Collection and environment file loading utilities."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .collection import Collection, Environment
from .errors import LoaderError


def _read_mapping(path: Path, kind: str) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise LoaderError(f"failed to read {kind} file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise LoaderError(f"failed to parse {kind} file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise LoaderError(f"{kind.capitalize()} file {path} must contain a mapping")
    return data


def load_collection(path: Path) -> Collection:
    """Load and validate a collection YAML/JSON file."""

    data = _read_mapping(path, "collection")
    data.setdefault("name", path.stem)
    try:
        return Collection.model_validate(data)
    except ValidationError as exc:
        raise LoaderError(f"invalid collection file {path}: {exc}") from exc


def load_environment(path: Path) -> Environment:
    """Load an environment file; plain ``name: value`` variables are migrated."""

    data = _read_mapping(path, "environment")
    data.setdefault("name", path.stem)
    try:
        return Environment.model_validate(data)
    except ValidationError as exc:
        raise LoaderError(f"invalid environment file {path}: {exc}") from exc
