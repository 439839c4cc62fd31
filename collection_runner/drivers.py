"""Resolution of ``module:function`` script references to Python callables."""

from __future__ import annotations

import importlib
import sys
from pathlib import Path
from types import ModuleType
from typing import Callable


def parse_reference(reference: str) -> tuple[str, str]:
    """Split ``package.module:function`` into its two halves."""

    module_name, sep, function_name = reference.strip().partition(":")
    if not sep or not module_name or not function_name:
        raise ValueError(f"script reference must look like 'module:function', got {reference!r}")
    return module_name.strip(), function_name.strip()


class DriverRegistry:
    """Caches hook modules/functions importable relative to a collection directory."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = root
        self._cache: dict[tuple[str, str], Callable] = {}
        self._modules: dict[str, ModuleType] = {}
        self._path_added = False

    def resolve(self, reference: str) -> Callable:
        module_name, function_name = parse_reference(reference)
        key = (module_name, function_name)
        if key in self._cache:
            return self._cache[key]

        self._ensure_path()
        module = self._modules.get(module_name)
        if module is None:
            module = importlib.import_module(module_name)
            self._modules[module_name] = module
        func = getattr(module, function_name, None)
        if func is None or not callable(func):
            raise AttributeError(f"Script function {function_name} not found in {module_name}")
        self._cache[key] = func
        return func

    def _ensure_path(self) -> None:
        if self._path_added or self.root is None:
            return
        root_str = str(self.root)
        if root_str not in sys.path:
            sys.path.insert(0, root_str)
        self._path_added = True
