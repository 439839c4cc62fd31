"""Ensure the package under test is importable when running from the repo root."""

from __future__ import annotations

import sys
from pathlib import Path

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
TESTS_DIR = Path(__file__).resolve().parent
for path in (PACKAGE_ROOT, TESTS_DIR):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

import pytest  # noqa: E402

from collection_runner.logging_utils import configure_logging  # noqa: E402


@pytest.fixture(autouse=True, scope="session")
def _quiet_logging() -> None:
    """Keep structured logs on stderr at warning level so stdout holds only command output."""

    configure_logging("WARNING", "plain")
