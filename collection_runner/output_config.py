"""Output, log format and report location configuration."""

import os
from enum import Enum
from pathlib import Path
from typing import Literal

from .report import DEFAULT_REPORT_DIR


class OutputFormat(str, Enum):
    """How the run is shown on the console."""
    AUTO = "auto"
    RICH = "rich"
    PLAIN = "plain"
    JSON = "json"


LogFormat = Literal["json", "console", "plain"]

ENV_VAR_NAME = "CONSOLE_OUTPUT_FORMAT"
REPORT_DIR_ENV_VAR = "COLLECTION_RUNNER_REPORT_DIR"

_FORMAT_VALUES = frozenset(fmt.value for fmt in OutputFormat)
_LOG_FORMATS: dict[OutputFormat, LogFormat] = {
    OutputFormat.JSON: "json",
    OutputFormat.PLAIN: "plain",
}


def get_output_format(cli_override: str | None = None) -> OutputFormat:
    """
    Resolve the console output format.

    The first recognised value wins, in order: ``cli_override``, the
    ``CONSOLE_OUTPUT_FORMAT`` environment variable, then ``auto``. Unknown
    values are ignored rather than rejected.
    """
    for candidate in (cli_override, os.environ.get(ENV_VAR_NAME)):
        if candidate and candidate.lower() in _FORMAT_VALUES:
            return OutputFormat(candidate.lower())
    return OutputFormat.AUTO


def get_log_format(output_format: OutputFormat) -> LogFormat:
    """Structured log format to pair with a console format; auto and rich get colours."""
    return _LOG_FORMATS.get(output_format, "console")


def get_report_dir(cli_override: Path | None = None) -> Path:
    """Report export directory: CLI parameter > environment variable > default."""
    if cli_override is not None:
        return cli_override
    env_value = os.environ.get(REPORT_DIR_ENV_VAR)
    return Path(env_value) if env_value else DEFAULT_REPORT_DIR
