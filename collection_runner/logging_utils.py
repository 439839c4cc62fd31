"""Structured logging helpers for the collection runner."""

from __future__ import annotations

import logging
import sys
from io import StringIO
from typing import Any

import structlog
from rich.console import Console
from rich.text import Text

from .output_config import LogFormat

LOGGER_NAME = "collection_runner"

_HIDDEN_KEYS = ("stack", "exception")


class RichConsoleRenderer:
    """structlog renderer: one coloured line per event, run context first."""

    level_styles = {
        "debug": "dim cyan",
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "critical": "bold white on red",
    }
    event_width = 24

    def __call__(self, logger: Any, name: str, event_dict: dict[str, Any]) -> str:
        level = event_dict.pop("level", "info")
        line = Text(event_dict.pop("timestamp", ""), style="dim white")
        line.append(f" {level.upper():<7} ", style=self.level_styles.get(level, "white"))

        context = self._context(event_dict)
        if context:
            line.append(f"{context} ", style="magenta")
        line.append(str(event_dict.pop("event", "")).ljust(self.event_width), style="bold white")

        fields = [(key, value) for key, value in sorted(event_dict.items()) if key not in _HIDDEN_KEYS]
        for key, value in fields:
            line.append(f" {key}=", style="dim white")
            line.append(str(value), style="bright_cyan")

        if event_dict.get("exception"):
            line.append(f"\n{event_dict['exception']}", style="red")
        return self._render(line)

    @staticmethod
    def _context(event_dict: dict[str, Any]) -> str:
        run_id = event_dict.pop("run_id", None)
        index = event_dict.pop("index", None)
        request = event_dict.pop("request", None)
        parts = [str(run_id)] if run_id else []
        if index is not None:
            parts.append(f"#{index + 1}" if isinstance(index, int) else f"#{index}")
        if request:
            parts.append(str(request))
        return " ".join(parts)

    @staticmethod
    def _render(line: Text) -> str:
        buffer = StringIO()
        Console(file=buffer, force_terminal=True, width=240, legacy_windows=False).print(line, end="")
        return buffer.getvalue()


def configure_logging(log_level: str, log_format: LogFormat = "console") -> structlog.stdlib.BoundLogger:
    """Configure structlog for the runner; logs go to stderr so console output stays clean."""

    normalized_level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=normalized_level,
        stream=sys.stderr,
        format="%(message)s",
        force=True,
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
        structlog.processors.format_exc_info,
    ]

    if log_format == "console":
        processors.append(RichConsoleRenderer())
    elif log_format == "plain":
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    else:  # json
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(normalized_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger(LOGGER_NAME)
