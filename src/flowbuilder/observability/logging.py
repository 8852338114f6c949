"""structlog setup for flowbuilder.

Every graph commit, rejected connection and persistence failure is emitted
as a structlog event with a snake_case name and key/value context. Events
go to two sinks:

- stderr through Rich, filtered by the CLI's ``-v`` count
- ``{log_dir}/events.jsonl`` when ``--log`` is given, one event per line
  and nothing filtered out
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path  # noqa: TC003 - Used at runtime for path operations
from typing import TYPE_CHECKING, Any

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from structlog.typing import Processor

EVENTS_FILENAME = "events.jsonl"

# -v count -> console level; anything above the table means DEBUG
_CONSOLE_LEVELS = {0: logging.WARNING, 1: logging.INFO}

_configured = False
_file_handler: logging.FileHandler | None = None
_logs_dir: Path | None = None


def _event_entry(record: logging.LogRecord) -> dict[str, Any]:
    """Flatten a log record into the JSONL event layout.

    structlog's ``wrap_for_formatter`` leaves its event dict in
    ``record.msg``; the event name becomes ``message`` and the rest of the
    context is merged in at the top level.
    """
    entry: dict[str, Any] = {
        "timestamp": datetime.now(UTC).isoformat(),
        "level": record.levelname,
        "logger": record.name,
    }
    if not isinstance(record.msg, dict):
        entry["message"] = record.getMessage()
        return entry

    context = {k: v for k, v in record.msg.items() if k not in ("level", "timestamp")}
    entry["message"] = context.pop("event", "")
    entry.update(context)
    return entry


class JSONLFileHandler(logging.FileHandler):
    """Append each event to the log file as a single JSON object."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = json.dumps(_event_entry(record), default=str)
            if self.stream:
                self.stream.write(line + "\n")
                self.stream.flush()
        except Exception:
            self.handleError(record)


def _console_handler(verbosity: int) -> RichHandler:
    return RichHandler(
        console=Console(stderr=True),
        level=_CONSOLE_LEVELS.get(verbosity, logging.DEBUG),
        rich_tracebacks=True,
        tracebacks_show_locals=verbosity >= 2,
        show_time=verbosity >= 1,
        show_path=verbosity >= 2,
        markup=False,
    )


def configure_logging(
    verbosity: int = 0,
    log_to_file: bool = False,
    log_dir: Path | None = None,
) -> None:
    """Route structlog events to the console and, optionally, a JSONL file.

    Safe to call repeatedly; a previous file handler is closed first.

    Args:
        verbosity: Console level. 0 shows warnings, 1 adds info, 2+ debug.
        log_to_file: Also write every event to ``{log_dir}/events.jsonl``.
        log_dir: Directory for the events file. Created if missing.

    Raises:
        ValueError: If log_to_file is set without a log_dir.
    """
    global _configured, _file_handler, _logs_dir

    if log_to_file and log_dir is None:
        raise ValueError("log_dir is required when log_to_file=True")

    close_file_logging()

    handlers: list[logging.Handler] = [_console_handler(verbosity)]
    if log_to_file and log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        _logs_dir = log_dir
        _file_handler = JSONLFileHandler(str(log_dir / EVENTS_FILENAME), mode="a")
        _file_handler.setLevel(logging.DEBUG)
        handlers.append(_file_handler)

    # The events file records every level.
    root_level = logging.DEBUG if (verbosity > 0 or log_to_file) else logging.WARNING
    logging.basicConfig(level=root_level, format="%(message)s", handlers=handlers, force=True)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]
    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        # Module-level loggers follow reconfiguration.
        cache_logger_on_first_use=False,
    )

    _configured = True


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Return a structlog logger, configuring defaults on first use."""
    if not _configured:
        configure_logging()

    logger: structlog.typing.FilteringBoundLogger = structlog.get_logger(name)
    return logger


def get_logs_dir() -> Path | None:
    """Directory the events file is written to, or None without ``--log``."""
    return _logs_dir


def close_file_logging() -> None:
    """Flush and detach the events file, if one is open."""
    global _file_handler
    if _file_handler is not None:
        _file_handler.close()
        _file_handler = None
