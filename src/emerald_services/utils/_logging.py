"""Structured logging for the services supervisor.

Loggers built here are standalone: they are wrapped around their own
sink with ``structlog.wrap_logger`` and leave the global structlog
configuration alone, so library users keep control of theirs.
"""

import logging
from logging.handlers import RotatingFileHandler
from os import getenv
from pathlib import Path
from typing import TYPE_CHECKING, Literal, cast

import structlog

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger, Processor

LogFormatType = Literal["json", "text"]

SERVICES_LOG_FILE = "services.log"

DEBUG_ENV = "EMERALD_SERVICES_DEBUG"
LOG_LEVEL_ENV = "EMERALD_SERVICES_LOG_LEVEL"


def _level_number(name: str) -> int:
    return logging.getLevelNamesMapping().get(name.upper(), logging.INFO)


def _get_log_level() -> int:
    """Return the level selected by the environment.

    EMERALD_SERVICES_DEBUG forces DEBUG. Otherwise EMERALD_SERVICES_LOG_LEVEL
    is used, falling back to INFO.
    """
    if getenv(DEBUG_ENV):
        return logging.DEBUG
    return _level_number(getenv(LOG_LEVEL_ENV, "info"))


def _resolve_level(level: str) -> int:
    """Map a configured level name to a number; the debug env var wins."""
    if getenv(DEBUG_ENV):
        return logging.DEBUG
    return _level_number(level)


def _renderers(log_format: LogFormatType) -> "list[Processor]":  # noqa: UP037
    if log_format == "text":
        return [structlog.dev.ConsoleRenderer(colors=False)]
    return [
        structlog.processors.dict_tracebacks,
        structlog.processors.JSONRenderer(),
    ]


def _rotating_sink(
    log_path: Path, level: int, max_bytes: int, backup_count: int
) -> logging.Logger:
    """Return a private stdlib logger that writes rendered lines to a rotating file."""
    sink = logging.getLogger(f"emerald_services.{log_path.stem}.{id(log_path)}")
    sink.handlers.clear()
    sink.propagate = False
    sink.setLevel(level)

    handler = RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count
    )
    handler.setLevel(level)
    # Lines arrive fully rendered
    handler.setFormatter(logging.Formatter("%(message)s"))
    sink.addHandler(handler)
    return sink


def _create_logger(
    log_file_path: str,
    *,
    log_level: int | None = None,
    log_format: LogFormatType = "json",
    max_bytes: int | None = None,
    backup_count: int | None = None,
) -> "FilteringBoundLogger":  # noqa: UP037
    """Build a logger that appends to one file.

    Rotation is enabled only when both max_bytes and backup_count are set.

    Args:
        log_file_path: Target file. Its directory is created if needed.
        log_level: Threshold; read from the environment when None.
        log_format: "json" (one object per line) or "text".
        max_bytes: Size that triggers a rollover.
        backup_count: Rolled-over files to keep.
    """
    log_path = Path(log_file_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    level = _get_log_level() if log_level is None else log_level

    if max_bytes is not None and backup_count is not None:
        sink: object = _rotating_sink(log_path, level, max_bytes, backup_count)
    else:
        sink = structlog.WriteLogger(log_path.open("a"))

    processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        *_renderers(log_format),
    ]

    return cast(
        "FilteringBoundLogger",
        structlog.wrap_logger(
            sink,
            processors=processors,
            wrapper_class=structlog.make_filtering_bound_logger(level),
            context_class=dict,
        ),
    )


def create_services_logger(
    log_dir: Path,
    *,
    level: str = "info",
    log_format: LogFormatType = "json",
    log_file: str = "",
    max_bytes: int | None = None,
    backup_count: int | None = None,
) -> "FilteringBoundLogger":  # noqa: UP037
    """Create the logger the orchestrator writes its events to.

    Events go to ``log_file`` when set, otherwise to
    ``<log_dir>/services.log``. Setting EMERALD_SERVICES_DEBUG lowers the
    threshold to debug regardless of ``level``, which also captures every
    chunk of process output.
    """
    target = log_file or str(log_dir / SERVICES_LOG_FILE)
    return _create_logger(
        target,
        log_level=_resolve_level(level),
        log_format=log_format,
        max_bytes=max_bytes,
        backup_count=backup_count,
    )
