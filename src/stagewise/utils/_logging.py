"""Structured command logging.

Loggers built here are standalone structlog loggers bound to one file. They
never call `structlog.configure`, so importing stagewise as a library leaves
the host application's logging alone.
"""

import logging
from contextlib import ExitStack
from os import getenv
from pathlib import Path
from typing import Literal, cast

import structlog
from structlog.typing import FilteringBoundLogger, Processor

LogFormatType = Literal["json", "text"]


def _resolve_level(level: str | None) -> int:
    """Pick the threshold for a command logger.

    STAGEWISE_DEBUG wins over everything, then the explicit `level`, then
    STAGEWISE_LOG_LEVEL. Unknown names fall back to INFO.
    """
    if getenv("STAGEWISE_DEBUG"):
        return logging.DEBUG
    name = (level or getenv("STAGEWISE_LOG_LEVEL", "info")).upper()
    return logging.getLevelNamesMapping().get(name, logging.INFO)


def _file_logger(
    log_file: Path,
    *,
    threshold: int,
    log_format: LogFormatType,
    resources: ExitStack | None,
) -> FilteringBoundLogger:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    stream = log_file.open("a", encoding="utf-8")
    if resources is not None:
        _ = resources.enter_context(stream)
    factory = structlog.WriteLoggerFactory(file=stream)

    processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if log_format == "json":
        processors += [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    return cast(
        "FilteringBoundLogger",
        structlog.wrap_logger(
            factory(),
            processors=processors,
            wrapper_class=structlog.make_filtering_bound_logger(threshold),
            context_class=dict,
        ),
    )


def create_cli_logger(
    log_file: Path,
    *,
    level: str | None = None,
    log_format: LogFormatType = "json",
    command: str = "",
    resources: ExitStack | None = None,
) -> FilteringBoundLogger:
    """Logger for one CLI invocation, appending to `log_file`.

    Args:
        log_file: Destination, normally `.stagewise/logs/cli.log`.
        level: Threshold name (debug, info, warning, error).
        log_format: One JSON object per line, or key=value text.
        command: Bound to every entry when non-empty.
        resources: Takes ownership of the open log file, which is closed
            together with the stack. Without one the file stays open until
            it is garbage collected.
    """
    logger = _file_logger(
        log_file,
        threshold=_resolve_level(level),
        log_format=log_format,
        resources=resources,
    )
    return logger.bind(command=command) if command else logger


def get_null_logger() -> FilteringBoundLogger:
    """Logger that drops every event; the default for library components."""
    return cast(
        "FilteringBoundLogger",
        structlog.wrap_logger(
            structlog.ReturnLogger(),
            processors=[],
            wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL),
            context_class=dict,
        ),
    )
