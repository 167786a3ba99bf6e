# pyright: reportExplicitAny=false
"""Shared CLI utilities for commands.

This module provides common utilities used across CLI command implementations:
- Standardized exit codes and the exception to exit code mapping
- Generic output formatters (JSON, table)
- Workspace, logger and engine loading from the global CLI options
"""

from enum import IntEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Never

from stagewise.config import Config
from stagewise.exceptions import (
    ApprovalNotDeclaredError,
    ArtifactNotFoundError,
    ArtifactPathError,
    CheckFailedError,
    CircularImportError,
    ConfigError,
    InvalidSnapshotNameError,
    MissingDependencyError,
    MissingOutputError,
    ProtocolNotFoundError,
    ProtocolParseError,
    ProtocolValidationError,
    RestoreError,
    SnapshotError,
    SnapshotExistsError,
    SnapshotIntegrityError,
    SnapshotNotFoundError,
    StageNotFoundError,
    StateIOError,
    StateParseError,
    TemplateError,
    WorkspaceNotFoundError,
)
from stagewise.utils import create_cli_logger, get_null_logger
from stagewise.workspace import WorkspaceLayout

from ._context import CLIContext

if TYPE_CHECKING:
    from rich.console import Console
    from structlog.typing import FilteringBoundLogger

    from stagewise.engine import Engine
    from stagewise.snapshot import SnapshotDiff, SnapshotManager

# Type alias for formattable data - uses Any to match library signatures
FormattableData = dict[str, Any]

__all__ = [
    "ExitCode",
    "FormattableData",
    "exit_code_for_exception",
    "exit_with_error",
    "format_json",
    "format_table",
    "get_cli_logger",
    "get_console",
    "get_error_console",
    "load_engine",
    "load_layout",
    "print_diff",
    "snapshot_manager",
]


class ExitCode(IntEnum):
    """Standard exit codes for stagewise CLI commands."""

    SUCCESS = 0
    LOAD_ERROR = 1
    VALIDATION_ERROR = 2
    NOT_FOUND = 3
    IO_ERROR = 4
    INTERNAL_ERROR = 5


_NOT_FOUND = (
    StageNotFoundError,
    ProtocolNotFoundError,
    SnapshotNotFoundError,
    ArtifactNotFoundError,
    WorkspaceNotFoundError,
    FileNotFoundError,
)
_VALIDATION = (
    ProtocolValidationError,
    CircularImportError,
    MissingDependencyError,
    MissingOutputError,
    ApprovalNotDeclaredError,
    ArtifactPathError,
    InvalidSnapshotNameError,
    SnapshotExistsError,
    SnapshotIntegrityError,
    CheckFailedError,
)
_LOAD = (ConfigError, ProtocolParseError, StateParseError, TemplateError)
_IO = (StateIOError, RestoreError, OSError)


def exit_code_for_exception(exc: BaseException) -> ExitCode:
    """Map an exception to the exit code a command should return."""
    if isinstance(exc, _NOT_FOUND):
        return ExitCode.NOT_FOUND
    if isinstance(exc, _VALIDATION):
        return ExitCode.VALIDATION_ERROR
    if isinstance(exc, _LOAD):
        return ExitCode.LOAD_ERROR
    if isinstance(exc, _IO):
        return ExitCode.IO_ERROR
    if isinstance(exc, SnapshotError):
        return ExitCode.VALIDATION_ERROR
    return ExitCode.INTERNAL_ERROR


def format_json(data: FormattableData, *, indent: bool = True) -> str:
    """Format data as JSON."""
    import orjson

    options = orjson.OPT_INDENT_2 if indent else 0
    return orjson.dumps(data, option=options).decode("utf-8")


def format_table(headers: list[str], rows: list[list[str]]) -> str:
    """Format data as a Markdown table.

    Args:
        headers: Column headers for the table.
        rows: List of rows, where each row is a list of cell values.

    Returns:
        Markdown table string representation.
    """
    from pytablewriter import MarkdownTableWriter

    writer = MarkdownTableWriter(
        headers=headers,
        value_matrix=rows,
        margin=1,
    )
    return writer.dumps()


def get_console() -> "Console":
    from rich.console import Console

    return Console(highlight=False)


def get_error_console() -> "Console":
    """Get a Rich console configured for error output to stderr."""
    from rich.console import Console

    return Console(stderr=True, highlight=False)


def exit_with_error(
    message: str,
    code: ExitCode = ExitCode.INTERNAL_ERROR,
    *,
    console: "Console | None" = None,
) -> Never:
    """Print an error message and exit with the specified code.

    Raises:
        SystemExit: Always raised with the specified exit code.
    """
    if console is None:
        console = get_error_console()

    from rich.markup import escape

    console.print(f"[red]Error:[/red] {escape(message)}", markup=True)
    raise SystemExit(code)


# -----------------------------------------------------------------------------
# Workspace loading
# -----------------------------------------------------------------------------


def load_layout(*, require_workspace: bool = True) -> WorkspaceLayout:
    """Build the workspace layout from `--project-root` or by discovery.

    Raises:
        WorkspaceNotFoundError: If `require_workspace` is set and the project
            has no `.stagewise/` directory.
    """
    ctx = CLIContext.get_current()
    if ctx.project_root is not None:
        layout = WorkspaceLayout(ctx.project_root.resolve())
    else:
        layout = WorkspaceLayout.discover()

    if require_workspace and not layout.workspace_dir.is_dir():
        msg = (
            f"No workspace at {layout.root}; run 'stagewise init' to create one"
        )
        raise WorkspaceNotFoundError(msg, start=layout.root)
    return layout


def get_cli_logger(layout: WorkspaceLayout, command: str) -> "FilteringBoundLogger":
    """Create the command logger from the workspace's logging settings.

    Nothing is logged until the workspace exists.
    """
    if not layout.workspace_dir.is_dir():
        return get_null_logger()
    config = Config.load(layout.config_path, project_root=layout.root)
    log_file = layout.cli_log_file
    if config.logging.file:
        configured = Path(config.logging.file)
        log_file = configured if configured.is_absolute() else layout.root / configured
    level = "debug" if CLIContext.get_current().verbose else config.logging.level.value
    return create_cli_logger(
        log_file,
        level=level,
        log_format=config.logging.format.value,  # pyright: ignore[reportArgumentType]
        command=command,
        resources=CLIContext.get_current().resources,
    )


def load_engine(command: str) -> "Engine":
    """Load the engine for the current workspace with the command logger."""
    from stagewise.engine import Engine

    layout = load_layout()
    logger = get_cli_logger(layout, command)
    return Engine.load(
        layout, protocol_override=CLIContext.get_current().protocol, logger=logger
    )


def snapshot_manager(kind: str, command: str) -> "SnapshotManager":
    """Snapshot manager for the `archives` or `tracks` namespace of the workspace."""
    from stagewise.snapshot import SnapshotManager

    layout = load_layout()
    logger = get_cli_logger(layout, command)
    if kind == "tracks":
        return SnapshotManager.tracks(layout, logger=logger)
    return SnapshotManager.archives(layout, logger=logger)


def print_diff(diff: "SnapshotDiff") -> None:
    """Print a snapshot comparison as Added/Removed/Changed lists."""
    if diff.is_empty:
        print("No differences detected.")  # noqa: T201
        return
    for title, items in (
        ("Added", diff.added),
        ("Removed", diff.removed),
        ("Changed", diff.changed),
    ):
        if not items:
            continue
        print(f"{title}:")  # noqa: T201
        for item in items:
            print(f"- {item}")  # noqa: T201
