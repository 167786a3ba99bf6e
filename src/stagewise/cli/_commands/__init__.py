"""stagewise CLI commands."""
# pyright: reportUnusedCallResult=false

from cyclopts import App

from ._archive import app as archive_app
from ._context import CLIContext, OutputFormat
from ._shared import (
    ExitCode,
    FormattableData,
    exit_code_for_exception,
    exit_with_error,
    format_json,
    format_table,
    get_error_console,
)
from ._track import app as track_app
from ._workflow import approve, check, complete, complete_spec, init, stage, status

__all__ = [
    "CLIContext",
    "ExitCode",
    "FormattableData",
    "OutputFormat",
    "archive_app",
    "exit_code_for_exception",
    "exit_with_error",
    "format_json",
    "format_table",
    "get_error_console",
    "register_commands",
    "track_app",
]


def register_commands(app: App) -> None:
    app.command(init, name="init")
    app.command(status, name="status")
    app.command(stage, name="stage")
    app.command(complete, name="complete")
    app.command(approve, name="approve")
    app.command(check, name="check")
    app.command(complete_spec, name="complete-spec")
    app.command(archive_app)
    app.command(track_app)
