# pyright: reportUnusedCallResult=false, reportUnusedFunction=false
# ruff: noqa: T201
"""Archive commands."""

from typing import Annotated

from cyclopts import Parameter

from stagewise.cli._commands._context import CLIContext, OutputFormat
from stagewise.cli._commands._shared import (
    exit_code_for_exception,
    exit_with_error,
    format_json,
    format_table,
    get_console,
    print_diff,
    snapshot_manager,
)
from stagewise.exceptions import StagewiseError

from ._app import app

_KIND = "archives"


@app.command(name="create")
def create(
    name: str,
    /,
    *,
    tag: Annotated[
        list[str] | None, Parameter(help="Tag to apply to the archive (repeatable)")
    ] = None,
    notes: Annotated[str, Parameter(help="Notes for the archive")] = "",
) -> None:
    """Archive the current workspace.

    Args:
        name: Archive name, usually a version such as 1.0.
        tag: Archive tags.
        notes: Archive notes.
    """
    try:
        manager = snapshot_manager(_KIND, "archive create")
        metadata = manager.create(
            name,
            tags=tag or (),
            notes=notes,
            protocol=CLIContext.get_current().protocol,
        )
    except (StagewiseError, OSError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))

    get_console().print(
        f"Archived {metadata.version} "
        f"({len(metadata.stages_completed)} completed stages)"
    )


@app.command(name="list")
def list_archives(
    *,
    format: Annotated[  # noqa: A002
        OutputFormat, Parameter(name=["--format", "-f"], help="Output format")
    ] = OutputFormat.TEXT,
) -> None:
    """List archives.

    Args:
        format: Output format (text, table or json).
    """
    try:
        manager = snapshot_manager(_KIND, "archive list")
        names = manager.list()
        if format == OutputFormat.TEXT:
            for name in names:
                print(name)
            return
        metadata = [manager.get_metadata(name) for name in names]
    except (StagewiseError, OSError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))

    if format == OutputFormat.JSON:
        print(
            format_json({"archives": [m.model_dump(mode="json") for m in metadata]})
        )
        return
    rows = [
        [
            m.version,
            m.protocol,
            m.archived_at.isoformat(),
            str(len(m.stages_completed)),
            ", ".join(m.tags),
        ]
        for m in metadata
    ]
    print(format_table(["Name", "Protocol", "Archived", "Stages", "Tags"], rows))


@app.command(name="show")
def show(name: str, /) -> None:
    """Show archive metadata.

    Args:
        name: Archive name.
    """
    try:
        metadata = snapshot_manager(_KIND, "archive show").get_metadata(name)
    except (StagewiseError, OSError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))
    print(format_json(metadata.model_dump(mode="json")))


@app.command(name="restore")
def restore(
    name: str,
    /,
    *,
    force: Annotated[
        bool, Parameter(help="Overwrite existing workspace data")
    ] = False,
) -> None:
    """Restore an archive into the workspace.

    The archive is verified and staged before the live workspace is touched;
    a failed swap is rolled back.

    Args:
        name: Archive name.
        force: Replace a workspace that already has data.
    """
    try:
        snapshot_manager(_KIND, "archive restore").restore(name, force=force)
    except (StagewiseError, OSError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))
    get_console().print(f"Restored archive {name}")


@app.command(name="compare")
def compare(left: str, right: str, /) -> None:
    """Compare archived artifacts between two archives.

    Args:
        left: Baseline archive.
        right: Archive compared against the baseline.
    """
    try:
        diff = snapshot_manager(_KIND, "archive compare").compare(left, right)
    except (StagewiseError, OSError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))
    print_diff(diff)
