# pyright: reportUnusedCallResult=false, reportUnusedFunction=false
# ruff: noqa: T201
"""Track commands.

Tracks are snapshots kept under `.stagewise/tracks/`. Switching to a track
restores it over the live workspace; diffing compares the artifact stores of
two tracks.
"""

from typing import Annotated

from cyclopts import Parameter

from stagewise.cli._commands._context import CLIContext
from stagewise.cli._commands._shared import (
    exit_code_for_exception,
    exit_with_error,
    get_console,
    print_diff,
    snapshot_manager,
)
from stagewise.exceptions import StagewiseError

from ._app import app

_KIND = "tracks"


@app.command(name="create")
def create(
    name: str,
    /,
    *,
    notes: Annotated[str, Parameter(help="Notes for the track")] = "",
) -> None:
    """Create a track from the current workspace.

    Args:
        name: Track name.
        notes: Track notes.
    """
    try:
        snapshot_manager(_KIND, "track create").create(
            name, notes=notes, protocol=CLIContext.get_current().protocol
        )
    except (StagewiseError, OSError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))
    get_console().print(f"Created track {name}")


@app.command(name="list")
def list_tracks() -> None:
    """List tracks."""
    try:
        names = snapshot_manager(_KIND, "track list").list()
    except (StagewiseError, OSError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))
    for name in names:
        print(name)


@app.command(name="switch")
def switch(
    name: str,
    /,
    *,
    force: Annotated[
        bool, Parameter(help="Overwrite existing workspace data")
    ] = False,
) -> None:
    """Switch the workspace to a track by restoring it.

    Args:
        name: Track name.
        force: Replace a workspace that already has data.
    """
    try:
        snapshot_manager(_KIND, "track switch").restore(name, force=force)
    except (StagewiseError, OSError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))
    get_console().print(f"Switched to track {name}")


@app.command(name="diff")
def diff(left: str, right: str, /) -> None:
    """Compare artifacts between two tracks.

    Args:
        left: Baseline track.
        right: Track compared against the baseline.
    """
    try:
        result = snapshot_manager(_KIND, "track diff").compare(left, right)
    except (StagewiseError, OSError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))
    print_diff(result)


@app.command(name="delete")
def delete(name: str, /) -> None:
    """Delete a track.

    Args:
        name: Track name.
    """
    try:
        snapshot_manager(_KIND, "track delete").delete(name)
    except (StagewiseError, OSError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))
    get_console().print(f"Deleted track {name}")
