"""Workspace initialization."""

from pathlib import Path

from structlog.typing import FilteringBoundLogger

from stagewise.config import DEFAULT_PROTOCOL_NAME, Config
from stagewise.protocol import ByName, ProtocolSource
from stagewise.state import WorkflowState, save_state
from stagewise.utils import get_assets_dir, get_null_logger
from stagewise.workspace import WorkspaceLayout, copy_file


def _write_if_missing(source: Path, destination: Path, created: list[Path]) -> None:
    if destination.exists():
        return
    copy_file(source, destination)
    created.append(destination)


def init_workspace(
    layout: WorkspaceLayout,
    *,
    protocol: str = DEFAULT_PROTOCOL_NAME,
    project_name: str = "",
    logger: FilteringBoundLogger | None = None,
) -> list[Path]:
    """Create the workspace directories and seed files under `layout`.

    Existing files are never overwritten, so running this twice is safe. The
    bundled default protocol and its templates are always installed; a
    different `protocol` is only recorded in config and state.

    Returns:
        The files that were created.
    """
    log = logger or get_null_logger()
    for directory in (
        layout.workspace_dir,
        layout.artifacts_dir,
        layout.generated_dir,
        layout.protocols_dir,
        layout.templates_dir,
        layout.archives_dir,
        layout.tracks_dir,
    ):
        directory.mkdir(parents=True, exist_ok=True)

    created: list[Path] = []
    if not layout.config_path.exists():
        config = Config.from_dict(
            {"project_name": project_name or layout.root.name, "protocol": protocol}
        )
        config.write(layout.config_path)
        created.append(layout.config_path)

    assets = get_assets_dir()
    _write_if_missing(
        assets / "protocols" / f"{DEFAULT_PROTOCOL_NAME}.yaml",
        layout.protocol_path(DEFAULT_PROTOCOL_NAME),
        created,
    )
    for template in sorted((assets / "templates").iterdir()):
        if template.is_file():
            _write_if_missing(template, layout.templates_dir / template.name, created)

    if not layout.state_path.exists():
        source = ProtocolSource.parse(protocol)
        name = source.name if isinstance(source, ByName) else source.path.stem
        save_state(layout.state_path, WorkflowState(protocol=name))
        created.append(layout.state_path)

    log.info("workspace_initialized", root=str(layout.root), created=len(created))
    return created
