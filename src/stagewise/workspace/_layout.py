"""Workspace directory layout and project root discovery.

A workspace is a project directory containing a `.stagewise/` marker
directory. Everything the engine reads or writes lives beneath it.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Self

from dulwich.errors import NotGitRepository
from dulwich.repo import Repo

from stagewise.exceptions import WorkspaceNotFoundError

WORKSPACE_DIR_NAME = ".stagewise"
CONFIG_FILE_NAME = "config.toml"
STATE_FILE_NAME = "state.json"
PROTOCOL_EXTENSION = ".yaml"


@dataclass(frozen=True, slots=True)
class WorkspaceLayout:
    """Filesystem locations for one workspace.

    Attributes:
        root: The project root directory (the parent of `.stagewise/`).
    """

    root: Path

    @classmethod
    def discover(cls, start: Path | None = None) -> Self:
        """Build a layout for the project enclosing `start`."""
        return cls(find_project_root(start))

    @property
    def workspace_dir(self) -> Path:
        """Path to the `.stagewise/` directory."""
        return self.root / WORKSPACE_DIR_NAME

    @property
    def config_path(self) -> Path:
        return self.workspace_dir / CONFIG_FILE_NAME

    @property
    def state_path(self) -> Path:
        return self.workspace_dir / STATE_FILE_NAME

    @property
    def artifacts_dir(self) -> Path:
        return self.workspace_dir / "artifacts"

    @property
    def generated_dir(self) -> Path:
        return self.workspace_dir / "generated"

    @property
    def protocols_dir(self) -> Path:
        return self.workspace_dir / "protocols"

    @property
    def templates_dir(self) -> Path:
        return self.workspace_dir / "templates"

    @property
    def archives_dir(self) -> Path:
        return self.workspace_dir / "archives"

    @property
    def tracks_dir(self) -> Path:
        return self.workspace_dir / "tracks"

    @property
    def log_dir(self) -> Path:
        return self.workspace_dir / "logs"

    @property
    def cli_log_file(self) -> Path:
        return self.log_dir / "cli.log"

    @property
    def restore_staging_dir(self) -> Path:
        """Scratch directory used while staging a snapshot restore."""
        return self.workspace_dir / "_restore.tmp"

    def stage_artifacts_dir(self, stage_id: str) -> Path:
        """Artifact subtree owned by a single stage."""
        return self.artifacts_dir / stage_id

    def protocol_path(self, name: str) -> Path:
        """Path of a named protocol inside the protocols directory."""
        return self.protocols_dir / f"{name}{PROTOCOL_EXTENSION}"

    def live_components(self) -> tuple[tuple[str, Path], ...]:
        """The six components a snapshot captures, keyed by snapshot entry name.

        Order matters: restore swaps components in this order and rolls
        back in reverse.
        """
        return (
            ("artifacts", self.artifacts_dir),
            ("generated", self.generated_dir),
            ("protocols", self.protocols_dir),
            ("templates", self.templates_dir),
            (CONFIG_FILE_NAME, self.config_path),
            (STATE_FILE_NAME, self.state_path),
        )


def _git_worktree_root(start: Path) -> Path | None:
    """Return the git worktree root enclosing `start`, if any."""
    try:
        repo = Repo.discover(str(start))
    except NotGitRepository:
        return None
    path_str = repo.path.decode() if isinstance(repo.path, bytes) else repo.path
    return Path(path_str).resolve()


def find_project_root(start: Path | None = None) -> Path:
    """Find the project root by searching upward for `.stagewise/`.

    Searches from the starting directory upward through parent directories.
    If no `.stagewise/` directory is found the enclosing git worktree root is
    used, so `init` works in a fresh repository.

    Args:
        start: Directory to start searching from. Defaults to the current
            working directory.

    Returns:
        Path to the project root directory.

    Raises:
        WorkspaceNotFoundError: If neither marker is found.
    """
    origin = (start or Path.cwd()).resolve()
    current = origin

    while True:
        if (current / WORKSPACE_DIR_NAME).is_dir():
            return current
        parent = current.parent
        if parent == current:
            break
        current = parent

    git_root = _git_worktree_root(origin)
    if git_root is not None:
        return git_root

    msg = f"No {WORKSPACE_DIR_NAME}/ directory or git repository found above {origin}"
    raise WorkspaceNotFoundError(msg, start=origin)
