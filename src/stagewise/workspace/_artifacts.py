"""Artifact path resolution.

Maps logical artifact names used by stage definitions to files under the
workspace artifact store. Every resolution step rejects absolute paths,
parent-directory segments, and anything that would land outside the artifact
root once joined and resolved. Backslashes are normalized to forward slashes
before any check, so a path written for another platform cannot slip past.
"""

from collections.abc import Sequence
from fnmatch import fnmatchcase
from pathlib import Path, PurePosixPath, PureWindowsPath

from stagewise.exceptions import ArtifactNotFoundError, ArtifactPathError

from ._layout import WorkspaceLayout

__all__ = [
    "ArtifactResolver",
    "match_output_pattern",
    "normalize_relative_path",
]


def normalize_relative_path(path: str) -> str:
    """Normalize a user-supplied relative path and reject unsafe forms.

    Args:
        path: Relative path using either separator style.

    Returns:
        The cleaned path as a POSIX string (no `.` segments, single slashes).

    Raises:
        ArtifactPathError: If the path is empty, absolute, carries a drive,
            or contains a `..` segment.
    """
    unified = path.replace("\\", "/").strip()
    if not unified:
        msg = "artifact path is empty"
        raise ArtifactPathError(msg, path=path)

    if unified.startswith("/") or PureWindowsPath(path).drive:
        msg = f"absolute paths are not allowed: {path}"
        raise ArtifactPathError(msg, path=path)

    parts = [part for part in PurePosixPath(unified).parts if part not in ("", ".")]
    if ".." in parts:
        msg = f"path traversal is not allowed: {path}"
        raise ArtifactPathError(msg, path=path)
    if not parts:
        msg = f"artifact path resolves to the artifact root: {path}"
        raise ArtifactPathError(msg, path=path)

    return PurePosixPath(*parts).as_posix()


def match_output_pattern(pattern: str, relative: str) -> bool:
    """Check whether a stored artifact path satisfies a declared output pattern.

    Both sides are normalized to forward slashes; `*` and `?` follow shell
    glob rules.
    """
    return fnmatchcase(relative.replace("\\", "/"), pattern.replace("\\", "/"))


class ArtifactResolver:
    """Resolve logical artifact paths against a workspace artifact store.

    Attributes:
        _layout: Workspace layout providing the artifact root.
    """

    __slots__ = ("_layout",)

    def __init__(self, layout: WorkspaceLayout) -> None:
        self._layout = layout

    @property
    def artifacts_root(self) -> Path:
        return self._layout.artifacts_dir

    def _contained(self, relative: str, original: str) -> Path:
        """Join a normalized relative path to the artifact root and verify containment.

        Symlinks are resolved, so a link pointing outside the store is
        rejected the same way a `..` segment is.
        """
        root = self.artifacts_root.resolve()
        candidate = (self.artifacts_root / relative).resolve()
        if not candidate.is_relative_to(root):
            msg = f"path escapes the artifact store: {original}"
            raise ArtifactPathError(msg, path=original)
        return self.artifacts_root / relative

    def resolve_input(
        self,
        logical_path: str,
        depends_on: Sequence[str],
        stage_ids: Sequence[str],
    ) -> Path:
        """Resolve a stage input to an existing artifact file.

        Search order: a stage-qualified path (first segment names a known
        stage), then each dependency's artifact subtree in declaration order,
        then the flat artifact root.

        Args:
            logical_path: The input as written in the stage definition.
            depends_on: The requesting stage's dependencies.
            stage_ids: Every stage identifier in the active protocol.

        Returns:
            Path to the existing artifact file.

        Raises:
            ArtifactPathError: If the path is unsafe.
            ArtifactNotFoundError: If no candidate location holds the file.
        """
        relative = normalize_relative_path(logical_path)
        first_segment = relative.split("/", 1)[0]

        candidates: list[str] = []
        if first_segment in stage_ids and "/" in relative:
            candidates.append(relative)
        candidates.extend(f"{dependency}/{relative}" for dependency in depends_on)
        candidates.append(relative)

        searched: list[Path] = []
        for candidate in dict.fromkeys(candidates):
            path = self._contained(candidate, logical_path)
            searched.append(path)
            if path.is_file():
                return path

        msg = f"input not found in artifact store: {logical_path}"
        raise ArtifactNotFoundError(msg, path=logical_path, searched=tuple(searched))

    def resolve_output_relative(self, path: str) -> str:
        """Validate an output path and return it relative to the artifact root.

        Raises:
            ArtifactPathError: If the path is unsafe.
        """
        relative = normalize_relative_path(path)
        _ = self._contained(relative, path)
        return relative

    def artifact_relative_from_state(self, stored: str) -> str:
        """Validate a path recorded in workflow state and return it normalized."""
        return self.resolve_output_relative(stored)

    def artifact_absolute_from_state(self, stored: str) -> Path:
        """Map a path recorded in workflow state to its location on disk."""
        return self._contained(self.resolve_output_relative(stored), stored)

    def project_relative_path(self, path: Path | str, *, base: Path | None = None) -> str:
        """Express a project file path relative to the project root.

        Relative paths are interpreted against `base` (default: the current
        working directory), so a path typed from a subdirectory resolves to
        the same file as its absolute form.

        Raises:
            ArtifactPathError: If the path is outside the project or is the
                project root itself.
        """
        root = self._layout.root.resolve()
        raw = Path(str(path).replace("\\", "/"))
        absolute = raw if raw.is_absolute() else (base or Path.cwd()) / raw
        resolved = absolute.resolve()

        if not resolved.is_relative_to(root):
            msg = f"path is outside the project root: {path}"
            raise ArtifactPathError(msg, path=str(path))
        if resolved == root:
            msg = f"path resolves to the project root: {path}"
            raise ArtifactPathError(msg, path=str(path))

        return resolved.relative_to(root).as_posix()
