"""Workspace layout, artifact path resolution and file helpers."""

from ._artifacts import ArtifactResolver, match_output_pattern, normalize_relative_path
from ._files import collect_file_hashes, copy_file, copy_tree
from ._layout import (
    CONFIG_FILE_NAME,
    PROTOCOL_EXTENSION,
    STATE_FILE_NAME,
    WORKSPACE_DIR_NAME,
    WorkspaceLayout,
    find_project_root,
)

__all__ = [
    "CONFIG_FILE_NAME",
    "PROTOCOL_EXTENSION",
    "STATE_FILE_NAME",
    "WORKSPACE_DIR_NAME",
    "ArtifactResolver",
    "WorkspaceLayout",
    "collect_file_hashes",
    "copy_file",
    "copy_tree",
    "find_project_root",
    "match_output_pattern",
    "normalize_relative_path",
]
