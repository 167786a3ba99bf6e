"""Whole-workspace snapshots shared by archives and tracks."""

from ._manager import BACKUP_SUFFIX, SnapshotManager
from ._models import METADATA_FILE_NAME, SnapshotDiff, SnapshotMetadata
from ._names import MAX_NAME_LENGTH, TEMP_SUFFIX, validate_snapshot_name

__all__ = [
    "BACKUP_SUFFIX",
    "MAX_NAME_LENGTH",
    "METADATA_FILE_NAME",
    "TEMP_SUFFIX",
    "SnapshotDiff",
    "SnapshotManager",
    "SnapshotMetadata",
    "validate_snapshot_name",
]
