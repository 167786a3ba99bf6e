"""Snapshot name validation."""

import re

from stagewise.exceptions import InvalidSnapshotNameError

MAX_NAME_LENGTH = 128
TEMP_SUFFIX = ".tmp"

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def validate_snapshot_name(name: str) -> str:
    """Check that `name` is safe to use as a snapshot directory name.

    Names start with a letter or digit, continue with letters, digits, dots,
    hyphens or underscores, are at most 128 characters, and never contain
    `..`. Names ending in `.tmp` are reserved for in-progress snapshots.

    Returns:
        The name, unchanged.

    Raises:
        InvalidSnapshotNameError: If any rule is violated.
    """
    if not name:
        msg = "snapshot name is required"
        raise InvalidSnapshotNameError(msg, name=name)
    if len(name) > MAX_NAME_LENGTH:
        msg = f"snapshot name too long (max {MAX_NAME_LENGTH} characters)"
        raise InvalidSnapshotNameError(msg, name=name)
    if ".." in name:
        msg = f"invalid snapshot name {name!r} (contains path traversal)"
        raise InvalidSnapshotNameError(msg, name=name)
    if not _NAME_PATTERN.fullmatch(name):
        msg = (
            f"invalid snapshot name {name!r} (must start alphanumeric and contain "
            "only letters, digits, dots, hyphens and underscores)"
        )
        raise InvalidSnapshotNameError(msg, name=name)
    if name.endswith(TEMP_SUFFIX):
        msg = f"invalid snapshot name {name!r} ({TEMP_SUFFIX} suffix is reserved)"
        raise InvalidSnapshotNameError(msg, name=name)
    return name
