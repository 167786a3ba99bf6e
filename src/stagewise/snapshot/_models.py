"""Snapshot metadata and comparison results."""

from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

from stagewise.state import utc_now

METADATA_FILE_NAME = "metadata.json"


class SnapshotMetadata(BaseModel):
    """Contents of a snapshot's `metadata.json`.

    Attributes:
        version: The snapshot name.
        protocol: Name of the active protocol at capture time.
        archived_at: Capture timestamp (UTC).
        stages_completed: Completed stage ids copied from workflow state.
        tags: Free-form labels.
        notes: Free-form notes.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    version: str
    protocol: str = ""
    archived_at: datetime = Field(default_factory=utc_now)
    stages_completed: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    notes: str = ""


@dataclass(frozen=True, slots=True)
class SnapshotDiff:
    """Artifact differences between two snapshots, each list sorted.

    Attributes:
        added: Paths present only in the second snapshot.
        removed: Paths present only in the first snapshot.
        changed: Paths present in both with different content.
    """

    added: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()
    changed: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)

    @classmethod
    def from_hashes(
        cls, left: dict[str, str], right: dict[str, str]
    ) -> "SnapshotDiff":
        """Diff two path-to-digest mappings."""
        return cls(
            added=tuple(sorted(right.keys() - left.keys())),
            removed=tuple(sorted(left.keys() - right.keys())),
            changed=tuple(
                sorted(p for p in left.keys() & right.keys() if left[p] != right[p])
            ),
        )
