"""Whole-workspace snapshots.

One implementation serves both namespaces: archives (permanent records) and
tracks (disposable parallel branches) differ only in their root directory.

Create builds the snapshot in an invisible `<name>.tmp` sibling and makes it
visible with a single rename. Restore validates the snapshot and stages a
full copy before touching the live workspace, then swaps the six workspace
components one at a time, keeping each replaced component as a `.old` backup
until every swap has succeeded. A failed swap puts every backup back in
reverse order.
"""

import shutil
from collections.abc import Sequence
from pathlib import Path

import orjson
from pydantic import ValidationError
from structlog.typing import FilteringBoundLogger

from stagewise.config import Config
from stagewise.exceptions import (
    ArtifactPathError,
    ConfigError,
    ProtocolError,
    RestoreError,
    SnapshotError,
    SnapshotExistsError,
    SnapshotIntegrityError,
    SnapshotNotFoundError,
    StateError,
)
from stagewise.protocol import ByName, ProtocolResolver, ProtocolSource
from stagewise.state import WorkflowState, load_state, save_state
from stagewise.utils import dumps_json, get_null_logger, read_json_bytes
from stagewise.workspace import (
    CONFIG_FILE_NAME,
    PROTOCOL_EXTENSION,
    STATE_FILE_NAME,
    ArtifactResolver,
    WorkspaceLayout,
    collect_file_hashes,
    copy_file,
    copy_tree,
    normalize_relative_path,
)

from ._models import METADATA_FILE_NAME, SnapshotDiff, SnapshotMetadata
from ._names import TEMP_SUFFIX, validate_snapshot_name

BACKUP_SUFFIX = ".old"

# Directory components and whether their symlinks are preserved.
_TREE_COMPONENTS: tuple[tuple[str, bool], ...] = (
    ("artifacts", False),
    ("generated", False),
    ("protocols", True),
    ("templates", True),
)


def _move(src: Path, dst: Path) -> None:
    """Rename `src` to `dst` on the same filesystem."""
    _ = src.rename(dst)


def _remove(path: Path) -> None:
    """Remove a file, link or directory tree if it exists."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink(missing_ok=True)


class SnapshotManager:
    """Create, restore, compare and list snapshots under one namespace root.

    Attributes:
        root_dir: Directory holding one subdirectory per snapshot.
        layout: The live workspace the snapshots capture.
    """

    def __init__(
        self,
        root_dir: Path,
        layout: WorkspaceLayout,
        *,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        self.root_dir: Path = root_dir
        self.layout: WorkspaceLayout = layout
        self._logger: FilteringBoundLogger = logger or get_null_logger()

    @classmethod
    def archives(
        cls, layout: WorkspaceLayout, *, logger: FilteringBoundLogger | None = None
    ) -> "SnapshotManager":
        return cls(layout.archives_dir, layout, logger=logger)

    @classmethod
    def tracks(
        cls, layout: WorkspaceLayout, *, logger: FilteringBoundLogger | None = None
    ) -> "SnapshotManager":
        return cls(layout.tracks_dir, layout, logger=logger)

    def snapshot_dir(self, name: str) -> Path:
        return self.root_dir / validate_snapshot_name(name)

    def _existing_snapshot_dir(self, name: str) -> Path:
        path = self.snapshot_dir(name)
        if not path.is_dir():
            msg = f"snapshot not found: {name}"
            raise SnapshotNotFoundError(msg, name=name)
        return path

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    def _verify_state_artifacts(self, name: str, state: WorkflowState) -> None:
        resolver = ArtifactResolver(self.layout)
        for stage_id, output in state.stage_outputs.items():
            for stored in output.files:
                try:
                    path = resolver.artifact_absolute_from_state(stored)
                except ArtifactPathError as e:
                    msg = f"invalid artifact path for stage {stage_id}: {stored} ({e})"
                    raise SnapshotIntegrityError(
                        msg, name=name, component="artifacts"
                    ) from e
                if not path.is_file():
                    msg = (
                        f"missing artifact for stage {stage_id}: {stored} "
                        "(snapshot aborted)"
                    )
                    raise SnapshotIntegrityError(msg, name=name, component="artifacts")

    def create(
        self,
        name: str,
        *,
        tags: Sequence[str] = (),
        notes: str = "",
        protocol: ProtocolSource | None = None,
    ) -> SnapshotMetadata:
        """Capture the live workspace as a new snapshot.

        Args:
            name: Snapshot name.
            tags: Labels stored in the metadata.
            notes: Notes stored in the metadata.
            protocol: Protocol to record; defaults to the configured one.

        Returns:
            The metadata written into the snapshot.

        Raises:
            InvalidSnapshotNameError: If the name is invalid.
            SnapshotIntegrityError: If state references a missing artifact.
            SnapshotExistsError: If a snapshot with this name exists.
            ConfigError, ProtocolError, StateError: If the workspace cannot
                be loaded.
        """
        final_dir = self.snapshot_dir(name)

        config = Config.load(self.layout.config_path, project_root=self.layout.root)
        source = protocol or ProtocolSource.parse(config.active_protocol)
        active = ProtocolResolver(self.layout.protocols_dir, logger=self._logger).load(
            source
        )
        state = load_state(self.layout.state_path)
        self._verify_state_artifacts(name, state)

        if final_dir.exists():
            msg = f"snapshot already exists: {name}"
            raise SnapshotExistsError(msg, name=name)

        self.root_dir.mkdir(parents=True, exist_ok=True)
        temp_dir = final_dir.with_name(final_dir.name + TEMP_SUFFIX)
        if temp_dir.exists():
            _remove(temp_dir)
        temp_dir.mkdir()

        metadata = SnapshotMetadata(
            version=name,
            protocol=active.name,
            stages_completed=tuple(state.completed_stages),
            tags=tuple(tags),
            notes=notes,
        )
        try:
            for entry, allow_symlinks in _TREE_COMPONENTS:
                copy_tree(
                    self.layout.workspace_dir / entry,
                    temp_dir / entry,
                    allow_symlinks=allow_symlinks,
                )
            if self.layout.config_path.is_file():
                copy_file(self.layout.config_path, temp_dir / CONFIG_FILE_NAME)
            else:
                config.model_copy(update={"protocol": config.active_protocol}).write(
                    temp_dir / CONFIG_FILE_NAME
                )
            if self.layout.state_path.is_file():
                copy_file(self.layout.state_path, temp_dir / STATE_FILE_NAME)
            else:
                save_state(temp_dir / STATE_FILE_NAME, state)
            _ = (temp_dir / METADATA_FILE_NAME).write_bytes(
                dumps_json(metadata.model_dump(mode="json"))
            )
            _move(temp_dir, final_dir)
        except BaseException:
            shutil.rmtree(temp_dir, ignore_errors=True)
            raise

        self._logger.info(
            "snapshot_created",
            snapshot=name,
            root=str(self.root_dir),
            protocol=active.name,
            stages_completed=len(metadata.stages_completed),
        )
        return metadata

    # -------------------------------------------------------------------------
    # Restore
    # -------------------------------------------------------------------------

    def _read_metadata(self, name: str, snapshot_dir: Path) -> SnapshotMetadata:
        path = snapshot_dir / METADATA_FILE_NAME
        try:
            data = read_json_bytes(path.read_bytes())
            return SnapshotMetadata.model_validate(data)
        except FileNotFoundError as e:
            msg = f"snapshot is incomplete or corrupt: missing {METADATA_FILE_NAME}"
            raise SnapshotIntegrityError(
                msg, name=name, component=METADATA_FILE_NAME
            ) from e
        except (orjson.JSONDecodeError, ValidationError) as e:
            msg = f"cannot parse snapshot metadata for {name}: {e}"
            raise SnapshotIntegrityError(
                msg, name=name, component=METADATA_FILE_NAME
            ) from e

    def verify(self, name: str) -> SnapshotMetadata:
        """Check that a snapshot is complete and internally consistent.

        Required: `protocols/` and `templates/` directories; config, state
        and metadata files; a config naming a protocol whose document exists
        in the snapshot, loads, and matches the metadata's protocol name; and
        every artifact referenced by the snapshot's state.

        Raises:
            SnapshotNotFoundError: If the snapshot does not exist.
            SnapshotIntegrityError: If any check fails.
        """
        snapshot_dir = self._existing_snapshot_dir(name)

        for entry in ("protocols", "templates"):
            if not (snapshot_dir / entry).is_dir():
                msg = f"snapshot is incomplete or corrupt: missing {entry}/"
                raise SnapshotIntegrityError(msg, name=name, component=entry)
        for entry in (STATE_FILE_NAME, CONFIG_FILE_NAME, METADATA_FILE_NAME):
            if not (snapshot_dir / entry).is_file():
                msg = f"snapshot is incomplete or corrupt: missing {entry}"
                raise SnapshotIntegrityError(msg, name=name, component=entry)

        metadata = self._read_metadata(name, snapshot_dir)

        try:
            archived_config = Config.from_file(snapshot_dir / CONFIG_FILE_NAME)
        except ConfigError as e:
            msg = f"cannot load snapshot config for {name}: {e}"
            raise SnapshotIntegrityError(
                msg, name=name, component=CONFIG_FILE_NAME
            ) from e
        protocol_name = archived_config.protocol.strip()
        if not protocol_name:
            msg = "snapshot is incomplete or corrupt: config missing protocol"
            raise SnapshotIntegrityError(msg, name=name, component=CONFIG_FILE_NAME)

        protocols_dir = snapshot_dir / "protocols"
        protocol_file = protocols_dir / f"{protocol_name}{PROTOCOL_EXTENSION}"
        if not protocol_file.is_file():
            msg = f"snapshot is incomplete or corrupt: missing protocol file {protocol_file.name}"
            raise SnapshotIntegrityError(msg, name=name, component="protocols")
        try:
            archived_protocol = ProtocolResolver(protocols_dir).load(
                ByName(protocol_name)
            )
        except ProtocolError as e:
            msg = f"cannot load snapshot protocol for {name}: {e}"
            raise SnapshotIntegrityError(msg, name=name, component="protocols") from e
        if metadata.protocol and archived_protocol.name != metadata.protocol:
            msg = (
                f"snapshot metadata protocol mismatch: "
                f"metadata={metadata.protocol} protocol={archived_protocol.name}"
            )
            raise SnapshotIntegrityError(msg, name=name, component=METADATA_FILE_NAME)

        try:
            archived_state = load_state(snapshot_dir / STATE_FILE_NAME)
        except StateError as e:
            msg = f"cannot load snapshot state for {name}: {e}"
            raise SnapshotIntegrityError(
                msg, name=name, component=STATE_FILE_NAME
            ) from e
        artifacts_dir = snapshot_dir / "artifacts"
        for stage_id, output in archived_state.stage_outputs.items():
            for stored in output.files:
                try:
                    relative = normalize_relative_path(stored)
                except ArtifactPathError as e:
                    msg = f"snapshot is corrupt: invalid artifact path for stage {stage_id}: {stored}"
                    raise SnapshotIntegrityError(
                        msg, name=name, component="artifacts"
                    ) from e
                if not (artifacts_dir / relative).is_file():
                    msg = f"snapshot is corrupt: stage {stage_id} references missing artifact {relative}"
                    raise SnapshotIntegrityError(msg, name=name, component="artifacts")

        return metadata

    def _live_has_data(self) -> bool:
        return any(path.exists() for _, path in self.layout.live_components())

    def _stage(self, snapshot_dir: Path, staging: Path) -> None:
        for entry, allow_symlinks in _TREE_COMPONENTS:
            copy_tree(snapshot_dir / entry, staging / entry, allow_symlinks=allow_symlinks)
        for entry in (CONFIG_FILE_NAME, STATE_FILE_NAME):
            copy_file(snapshot_dir / entry, staging / entry)

    def _rollback(self, name: str, swapped: list[tuple[Path, Path | None]]) -> None:
        for live, backup in reversed(swapped):
            try:
                _remove(live)
                if backup is not None:
                    _move(backup, live)
            except OSError as e:
                self._logger.exception(
                    "restore_rollback_failed",
                    snapshot=name,
                    component=live.name,
                    backup=str(backup) if backup else None,
                    error=str(e),
                )

    def restore(self, name: str, *, force: bool = False) -> SnapshotMetadata:
        """Replace the live workspace with a snapshot.

        The snapshot is verified and fully staged into the workspace's
        restore staging directory before any live component is touched. Each
        component is then swapped in turn; on failure all swapped components
        are rolled back and `RestoreError` is raised. The staging directory
        is always removed.

        Args:
            name: Snapshot to restore.
            force: Overwrite existing workspace data.

        Returns:
            The restored snapshot's metadata.

        Raises:
            SnapshotNotFoundError: If the snapshot does not exist.
            SnapshotError: If the workspace has data and `force` is false.
            SnapshotIntegrityError: If the snapshot is incomplete.
            RestoreError: If a swap failed and the workspace was rolled back.
        """
        snapshot_dir = self._existing_snapshot_dir(name)
        if self._live_has_data() and not force:
            msg = "workspace already has data; use force to overwrite existing workspace data"
            raise SnapshotError(msg)

        metadata = self.verify(name)

        staging = self.layout.restore_staging_dir
        if staging.exists():
            _remove(staging)
        staging.mkdir(parents=True)
        try:
            self._stage(snapshot_dir, staging)
            self._swap(name, staging)
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        self._logger.info(
            "snapshot_restored",
            snapshot=name,
            root=str(self.root_dir),
            protocol=metadata.protocol,
        )
        return metadata

    def _swap(self, name: str, staging: Path) -> None:
        swapped: list[tuple[Path, Path | None]] = []
        for entry, live in self.layout.live_components():
            try:
                backup: Path | None = None
                if live.exists() or live.is_symlink():
                    backup = live.with_name(live.name + BACKUP_SUFFIX)
                    if backup.exists():
                        _remove(backup)
                    _move(live, backup)
                swapped.append((live, backup))
                _move(staging / entry, live)
            except OSError as e:
                self._rollback(name, swapped)
                msg = f"failed to restore {entry} from snapshot {name}: {e}"
                raise RestoreError(msg, name=name, component=entry, cause=e) from e

        for live, backup in swapped:
            if backup is None:
                continue
            try:
                _remove(backup)
            except OSError as e:
                self._logger.warning(
                    "restore_backup_cleanup_failed",
                    snapshot=name,
                    backup=str(backup),
                    error=str(e),
                )

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    def compare(self, left: str, right: str) -> SnapshotDiff:
        """Compare the artifact trees of two snapshots by SHA-256.

        Raises:
            InvalidSnapshotNameError: If either name is invalid.
            SnapshotNotFoundError: If either snapshot does not exist.
        """
        left_hashes = collect_file_hashes(self._existing_snapshot_dir(left) / "artifacts")
        right_hashes = collect_file_hashes(
            self._existing_snapshot_dir(right) / "artifacts"
        )
        return SnapshotDiff.from_hashes(left_hashes, right_hashes)

    def get_metadata(self, name: str) -> SnapshotMetadata:
        """Read a snapshot's metadata.

        Raises:
            SnapshotNotFoundError: If the snapshot does not exist.
            SnapshotIntegrityError: If the metadata is missing or malformed.
        """
        return self._read_metadata(name, self._existing_snapshot_dir(name))

    def delete(self, name: str) -> None:
        """Remove a snapshot directory.

        Raises:
            SnapshotNotFoundError: If the snapshot does not exist.
        """
        shutil.rmtree(self._existing_snapshot_dir(name))
        self._logger.info("snapshot_deleted", snapshot=name, root=str(self.root_dir))

    def list(self) -> list[str]:
        """Names of finished snapshots, sorted. A missing root yields `[]`."""
        if not self.root_dir.is_dir():
            return []
        return sorted(
            entry.name
            for entry in self.root_dir.iterdir()
            if entry.is_dir() and not entry.name.endswith(TEMP_SUFFIX)
        )
