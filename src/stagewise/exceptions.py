"""Stagewise exceptions."""

from pathlib import Path
from typing import Any


class StagewiseError(Exception):
    """Base exception for stagewise errors."""


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigError(StagewiseError):
    """Base exception for configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when configuration cannot be loaded or parsed."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | None = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        """Initialize with error message and optional location context."""
        super().__init__(message)
        self.path: Path | None = path
        self.line: int | None = line
        self.column: int | None = column


class ConfigValidationError(ConfigError):
    """Raised when configuration fails validation."""

    def __init__(
        self,
        message: str,
        *,
        key: str,
        value: Any,  # pyright: ignore[reportAny,reportExplicitAny]
        expected: str,
        source: str | None = None,
    ) -> None:
        """Initialize with error message and validation context."""
        super().__init__(message)
        self.key: str = key
        self.value: Any = value  # pyright: ignore[reportExplicitAny]
        self.expected: str = expected
        self.source: str | None = source


# =============================================================================
# Protocol Exceptions
# =============================================================================


class ProtocolError(StagewiseError):
    """Base exception for protocol definition errors."""


class ProtocolNotFoundError(ProtocolError):
    """Raised when a protocol document or one of its imports cannot be found.

    Attributes:
        path: The path that was looked up.
        imported_by: Path of the protocol that declared the import, if any.
    """

    def __init__(
        self, message: str, *, path: Path, imported_by: Path | None = None
    ) -> None:
        """Initialize with error message and lookup context.

        Args:
            message: Human-readable error message.
            path: The path that was looked up.
            imported_by: Path of the protocol that declared the import.
        """
        super().__init__(message)
        self.path: Path = path
        self.imported_by: Path | None = imported_by


class ProtocolParseError(ProtocolError):
    """Raised when a protocol document is malformed.

    Attributes:
        path: Path to the document that failed to parse.
        line: Line number of the parse error, when known.
        cause: The underlying exception.
    """

    def __init__(
        self,
        message: str,
        *,
        path: Path,
        line: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and parse context.

        Args:
            message: Human-readable error message.
            path: Path to the document that failed to parse.
            line: Line number of the parse error.
            cause: The underlying exception.
        """
        super().__init__(message)
        self.path: Path = path
        self.line: int | None = line
        self.cause: Exception | None = cause


class CircularImportError(ProtocolError):
    """Raised when a protocol imports itself along a single resolution path.

    Attributes:
        chain: The active import chain, ending with the repeated source.
    """

    def __init__(self, message: str, *, chain: tuple[Path, ...]) -> None:
        """Initialize with error message and the offending import chain."""
        super().__init__(message)
        self.chain: tuple[Path, ...] = chain


class ProtocolValidationError(ProtocolError, ValueError):
    """Raised when a resolved protocol violates a graph invariant.

    Attributes:
        protocol: Name of the protocol being validated.
        stage_id: The stage identifier at fault, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        protocol: str | None = None,
        stage_id: str | None = None,
    ) -> None:
        """Initialize with error message and validation context."""
        super().__init__(message)
        self.protocol: str | None = protocol
        self.stage_id: str | None = stage_id


# =============================================================================
# State Exceptions
# =============================================================================


class StateError(StagewiseError):
    """Base exception for workflow state errors."""


class StateIOError(StateError):
    """Raised when the state document cannot be read or written.

    Attributes:
        path: Path to the state document.
        operation: The operation that failed ("read" or "write").
        cause: The underlying exception.
    """

    def __init__(
        self,
        message: str,
        *,
        path: Path,
        operation: str,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and I/O context."""
        super().__init__(message)
        self.path: Path = path
        self.operation: str = operation
        self.cause: Exception | None = cause


class StateParseError(StateError):
    """Raised when the state document is not valid JSON or has a bad shape."""

    def __init__(
        self, message: str, *, path: Path, cause: Exception | None = None
    ) -> None:
        """Initialize with error message and parse context."""
        super().__init__(message)
        self.path: Path = path
        self.cause: Exception | None = cause


class StageNotFoundError(StateError, KeyError):
    """Raised when a stage identifier is not part of the active protocol."""

    def __init__(self, message: str, *, stage_id: str) -> None:
        """Initialize with error message and stage context."""
        super().__init__(message)
        self.stage_id: str = stage_id

    def __str__(self) -> str:
        """Return the message without KeyError quoting."""
        return str(self.args[0])


class MissingDependencyError(StateError):
    """Raised when a stage is requested before its dependencies complete.

    Attributes:
        stage_id: The stage that was requested.
        dependency: The first dependency found incomplete.
    """

    def __init__(self, message: str, *, stage_id: str, dependency: str) -> None:
        """Initialize with error message and dependency context."""
        super().__init__(message)
        self.stage_id: str = stage_id
        self.dependency: str = dependency


class ApprovalNotDeclaredError(StateError, ValueError):
    """Raised when recording an approval the protocol does not declare."""

    def __init__(self, message: str, *, stage_id: str, role: str) -> None:
        """Initialize with error message and approval context."""
        super().__init__(message)
        self.stage_id: str = stage_id
        self.role: str = role


# =============================================================================
# Workspace Exceptions
# =============================================================================


class WorkspaceError(StagewiseError):
    """Base exception for workspace layout and path errors."""


class WorkspaceNotFoundError(WorkspaceError):
    """Raised when no project root can be located."""

    def __init__(self, message: str, *, start: Path) -> None:
        """Initialize with error message and the search start directory."""
        super().__init__(message)
        self.start: Path = start


class ArtifactPathError(WorkspaceError, ValueError):
    """Raised when an artifact path is unsafe or escapes the workspace.

    Attributes:
        path: The offending path as given.
    """

    def __init__(self, message: str, *, path: str) -> None:
        """Initialize with error message and the offending path."""
        super().__init__(message)
        self.path: str = path


class ArtifactNotFoundError(WorkspaceError):
    """Raised when a logical input cannot be found in any artifact root.

    Attributes:
        path: The logical path that was looked up.
        searched: Candidate locations that were tried, in order.
    """

    def __init__(
        self, message: str, *, path: str, searched: tuple[Path, ...] = ()
    ) -> None:
        """Initialize with error message and search context."""
        super().__init__(message)
        self.path: str = path
        self.searched: tuple[Path, ...] = searched


# =============================================================================
# Snapshot Exceptions
# =============================================================================


class SnapshotError(StagewiseError):
    """Base exception for snapshot (archive and track) operations."""


class InvalidSnapshotNameError(SnapshotError, ValueError):
    """Raised when a snapshot name fails validation."""

    def __init__(self, message: str, *, name: str) -> None:
        """Initialize with error message and the rejected name."""
        super().__init__(message)
        self.name: str = name


class SnapshotExistsError(SnapshotError):
    """Raised when creating a snapshot whose name is already taken."""

    def __init__(self, message: str, *, name: str) -> None:
        """Initialize with error message and the snapshot name."""
        super().__init__(message)
        self.name: str = name


class SnapshotNotFoundError(SnapshotError):
    """Raised when a snapshot does not exist."""

    def __init__(self, message: str, *, name: str) -> None:
        """Initialize with error message and the snapshot name."""
        super().__init__(message)
        self.name: str = name


class SnapshotIntegrityError(SnapshotError):
    """Raised when a snapshot or its source workspace is incomplete.

    Attributes:
        name: The snapshot name.
        component: The missing or inconsistent component, if known.
    """

    def __init__(
        self, message: str, *, name: str, component: str | None = None
    ) -> None:
        """Initialize with error message and integrity context."""
        super().__init__(message)
        self.name: str = name
        self.component: str | None = component


class RestoreError(SnapshotError):
    """Raised when the live swap of a restore fails and was rolled back.

    Attributes:
        name: The snapshot being restored.
        component: The workspace component whose swap failed.
        cause: The underlying exception.
    """

    def __init__(
        self,
        message: str,
        *,
        name: str,
        component: str,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and swap context."""
        super().__init__(message)
        self.name: str = name
        self.component: str = component
        self.cause: Exception | None = cause


# =============================================================================
# Engine Exceptions
# =============================================================================


class TemplateError(StagewiseError):
    """Raised when a stage template cannot be found or rendered."""

    def __init__(self, message: str, *, template: str) -> None:
        """Initialize with error message and template reference."""
        super().__init__(message)
        self.template: str = template


class TaskParseError(StagewiseError, ValueError):
    """Raised when a decomposition artifact has no parseable task list."""


class CheckFailedError(StagewiseError):
    """Raised by a workspace check run with fail-on-warnings enabled.

    Attributes:
        total: Number of warnings found.
        report: The categorized warnings.
    """

    def __init__(
        self,
        message: str,
        *,
        total: int,
        report: Any = None,  # pyright: ignore[reportAny,reportExplicitAny]
    ) -> None:
        """Initialize with error message, warning count and the report."""
        super().__init__(message)
        self.total: int = total
        self.report: Any = report  # pyright: ignore[reportExplicitAny]


class MissingOutputError(StateError, ValueError):
    """Raised when completing a stage without all of its declared outputs.

    Attributes:
        stage_id: The stage being completed.
        missing: Declared output patterns with no matching file.
    """

    def __init__(self, message: str, *, stage_id: str, missing: tuple[str, ...]) -> None:
        """Initialize with error message and the unmatched outputs."""
        super().__init__(message)
        self.stage_id: str = stage_id
        self.missing: tuple[str, ...] = missing
