# pyright: reportAny=false, reportExplicitAny=false
"""Protocol loading with import resolution.

A protocol may import others through its ordered `uses` list. Imports are
resolved depth-first and merged into an accumulator in list order, then the
protocol's own stages are merged on top. A stage, or an approval keyed by
`(stage, role)`, that is already present is replaced in place: its position
stays, its content changes. Lint rules append.

Cycles are detected against the chain of documents on the active resolution
path only. A shared base imported from two sibling branches is entered twice
and its second merge overrides the first like any other override.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from structlog.typing import FilteringBoundLogger

from stagewise.exceptions import (
    CircularImportError,
    ProtocolNotFoundError,
    ProtocolParseError,
    ProtocolValidationError,
)
from stagewise.utils import get_null_logger
from stagewise.workspace import PROTOCOL_EXTENSION

from ._models import ApprovalDeclaration, LintRules, Protocol, Stage
from ._source import ByName, ByPath, ProtocolSource

MAX_IMPORT_DEPTH = 32


def _drop_nulls(value: Any) -> Any:
    # `outputs:` with no value parses as None; treat it as absent.
    if isinstance(value, dict):
        return {k: _drop_nulls(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_drop_nulls(item) for item in value]
    return value


def parse_protocol_document(content: str, path: Path) -> Protocol:
    """Parse one protocol document without resolving its imports.

    Raises:
        ProtocolParseError: If the YAML is malformed, the document is not a
            mapping, or a field has the wrong shape.
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        line = mark.line + 1 if mark is not None else None
        msg = f"Failed to parse protocol {path.name}: {e}"
        raise ProtocolParseError(msg, path=path, line=line, cause=e) from e

    if not isinstance(data, dict):
        msg = f"Protocol {path.name} must be a mapping, got {type(data).__name__}"
        raise ProtocolParseError(msg, path=path)

    try:
        return Protocol.model_validate(_drop_nulls(data))
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        msg = f"Invalid protocol {path.name} at '{location}': {first['msg']}"
        raise ProtocolParseError(msg, path=path, cause=e) from e


def _check_local_duplicates(document: Protocol, path: Path) -> None:
    seen: set[str] = set()
    for stage in document.stages:
        if stage.id in seen:
            msg = f"duplicate stage id '{stage.id}' in {path.name}"
            raise ProtocolValidationError(
                msg, protocol=document.name or path.stem, stage_id=stage.id
            )
        seen.add(stage.id)


def validate_protocol(protocol: Protocol) -> None:
    """Check the graph invariants of a fully merged protocol.

    Raises:
        ProtocolValidationError: On an empty or duplicate stage id, a
            dependency on an unknown stage, or an approval for an unknown
            stage.
    """
    seen: set[str] = set()
    for stage in protocol.stages:
        if not stage.id.strip():
            msg = f"protocol {protocol.name} has a stage with an empty id"
            raise ProtocolValidationError(msg, protocol=protocol.name)
        if stage.id in seen:
            msg = f"duplicate stage id '{stage.id}' in protocol {protocol.name}"
            raise ProtocolValidationError(
                msg, protocol=protocol.name, stage_id=stage.id
            )
        seen.add(stage.id)

    for stage in protocol.stages:
        for dependency in stage.depends_on:
            if dependency not in seen:
                msg = f"stage '{stage.id}' depends on unknown stage '{dependency}'"
                raise ProtocolValidationError(
                    msg, protocol=protocol.name, stage_id=stage.id
                )

    for approval in protocol.approvals:
        if approval.stage not in seen:
            msg = (
                f"approval for role '{approval.role}' "
                f"references unknown stage '{approval.stage}'"
            )
            raise ProtocolValidationError(
                msg, protocol=protocol.name, stage_id=approval.stage
            )


class _MergeAccumulator:
    """Ordered stages and approvals with replace-in-place override."""

    def __init__(self, logger: FilteringBoundLogger, protocol_name: str) -> None:
        self._logger = logger
        self._protocol_name = protocol_name
        self.stages: list[Stage] = []
        self._stage_index: dict[str, int] = {}
        self.approvals: list[ApprovalDeclaration] = []
        self._approval_index: dict[tuple[str, str], int] = {}
        self.lint: LintRules | None = None

    def add_stage(self, stage: Stage, origin: str) -> None:
        position = self._stage_index.get(stage.id)
        if position is None:
            self._stage_index[stage.id] = len(self.stages)
            self.stages.append(stage)
            return
        self._logger.debug(
            "protocol_stage_overridden",
            protocol=self._protocol_name,
            stage_id=stage.id,
            source=origin,
        )
        self.stages[position] = stage

    def add_approval(self, approval: ApprovalDeclaration) -> None:
        position = self._approval_index.get(approval.key)
        if position is None:
            self._approval_index[approval.key] = len(self.approvals)
            self.approvals.append(approval)
        else:
            self.approvals[position] = approval

    def add_lint(self, lint: LintRules | None) -> None:
        if lint is None:
            return
        self.lint = lint if self.lint is None else self.lint.merge(lint)

    def merge(self, protocol: Protocol, origin: str) -> None:
        for stage in protocol.stages:
            self.add_stage(stage, origin)
        for approval in protocol.approvals:
            self.add_approval(approval)
        self.add_lint(protocol.lint)


class ProtocolResolver:
    """Load protocols from a protocols directory, resolving imports.

    Attributes:
        protocols_dir: Directory holding named protocols.
        extension: File extension of protocol documents.
    """

    def __init__(
        self,
        protocols_dir: Path,
        *,
        extension: str = PROTOCOL_EXTENSION,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        self.protocols_dir: Path = protocols_dir
        self.extension: str = extension
        self._logger: FilteringBoundLogger = logger or get_null_logger()

    def source_path(self, source: ProtocolSource) -> Path:
        """Map a protocol source to the document path it names."""
        if isinstance(source, ByName):
            return self.protocols_dir / f"{source.name}{self.extension}"
        if isinstance(source, ByPath):
            return source.path
        msg = f"Unsupported protocol source: {source!r}"
        raise TypeError(msg)

    def load(self, source: ProtocolSource) -> Protocol:
        """Load, resolve and validate a protocol.

        Raises:
            ProtocolNotFoundError: If the document or an import is missing.
            ProtocolParseError: If a document is malformed.
            CircularImportError: If a document imports itself along one path.
            ProtocolValidationError: If the merged graph is invalid.
        """
        path = self.source_path(source)
        protocol = self._resolve(path.absolute(), [], None)
        validate_protocol(protocol)
        self._logger.debug(
            "protocol_loaded",
            protocol=protocol.name,
            path=str(path),
            stages=len(protocol.stages),
        )
        return protocol

    def _import_path(self, entry: str, importer: Path) -> Path:
        """Locate the document named by a `uses` entry.

        Entries that look like paths are relative to the importing file. Bare
        names are tried next to the importing file, then in the protocols
        directory.
        """
        reference = ProtocolSource.parse(entry, extension=self.extension)
        if isinstance(reference, ByPath):
            candidate = reference.path
            return candidate if candidate.is_absolute() else importer.parent / candidate

        sibling = importer.parent / f"{reference.name}{self.extension}"
        if sibling.is_file():
            return sibling
        return self.protocols_dir / f"{reference.name}{self.extension}"

    def _read(self, path: Path, imported_by: Path | None) -> Protocol:
        if not path.is_file():
            if imported_by is not None:
                msg = f"protocol import not found: {path} (imported by {imported_by.name})"
            else:
                msg = f"protocol not found: {path}"
            raise ProtocolNotFoundError(msg, path=path, imported_by=imported_by)
        return parse_protocol_document(path.read_text(encoding="utf-8"), path)

    def _resolve(
        self, path: Path, stack: list[Path], imported_by: Path | None
    ) -> Protocol:
        key = path.resolve()
        if key in stack:
            chain = (*stack[stack.index(key) :], key)
            rendered = " -> ".join(p.stem for p in chain)
            msg = f"circular protocol import detected: {rendered}"
            raise CircularImportError(msg, chain=chain)
        if len(stack) >= MAX_IMPORT_DEPTH:
            msg = f"protocol imports nested deeper than {MAX_IMPORT_DEPTH} at {path}"
            raise ProtocolValidationError(msg, protocol=path.stem)

        document = self._read(path, imported_by)
        name = document.name or key.stem
        _check_local_duplicates(document, path)

        accumulator = _MergeAccumulator(self._logger, name)
        stack.append(key)
        try:
            for entry in document.uses:
                imported = self._resolve(self._import_path(entry, key), stack, key)
                accumulator.merge(imported, imported.name)
        finally:
            _ = stack.pop()
        accumulator.merge(document, name)

        return Protocol(
            name=name,
            version=document.version,
            uses=document.uses,
            stages=tuple(accumulator.stages),
            approvals=tuple(accumulator.approvals),
            lint=accumulator.lint,
        )


def load_protocol(
    source: ProtocolSource,
    protocols_dir: Path,
    *,
    logger: FilteringBoundLogger | None = None,
) -> Protocol:
    """Load a protocol with a one-off resolver."""
    return ProtocolResolver(protocols_dir, logger=logger).load(source)
