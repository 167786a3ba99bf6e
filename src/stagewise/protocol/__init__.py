"""Protocol definitions and import resolution."""

from ._models import (
    REVIEW_INTENT,
    ApprovalDeclaration,
    LintRules,
    OutputContract,
    PromptOptions,
    Protocol,
    Stage,
    StageType,
)
from ._resolver import (
    MAX_IMPORT_DEPTH,
    ProtocolResolver,
    load_protocol,
    parse_protocol_document,
    validate_protocol,
)
from ._source import ByName, ByPath, ProtocolSource

__all__ = [
    "MAX_IMPORT_DEPTH",
    "REVIEW_INTENT",
    "ApprovalDeclaration",
    "ByName",
    "ByPath",
    "LintRules",
    "OutputContract",
    "PromptOptions",
    "Protocol",
    "ProtocolResolver",
    "ProtocolSource",
    "Stage",
    "StageType",
    "load_protocol",
    "parse_protocol_document",
    "validate_protocol",
]
