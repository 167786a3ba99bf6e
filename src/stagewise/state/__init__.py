"""Workflow state: progress records and their durable storage."""

from ._models import (
    ApprovalRecord,
    Assumption,
    AssumptionStatus,
    Confidence,
    Decision,
    Dispute,
    Epistemics,
    OpenQuestion,
    Position,
    Risk,
    StageOutput,
    WorkflowState,
    utc_now,
)
from ._store import load_state, save_state

__all__ = [
    "ApprovalRecord",
    "Assumption",
    "AssumptionStatus",
    "Confidence",
    "Decision",
    "Dispute",
    "Epistemics",
    "OpenQuestion",
    "Position",
    "Risk",
    "StageOutput",
    "WorkflowState",
    "load_state",
    "save_state",
    "utc_now",
]
