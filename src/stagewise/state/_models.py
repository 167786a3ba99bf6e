# pyright: reportAny=false, reportExplicitAny=false
"""Workflow state models.

`WorkflowState` is the persistent record of progress through a protocol. It
is mutated only through its methods, which keep `completed_stages` and
`stage_outputs` in step: a stage id appears in one exactly when it appears in
the other.
"""

from collections.abc import Sequence
from datetime import datetime
from enum import StrEnum
from typing import Any, ClassVar

import pendulum
from pydantic import BaseModel, ConfigDict, Field, model_validator

from stagewise.exceptions import MissingDependencyError
from stagewise.protocol import Stage


def utc_now() -> datetime:
    return pendulum.now("UTC")


class _StateModel(BaseModel):
    """Base for state documents: unknown keys ignored, explicit nulls dropped."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # Older or hand-edited documents may carry `null` for collections.
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


# =============================================================================
# Stage records
# =============================================================================


class StageOutput(_StateModel):
    """Files produced by a completed stage.

    Attributes:
        completed_at: When the stage was (last) completed.
        files: Artifact paths relative to the artifact root.
        prompt_hash: SHA-256 of the compiled prompt that produced the files.
    """

    completed_at: datetime = Field(default_factory=utc_now)
    files: list[str] = Field(default_factory=list)
    prompt_hash: str = ""


class ApprovalRecord(_StateModel):
    """One role's attestation for a stage."""

    role: str
    approved_by: str = ""
    approved_at: datetime = Field(default_factory=utc_now)
    notes: str = ""


# =============================================================================
# Epistemics
# =============================================================================


class AssumptionStatus(StrEnum):
    OPEN = "open"
    VALIDATED = "validated"
    INVALIDATED = "invalidated"


class Assumption(_StateModel):
    id: str
    text: str
    status: str = AssumptionStatus.OPEN.value
    owner: str = ""
    created_at: datetime = Field(default_factory=utc_now)


class OpenQuestion(_StateModel):
    id: str
    text: str
    tags: list[str] = Field(default_factory=list)
    status: str = "open"
    answer: str = ""
    context: str = ""


class Decision(_StateModel):
    id: str
    text: str
    rationale: str = ""
    alternatives: list[str] = Field(default_factory=list)
    status: str = "proposed"
    created_at: datetime = Field(default_factory=utc_now)


class Risk(_StateModel):
    id: str
    text: str
    severity: str = "medium"
    mitigation: str = ""
    status: str = "open"


class Position(_StateModel):
    owner: str
    claim: str


class Dispute(_StateModel):
    id: str
    topic: str
    positions: list[Position] = Field(default_factory=list)
    status: str = "open"


class Confidence(_StateModel):
    overall: str = ""
    by_stage: dict[str, str] = Field(default_factory=dict)


class Epistemics(_StateModel):
    """Ledgers of what the project assumes, asks, decides, and risks.

    Identifiers are a letter prefix plus the 1-based position in the ledger:
    `A` assumptions, `Q` open questions, `D` decisions, `R` risks and `X`
    disputes. Lookup helpers return whether the target id was found.
    """

    assumptions: list[Assumption] = Field(default_factory=list)
    open_questions: list[OpenQuestion] = Field(default_factory=list)
    decisions: list[Decision] = Field(default_factory=list)
    risks: list[Risk] = Field(default_factory=list)
    disputes: list[Dispute] = Field(default_factory=list)
    confidence: Confidence = Field(default_factory=Confidence)

    def add_assumption(self, text: str, owner: str = "") -> str:
        new_id = f"A{len(self.assumptions) + 1}"
        self.assumptions.append(Assumption(id=new_id, text=text, owner=owner))
        return new_id

    def add_open_question(
        self, text: str, tags: Sequence[str] = (), context: str = ""
    ) -> str:
        new_id = f"Q{len(self.open_questions) + 1}"
        self.open_questions.append(
            OpenQuestion(id=new_id, text=text, tags=list(tags), context=context)
        )
        return new_id

    def add_decision(
        self, text: str, rationale: str = "", alternatives: Sequence[str] = ()
    ) -> str:
        new_id = f"D{len(self.decisions) + 1}"
        self.decisions.append(
            Decision(
                id=new_id,
                text=text,
                rationale=rationale,
                alternatives=list(alternatives),
            )
        )
        return new_id

    def add_risk(self, text: str, severity: str = "medium") -> str:
        new_id = f"R{len(self.risks) + 1}"
        self.risks.append(Risk(id=new_id, text=text, severity=severity))
        return new_id

    def add_dispute(self, topic: str) -> str:
        new_id = f"X{len(self.disputes) + 1}"
        self.disputes.append(Dispute(id=new_id, topic=topic))
        return new_id

    def close_assumption(self, assumption_id: str, status: str) -> bool:
        for assumption in self.assumptions:
            if assumption.id == assumption_id:
                assumption.status = status
                return True
        return False

    def resolve_open_question(self, question_id: str, answer: str) -> bool:
        for question in self.open_questions:
            if question.id == question_id:
                question.status = "resolved"
                question.answer = answer
                return True
        return False

    def update_decision(self, decision_id: str, status: str) -> bool:
        for decision in self.decisions:
            if decision.id == decision_id:
                decision.status = status
                return True
        return False

    def mitigate_risk(self, risk_id: str, mitigation: str, status: str) -> bool:
        for risk in self.risks:
            if risk.id == risk_id:
                risk.mitigation = mitigation
                risk.status = status
                return True
        return False

    def resolve_dispute(self, dispute_id: str) -> bool:
        for dispute in self.disputes:
            if dispute.id == dispute_id:
                dispute.status = "resolved"
                return True
        return False


# =============================================================================
# Workflow state
# =============================================================================


class WorkflowState(_StateModel):
    """Persistent record of workflow progress.

    Attributes:
        protocol: Name of the protocol the workspace was started with.
        current_stage: Most recently completed stage.
        completed_stages: Stage ids in completion order, without repeats.
        started_at: When the state was first created.
        spec_version: Protocol version at initialization.
        stage_outputs: Output record per completed stage.
        approvals: Approval records per stage, at most one per role.
        epistemics: Assumption, question, decision, risk and dispute ledgers.
    """

    protocol: str = ""
    current_stage: str = ""
    completed_stages: list[str] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utc_now)
    spec_version: str = ""
    stage_outputs: dict[str, StageOutput] = Field(default_factory=dict)
    approvals: dict[str, list[ApprovalRecord]] = Field(default_factory=dict)
    epistemics: Epistemics = Field(default_factory=Epistemics)

    def is_completed(self, stage_id: str) -> bool:
        return stage_id in self.completed_stages

    def record_completion(
        self, stage_id: str, files: Sequence[str], prompt_hash: str = ""
    ) -> None:
        """Mark a stage complete and (over)write its output record.

        Calling this again for the same stage replaces the output record but
        never duplicates the id in `completed_stages`.
        """
        self.stage_outputs[stage_id] = StageOutput(
            files=list(files), prompt_hash=prompt_hash
        )
        if stage_id not in self.completed_stages:
            self.completed_stages.append(stage_id)

    def record_approval(
        self, stage_id: str, role: str, approved_by: str, notes: str = ""
    ) -> bool:
        """Record an approval, replacing any existing record for the role.

        The caller is responsible for checking the approval is declared.

        Returns:
            True if an existing record for the role was updated.
        """
        record = ApprovalRecord(role=role, approved_by=approved_by, notes=notes)
        records = self.approvals.setdefault(stage_id, [])
        for index, existing in enumerate(records):
            if existing.role == role:
                records[index] = record
                return True
        records.append(record)
        return False

    def has_approval(self, stage_id: str, role: str) -> bool:
        return any(record.role == role for record in self.approvals.get(stage_id, ()))

    def require_dependencies(self, stage: Stage) -> None:
        """Ensure every dependency of `stage` has completed.

        Raises:
            MissingDependencyError: Naming the first incomplete dependency.
        """
        for dependency in stage.depends_on:
            if not self.is_completed(dependency):
                msg = f"missing dependency: {dependency} (required by {stage.id})"
                raise MissingDependencyError(
                    msg, stage_id=stage.id, dependency=dependency
                )
