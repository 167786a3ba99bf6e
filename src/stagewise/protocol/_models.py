"""Protocol document models.

A protocol is an ordered stage graph plus the approvals and prompt lint rules
that govern one workflow. Models are frozen; the resolver builds new
instances when merging imports rather than mutating parsed ones.
"""

from enum import StrEnum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, field_validator


class StageType(StrEnum):
    """Well-known stage types. Protocols may declare others."""

    SPEC = "spec"
    DECOMPOSE = "decompose"
    TASK_PROMPT = "task_prompt"
    REVIEW = "review"


REVIEW_INTENT = "review"


class LintRules(BaseModel):
    """Prompt lint rules handed to the prompt checker.

    Attributes:
        required_sections: Section headers a compiled prompt must contain.
        forbidden_phrases: Phrases a compiled prompt must not contain.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    required_sections: tuple[str, ...] = ()
    forbidden_phrases: tuple[str, ...] = ()

    def merge(self, other: "LintRules | None") -> "LintRules":
        """Append `other`'s rules, skipping entries already present."""
        if other is None:
            return self
        return LintRules(
            required_sections=_append_unique(
                self.required_sections, other.required_sections
            ),
            forbidden_phrases=_append_unique(
                self.forbidden_phrases, other.forbidden_phrases
            ),
        )


def _append_unique(base: tuple[str, ...], extra: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(dict.fromkeys((*base, *extra)))


class PromptOptions(BaseModel):
    """Per-stage prompt tuning exposed to templates."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    granularity: str = ""
    max_tasks: int = 0
    prefer_parallel: bool = False
    risk_bias: str = ""
    rules: tuple[str, ...] = ()
    lint: LintRules | None = None


class OutputContract(BaseModel):
    """Shape a stage's output document must have.

    Attributes:
        format: Free-form format label (for example "markdown").
        sections: Section headers that must appear as `# X` or `## X`.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    format: str = ""
    sections: tuple[str, ...] = ()


class ApprovalDeclaration(BaseModel):
    """A requirement that `role` attests to `stage` once it completes."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    stage: str
    role: str

    @property
    def key(self) -> tuple[str, str]:
        return (self.stage, self.role)


class Stage(BaseModel):
    """One step of a workflow.

    Attributes:
        id: Unique identifier within the resolved protocol.
        name: Display name. Defaults to the id.
        intent: What the stage is for; "review" stages read every artifact.
        type: Stage type, see `StageType` for the well-known values.
        template: Template reference relative to the templates directory.
        inputs: Logical artifact paths the stage reads.
        outputs: Output file names or glob patterns the stage produces.
        depends_on: Stage ids that must complete first.
        prompt: Prompt tuning options.
        output: Output contract for structural checks.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str = ""
    intent: str = ""
    type: str = StageType.SPEC.value
    template: str = ""
    inputs: tuple[str, ...] = ()
    outputs: tuple[str, ...] = ()
    depends_on: tuple[str, ...] = ()
    prompt: PromptOptions | None = None
    output: OutputContract | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @property
    def is_review(self) -> bool:
        return self.intent == REVIEW_INTENT


class Protocol(BaseModel):
    """A resolved or as-parsed protocol document.

    Attributes:
        name: Protocol name.
        version: Protocol version, copied into state as the spec version.
        uses: Import list as written in the document.
        stages: Ordered stages.
        approvals: Declared approval requirements.
        lint: Prompt lint rules, if any.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    name: str = ""
    version: str = ""
    uses: tuple[str, ...] = ()
    stages: tuple[Stage, ...] = ()
    approvals: tuple[ApprovalDeclaration, ...] = ()
    lint: LintRules | None = None

    @field_validator("name", "version", mode="before")
    @classmethod
    def _coerce_scalar(cls, value: Any) -> Any:  # noqa: ANN401
        # YAML reads `version: 1.0` as a float.
        if isinstance(value, int | float) and not isinstance(value, bool):
            return str(value)
        return value

    def stage_ids(self) -> list[str]:
        return [stage.id for stage in self.stages]

    def stage_by_id(self, stage_id: str) -> Stage | None:
        for stage in self.stages:
            if stage.id == stage_id:
                return stage
        return None

    def has_approval(self, stage_id: str, role: str) -> bool:
        """Check whether `(stage_id, role)` is a declared approval."""
        return any(a.key == (stage_id, role) for a in self.approvals)

    def approvals_for(self, stage_id: str) -> list[ApprovalDeclaration]:
        return [a for a in self.approvals if a.stage == stage_id]
