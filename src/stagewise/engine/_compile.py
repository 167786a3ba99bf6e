"""Prompt compilation types and the rule-based prompt checker."""

import hashlib
from collections.abc import Sequence
from dataclasses import dataclass
from typing import ClassVar, Protocol

from pydantic import BaseModel, ConfigDict, Field

from stagewise.protocol import LintRules, OutputContract, PromptOptions


@dataclass(frozen=True, slots=True)
class CompileOptions:
    """Per-invocation overrides for a stage's prompt options.

    Empty strings, zero and False leave the protocol's value in place.
    """

    granularity: str = ""
    max_tasks: int = 0
    prefer_parallel: bool = False
    risk_bias: str = ""

    @property
    def is_empty(self) -> bool:
        return not (
            self.granularity or self.max_tasks > 0 or self.prefer_parallel or self.risk_bias
        )

    def apply(self, prompt: PromptOptions | None) -> PromptOptions | None:
        """Return `prompt` with the non-empty overrides applied."""
        if self.is_empty:
            return prompt
        update: dict[str, object] = {}
        if self.granularity:
            update["granularity"] = self.granularity
        if self.max_tasks > 0:
            update["max_tasks"] = self.max_tasks
        if self.prefer_parallel:
            update["prefer_parallel"] = True
        if self.risk_bias:
            update["risk_bias"] = self.risk_bias
        return (prompt or PromptOptions()).model_copy(update=update)


class PromptInput(BaseModel):
    """One artifact handed to a template: its logical name and content."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)

    name: str
    content: str


class PromptContext(BaseModel):
    """Everything a stage template can reference."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)

    stage_id: str
    stage_name: str
    project_name: str = ""
    inputs: list[PromptInput] = Field(default_factory=list)
    outputs: list[str] = Field(default_factory=list)
    intent: str = ""
    language: str = ""
    framework: str = ""
    custom_vars: dict[str, str] = Field(default_factory=dict)
    constraints: dict[str, str] = Field(default_factory=dict)
    stage_type: str = ""
    prompt: PromptOptions | None = None
    output_contract: OutputContract | None = None


@dataclass(frozen=True, slots=True)
class CompiledPrompt:
    """Rendered prompt text and its SHA-256 fingerprint."""

    stage_id: str
    text: str

    @property
    def prompt_hash(self) -> str:
        return hashlib.sha256(self.text.encode("utf-8")).hexdigest()


class PromptChecker(Protocol):
    """Inspects compiled prompt text and returns advisory findings."""

    def check(self, prompt: str, rules: LintRules) -> Sequence[str]: ...


class LintRuleChecker:
    """Apply declared lint rules: required section headers and forbidden phrases.

    A section counts as present when the prompt contains `# <section>` at any
    heading depth. Phrases match case-insensitively.
    """

    def check(self, prompt: str, rules: LintRules) -> Sequence[str]:
        findings: list[str] = []
        for section in rules.required_sections:
            if f"# {section}" not in prompt:
                findings.append(f"missing required section: {section}")
        lowered = prompt.lower()
        for phrase in rules.forbidden_phrases:
            if phrase and phrase.lower() in lowered:
                findings.append(f"contains ambiguous phrase: {phrase}")
        return findings
