"""Categorized advisory warnings from a workspace health check."""

from dataclasses import dataclass, field
from enum import StrEnum


class CheckCategory(StrEnum):
    PROTOCOL = "Protocol"
    OUTPUTS = "Outputs"
    STRUCTURE = "Structure"
    ARTIFACTS = "Artifacts"
    APPROVALS = "Approvals"
    TASKS = "Tasks"
    PROMPTS = "Prompts"


@dataclass(slots=True)
class CheckReport:
    """Warnings grouped by category, in the order they were found."""

    warnings: dict[str, list[str]] = field(default_factory=dict)

    def add(self, category: CheckCategory | str, message: str) -> None:
        self.warnings.setdefault(str(category), []).append(message)

    @property
    def total(self) -> int:
        return sum(len(messages) for messages in self.warnings.values())

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    def categories(self) -> list[str]:
        """Categories holding at least one warning, sorted by name."""
        return sorted(name for name, messages in self.warnings.items() if messages)

    def get(self, category: CheckCategory | str) -> list[str]:
        return list(self.warnings.get(str(category), ()))
