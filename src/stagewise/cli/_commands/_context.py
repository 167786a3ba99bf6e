# pyright: reportUnusedCallResult=false
# ruff: noqa: TC003  # Path needed at runtime for dataclass field
"""CLI context for global state management.

The CLIContext is set once per invocation by the root app and read by
commands through a context variable, so global options do not have to be
threaded through every command signature.
"""

import contextvars
from contextlib import ExitStack
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from stagewise.protocol import ProtocolSource


class OutputFormat(StrEnum):
    """Supported output formats for commands."""

    TEXT = "text"
    JSON = "json"
    TABLE = "table"


_current_cli_context: contextvars.ContextVar["CLIContext | None"] = (
    contextvars.ContextVar("cli_context", default=None)
)


@dataclass(frozen=True, slots=True)
class CLIContext:
    """Global CLI options.

    Attributes:
        protocol: Protocol override from `--protocol`, if given.
        project_root: Project root from `--project-root`, if given.
        verbose: Log at debug level.
        resources: Handles opened for this invocation, such as the command
            log. Closed by the root app when the command returns.
    """

    protocol: ProtocolSource | None = None
    project_root: Path | None = None
    verbose: bool = False
    resources: ExitStack = field(default_factory=ExitStack, compare=False, repr=False)

    @classmethod
    def get_current(cls) -> "CLIContext":
        """Get the active CLIContext, or a default one if none is set."""
        ctx = _current_cli_context.get()
        if ctx is not None:
            return ctx
        return cls()

    @classmethod
    def set_current(cls, ctx: "CLIContext") -> None:
        _current_cli_context.set(ctx)

    @classmethod
    def reset(cls) -> None:
        """Reset to the default context. Mostly useful between tests."""
        _current_cli_context.set(None)
