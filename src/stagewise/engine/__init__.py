"""Workflow engine: prompt compilation, completion, approvals and checks."""

from ._check import CheckCategory, CheckReport
from ._compile import (
    CompiledPrompt,
    CompileOptions,
    LintRuleChecker,
    PromptChecker,
    PromptContext,
    PromptInput,
)
from ._engine import CompletionReport, Engine
from ._init import init_workspace
from ._tasks import Task, TaskList, parse_task_list

__all__ = [
    "CheckCategory",
    "CheckReport",
    "CompileOptions",
    "CompiledPrompt",
    "CompletionReport",
    "Engine",
    "LintRuleChecker",
    "PromptChecker",
    "PromptContext",
    "PromptInput",
    "Task",
    "TaskList",
    "init_workspace",
    "parse_task_list",
]
