# pyright: reportAny=false, reportExplicitAny=false
"""Task lists produced by decomposition stages.

A decomposition artifact carries a YAML document with a top-level `tasks`
list, either on its own or inside a fenced yaml block of a Markdown file.
"""

import re
from typing import Any, ClassVar

import rustworkx as rx
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from stagewise.exceptions import TaskParseError

_FENCED_YAML = re.compile(r"```ya?ml[ \t]*\r?\n(.*?)```", re.DOTALL)


class Task(BaseModel):
    """One unit of implementation work."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="ignore")

    id: str = ""
    title: str = ""
    goal: str = ""
    acceptance_criteria: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    files_touched: list[str] = Field(default_factory=list)
    test_plan: list[str] = Field(default_factory=list)

    @field_validator("id", "title", "goal", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, int | float) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator(
        "acceptance_criteria",
        "dependencies",
        "files_touched",
        "test_plan",
        mode="before",
    )
    @classmethod
    def _coerce_list(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        if isinstance(value, list):
            return [str(item) for item in value]
        return value


class TaskList(BaseModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(extra="ignore")

    tasks: list[Task] = Field(default_factory=list)

    def task_by_id(self, task_id: str) -> Task | None:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def validate_tasks(self) -> list[str]:
        """Return advisory warnings about the list.

        Reports empty required fields, duplicate ids, dependencies on unknown
        tasks, and one warning for every task that sits on a dependency cycle.
        """
        warnings: list[str] = []
        seen: set[str] = set()

        for index, task in enumerate(self.tasks, start=1):
            label = task.id or f"#{index}"
            if not task.id.strip():
                warnings.append(f"task {label} has an empty id")
            if not task.title.strip():
                warnings.append(f"task {label} has an empty title")
            if not task.goal.strip():
                warnings.append(f"task {label} has an empty goal")
            if task.id:
                if task.id in seen:
                    warnings.append(f"duplicate task id: {task.id}")
                seen.add(task.id)

        for task in self.tasks:
            for dependency in task.dependencies:
                if dependency not in seen:
                    warnings.append(
                        f"task {task.id} depends on unknown task {dependency}"
                    )

        graph, indices = self.dependency_graph()
        cyclic = _cyclic_nodes(graph)
        warnings.extend(
            f"task {task_id} is part of a dependency cycle"
            for task_id, idx in indices.items()
            if idx in cyclic
        )

        return warnings

    def dependency_graph(self) -> tuple["rx.PyDiGraph[str, None]", dict[str, int]]:
        """Build the graph of known dependencies.

        An edge A -> B means task A depends on task B. Only the first task with
        a given id is added, and dependencies on unknown ids are left out.

        Returns:
            The graph and a mapping from task id to node index, in task order.
        """
        graph: rx.PyDiGraph[str, None] = rx.PyDiGraph(check_cycle=False)
        indices: dict[str, int] = {}
        first: list[Task] = []
        for task in self.tasks:
            if task.id and task.id not in indices:
                indices[task.id] = graph.add_node(task.id)
                first.append(task)

        for task in first:
            for dependency in task.dependencies:
                if dependency in indices:
                    _ = graph.add_edge(indices[task.id], indices[dependency], None)
        return graph, indices


def _cyclic_nodes(graph: "rx.PyDiGraph[str, None]") -> set[int]:
    """Indices of the nodes that lie on at least one cycle."""
    cyclic: set[int] = set()
    for component in rx.strongly_connected_components(graph):
        if len(component) > 1:
            cyclic.update(component)
    cyclic.update(idx for idx in graph.node_indices() if graph.has_edge(idx, idx))
    return cyclic


def _extract_yaml(text: str) -> str:
    match = _FENCED_YAML.search(text)
    if match is not None:
        return match.group(1)
    return text


def parse_task_list(text: str) -> TaskList:
    """Parse a task list from a decomposition artifact.

    Raises:
        TaskParseError: If no YAML document with a `tasks` list is found.
    """
    try:
        data = yaml.safe_load(_extract_yaml(text))
    except yaml.YAMLError as e:
        msg = f"task list is not valid YAML: {e}"
        raise TaskParseError(msg) from e

    if not isinstance(data, dict) or not isinstance(data.get("tasks"), list):
        msg = "task list must be a mapping with a 'tasks' list"
        raise TaskParseError(msg)

    try:
        return TaskList.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        msg = f"invalid task list at '{location}': {first['msg']}"
        raise TaskParseError(msg) from e
