import pytest

from stagewise.engine import Task, TaskList, parse_task_list
from stagewise.exceptions import TaskParseError


class TestParseTaskList:
    def test_fenced_block_inside_markdown(self) -> None:
        text = (
            "# Tasks\n\nIntro.\n\n```yaml\n"
            "tasks:\n  - id: T1\n    title: Storage\n    goal: Persist\n"
            "```\n\nTrailing notes.\n"
        )

        tasks = parse_task_list(text)

        assert [task.id for task in tasks.tasks] == ["T1"]
        assert tasks.tasks[0].title == "Storage"

    def test_bare_yaml_document(self) -> None:
        tasks = parse_task_list("tasks:\n  - id: T1\n    dependencies: T0\n")

        assert tasks.tasks[0].dependencies == ["T0"]

    def test_scalars_are_coerced(self) -> None:
        tasks = parse_task_list(
            "tasks:\n"
            "  - id: 1\n"
            "    title: 2.5\n"
            "    goal:\n"
            "    acceptance_criteria: works\n"
            "    dependencies: [0, 7]\n"
        )

        task = tasks.tasks[0]
        assert task.id == "1"
        assert task.title == "2.5"
        assert task.goal == ""
        assert task.acceptance_criteria == ["works"]
        assert task.dependencies == ["0", "7"]

    @pytest.mark.parametrize(
        "text",
        ["not yaml at all", "tasks: none\n", "- just\n- a list\n", ""],
    )
    def test_missing_tasks_list(self, text: str) -> None:
        with pytest.raises(TaskParseError, match="'tasks' list"):
            _ = parse_task_list(text)

    def test_invalid_yaml(self) -> None:
        with pytest.raises(TaskParseError, match="not valid YAML"):
            _ = parse_task_list("tasks: [unclosed\n")

    def test_invalid_task_entry(self) -> None:
        with pytest.raises(TaskParseError, match="invalid task list at 'tasks.0'"):
            _ = parse_task_list("tasks:\n  - 3\n")


class TestValidateTasks:
    def test_clean_list(self) -> None:
        tasks = TaskList(
            tasks=[
                Task(id="T1", title="a", goal="b"),
                Task(id="T2", title="c", goal="d", dependencies=["T1"]),
            ]
        )

        assert tasks.validate_tasks() == []

    def test_empty_fields(self) -> None:
        tasks = TaskList(tasks=[Task(title=" ")])

        assert tasks.validate_tasks() == [
            "task #1 has an empty id",
            "task #1 has an empty title",
            "task #1 has an empty goal",
        ]

    def test_duplicate_and_unknown(self) -> None:
        tasks = TaskList(
            tasks=[
                Task(id="T1", title="a", goal="b"),
                Task(id="T1", title="c", goal="d", dependencies=["T9"]),
            ]
        )

        assert tasks.validate_tasks() == [
            "duplicate task id: T1",
            "task T1 depends on unknown task T9",
        ]

    def test_cycle_reports_every_member(self) -> None:
        tasks = TaskList(
            tasks=[
                Task(id="T1", title="a", goal="b", dependencies=["T3"]),
                Task(id="T2", title="c", goal="d", dependencies=["T1"]),
                Task(id="T3", title="e", goal="f", dependencies=["T2"]),
                Task(id="T4", title="g", goal="h", dependencies=["T1"]),
            ]
        )

        assert tasks.validate_tasks() == [
            "task T1 is part of a dependency cycle",
            "task T2 is part of a dependency cycle",
            "task T3 is part of a dependency cycle",
        ]

    def test_self_dependency(self) -> None:
        tasks = TaskList(tasks=[Task(id="T1", title="a", goal="b", dependencies=["T1"])])

        assert tasks.validate_tasks() == ["task T1 is part of a dependency cycle"]

    def test_two_separate_cycles(self) -> None:
        tasks = TaskList(
            tasks=[
                Task(id="A", title="a", goal="a", dependencies=["B"]),
                Task(id="B", title="b", goal="b", dependencies=["A"]),
                Task(id="C", title="c", goal="c", dependencies=["A"]),
                Task(id="D", title="d", goal="d", dependencies=["D", "C"]),
            ]
        )

        assert tasks.validate_tasks() == [
            "task A is part of a dependency cycle",
            "task B is part of a dependency cycle",
            "task D is part of a dependency cycle",
        ]

    def test_dependency_graph_skips_unknown_and_duplicates(self) -> None:
        tasks = TaskList(
            tasks=[
                Task(id="T1", dependencies=["T9"]),
                Task(id="T2", dependencies=["T1"]),
                Task(id="T1", dependencies=["T2"]),
            ]
        )

        graph, indices = tasks.dependency_graph()

        assert list(indices) == ["T1", "T2"]
        assert graph.num_nodes() == 2
        assert list(graph.edge_list()) == [(indices["T2"], indices["T1"])]

    def test_task_by_id(self) -> None:
        tasks = TaskList(tasks=[Task(id="T1")])

        assert tasks.task_by_id("T1") is tasks.tasks[0]
        assert tasks.task_by_id("T2") is None
