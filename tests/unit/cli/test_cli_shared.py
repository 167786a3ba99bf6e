"""Unit tests for the shared CLI utilities module."""

from io import StringIO
from pathlib import Path

import orjson
import pytest
from rich.console import Console

from stagewise.cli import CLIContext, ExitCode
from stagewise.cli._commands._shared import (
    exit_code_for_exception,
    exit_with_error,
    format_json,
    format_table,
    load_layout,
)
from stagewise.exceptions import (
    CheckFailedError,
    ConfigLoadError,
    MissingDependencyError,
    RestoreError,
    SnapshotError,
    SnapshotNotFoundError,
    StageNotFoundError,
    StagewiseError,
    WorkspaceNotFoundError,
)
from stagewise.protocol import ByName


class TestExitCodeForException:
    @pytest.mark.parametrize(
        ("exc", "expected"),
        [
            (StageNotFoundError("x", stage_id="x"), ExitCode.NOT_FOUND),
            (SnapshotNotFoundError("x", name="x"), ExitCode.NOT_FOUND),
            (FileNotFoundError("x"), ExitCode.NOT_FOUND),
            (
                MissingDependencyError("x", stage_id="a", dependency="b"),
                ExitCode.VALIDATION_ERROR,
            ),
            (CheckFailedError("x", total=1), ExitCode.VALIDATION_ERROR),
            (SnapshotError("x"), ExitCode.VALIDATION_ERROR),
            (ConfigLoadError("x"), ExitCode.LOAD_ERROR),
            (RestoreError("x", name="n", component="state.json"), ExitCode.IO_ERROR),
            (PermissionError("x"), ExitCode.IO_ERROR),
            (StagewiseError("x"), ExitCode.INTERNAL_ERROR),
        ],
    )
    def test_mapping(self, exc: BaseException, expected: ExitCode) -> None:
        assert exit_code_for_exception(exc) == expected


class TestFormatters:
    def test_format_json_indents(self) -> None:
        result = format_json({"stage": "design", "files": ["a.md"]})

        assert "\n" in result
        assert orjson.loads(result) == {"stage": "design", "files": ["a.md"]}

    def test_format_json_compact(self) -> None:
        assert format_json({"a": 1}, indent=False) == '{"a":1}'

    def test_format_table(self) -> None:
        table = format_table(["Stage", "Status"], [["design", "ready"]])

        lines = table.strip().splitlines()
        assert len(lines) == 3
        assert "Stage" in lines[0]
        assert "design" in lines[2]
        assert "ready" in lines[2]


def test_exit_with_error_prints_and_exits() -> None:
    output = StringIO()
    console = Console(file=output, width=200, color_system=None)

    with pytest.raises(SystemExit) as exc_info:
        exit_with_error("bad [stage] name", ExitCode.NOT_FOUND, console=console)

    assert exc_info.value.code == ExitCode.NOT_FOUND
    assert output.getvalue() == "Error: bad [stage] name\n"


class TestCLIContext:
    def test_default_when_unset(self) -> None:
        CLIContext.reset()

        assert CLIContext.get_current() == CLIContext()

    def test_set_and_reset(self) -> None:
        ctx = CLIContext(protocol=ByName("solo"), verbose=True)

        CLIContext.set_current(ctx)
        try:
            assert CLIContext.get_current() is ctx
        finally:
            CLIContext.reset()

        assert CLIContext.get_current().protocol is None


class TestLoadLayout:
    def test_uses_project_root(self, tmp_path: Path) -> None:
        (tmp_path / ".stagewise").mkdir()
        CLIContext.set_current(CLIContext(project_root=tmp_path))
        try:
            layout = load_layout()
        finally:
            CLIContext.reset()

        assert layout.root == tmp_path.resolve()

    def test_requires_workspace(self, tmp_path: Path) -> None:
        CLIContext.set_current(CLIContext(project_root=tmp_path))
        try:
            with pytest.raises(WorkspaceNotFoundError, match="stagewise init"):
                _ = load_layout()
            assert load_layout(require_workspace=False).root == tmp_path.resolve()
        finally:
            CLIContext.reset()
