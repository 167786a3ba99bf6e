from collections.abc import Callable
from pathlib import Path

import pytest
from rich.console import Console

from stagewise.cli import create_app

RunCLI = Callable[..., int]


@pytest.fixture(autouse=True)
def wide_terminal(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep rich from wrapping long paths in command output."""
    monkeypatch.setenv("COLUMNS", "300")


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    root = tmp_path / "shop"
    root.mkdir()
    return root


@pytest.fixture
def stagewise_cli(console: Console, project_root: Path) -> RunCLI:
    """Run the CLI against `project_root` and return the exit code.

    Global options go before the command, so every invocation is prefixed
    with `--project-root`.
    """
    app = create_app(console=console, error_console=console)

    def _run(*args: str) -> int:
        try:
            _ = app.meta(["--project-root", str(project_root), *args])
        except SystemExit as e:
            return e.code if isinstance(e.code, int) else 1
        else:
            return 0

    return _run


@pytest.fixture
def initialized(stagewise_cli: RunCLI, capsys: pytest.CaptureFixture[str]) -> None:
    """Initialize the workspace and discard the init output."""
    assert stagewise_cli("init", "--name", "shop") == 0
    _ = capsys.readouterr()
