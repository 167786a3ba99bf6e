"""Shared test fixtures for stagewise tests."""

import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest
from rich.console import Console

from stagewise.engine import init_workspace
from stagewise.workspace import WorkspaceLayout

WriteFile = Callable[[Path, str], Path]


@pytest.fixture
def console() -> Console:
    return Console(
        width=70,
        force_terminal=True,
        highlight=False,
        color_system=None,
        legacy_windows=False,
    )


@pytest.fixture
def write_file() -> WriteFile:
    """Return a function writing dedented text to a path, creating parents."""

    def _write(path: Path, content: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        _ = path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def layout(tmp_path: Path) -> WorkspaceLayout:
    """Layout for an empty project directory (no `.stagewise/` yet)."""
    root = tmp_path / "project"
    root.mkdir()
    return WorkspaceLayout(root)


@pytest.fixture
def workspace(layout: WorkspaceLayout) -> WorkspaceLayout:
    """A project initialized with the bundled multi-stage protocol.

    Structure:
        project/
            .stagewise/
                config.toml          # project_name = "demo"
                state.json
                protocols/multi-stage.yaml
                templates/*.md
                artifacts/ generated/ archives/ tracks/
    """
    _ = init_workspace(layout, project_name="demo")
    return layout


@pytest.fixture
def requirements_doc(workspace: WorkspaceLayout, write_file: WriteFile) -> Path:
    """A requirements document with every section the protocol expects."""
    return write_file(
        workspace.root / "requirements.md",
        """
        # Requirements

        ## Goals
        Ship the thing.

        ## Requirements
        - It must work.
        """,
    )


@pytest.fixture
def design_doc(workspace: WorkspaceLayout, write_file: WriteFile) -> Path:
    return write_file(
        workspace.root / "design.md",
        """
        # Design

        ## Architecture
        One process, one queue.
        """,
    )
