from collections.abc import Callable
from pathlib import Path

import pytest

from stagewise.exceptions import ArtifactNotFoundError, ArtifactPathError
from stagewise.workspace import (
    ArtifactResolver,
    WorkspaceLayout,
    match_output_pattern,
    normalize_relative_path,
)

WriteFile = Callable[[Path, str], Path]

STAGES = ["requirements", "design", "decompose"]


@pytest.fixture
def resolver(layout: WorkspaceLayout) -> ArtifactResolver:
    layout.artifacts_dir.mkdir(parents=True)
    return ArtifactResolver(layout)


class TestNormalizeRelativePath:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("design/notes.md", "design/notes.md"),
            ("./design//notes.md", "design/notes.md"),
            ("design\\notes.md", "design/notes.md"),
            ("  notes.md ", "notes.md"),
        ],
    )
    def test_cleans_safe_paths(self, raw: str, expected: str) -> None:
        assert normalize_relative_path(raw) == expected

    @pytest.mark.parametrize(
        ("raw", "message"),
        [
            ("", "empty"),
            ("   ", "empty"),
            ("/etc/passwd", "absolute"),
            ("\\server\\share", "absolute"),
            ("C:\\secrets.txt", "absolute"),
            ("../secrets.txt", "traversal"),
            ("design/../../secrets.txt", "traversal"),
            ("..\\secrets.txt", "traversal"),
            (".", "artifact root"),
        ],
    )
    def test_rejects_unsafe_paths(self, raw: str, message: str) -> None:
        with pytest.raises(ArtifactPathError, match=message) as exc_info:
            _ = normalize_relative_path(raw)

        assert exc_info.value.path == raw


class TestResolveInput:
    def test_finds_file_in_dependency_subtree(
        self, layout: WorkspaceLayout, resolver: ArtifactResolver, write_file: WriteFile
    ) -> None:
        expected = write_file(layout.artifacts_dir / "design" / "notes.md", "notes")

        path = resolver.resolve_input("notes.md", ["design"], STAGES)

        assert path == expected

    def test_stage_qualified_path(
        self, layout: WorkspaceLayout, resolver: ArtifactResolver, write_file: WriteFile
    ) -> None:
        expected = write_file(layout.artifacts_dir / "design" / "notes.md", "notes")

        path = resolver.resolve_input("design/notes.md", ["design"], STAGES)

        assert path == expected
        assert path.read_text(encoding="utf-8") == "notes"

    def test_dependencies_searched_in_declaration_order(
        self, layout: WorkspaceLayout, resolver: ArtifactResolver, write_file: WriteFile
    ) -> None:
        _ = write_file(layout.artifacts_dir / "requirements" / "shared.md", "req")
        expected = write_file(layout.artifacts_dir / "design" / "shared.md", "design")

        path = resolver.resolve_input("shared.md", ["design", "requirements"], STAGES)

        assert path == expected

    def test_falls_back_to_flat_root(
        self, layout: WorkspaceLayout, resolver: ArtifactResolver, write_file: WriteFile
    ) -> None:
        expected = write_file(layout.artifacts_dir / "glossary.md", "terms")

        assert resolver.resolve_input("glossary.md", ["design"], STAGES) == expected

    def test_missing_input_lists_searched_locations(
        self, layout: WorkspaceLayout, resolver: ArtifactResolver
    ) -> None:
        with pytest.raises(ArtifactNotFoundError, match="input not found") as exc_info:
            _ = resolver.resolve_input("absent.md", ["design"], STAGES)

        assert exc_info.value.searched == (
            layout.artifacts_dir / "design" / "absent.md",
            layout.artifacts_dir / "absent.md",
        )

    @pytest.mark.parametrize("logical", ["../secrets.txt", "/etc/passwd", "a\\..\\..\\b"])
    def test_unsafe_inputs_are_rejected(
        self, resolver: ArtifactResolver, logical: str
    ) -> None:
        with pytest.raises(ArtifactPathError):
            _ = resolver.resolve_input(logical, ["design"], STAGES)

    def test_symlink_escaping_store_is_rejected(
        self, tmp_path: Path, layout: WorkspaceLayout, resolver: ArtifactResolver
    ) -> None:
        outside = tmp_path / "outside.txt"
        _ = outside.write_text("secret", encoding="utf-8")
        (layout.artifacts_dir / "link.txt").symlink_to(outside)

        with pytest.raises(ArtifactPathError, match="escapes"):
            _ = resolver.resolve_input("link.txt", [], STAGES)


class TestOutputPaths:
    def test_output_relative_is_normalized(self, resolver: ArtifactResolver) -> None:
        assert resolver.resolve_output_relative("design\\design.md") == "design/design.md"

    def test_state_path_maps_into_store(
        self, layout: WorkspaceLayout, resolver: ArtifactResolver
    ) -> None:
        assert resolver.artifact_absolute_from_state("design/design.md") == (
            layout.artifacts_dir / "design" / "design.md"
        )

    def test_state_path_traversal_is_rejected(self, resolver: ArtifactResolver) -> None:
        with pytest.raises(ArtifactPathError):
            _ = resolver.artifact_relative_from_state("../state.json")


class TestProjectRelativePath:
    def test_relative_to_base(
        self, layout: WorkspaceLayout, resolver: ArtifactResolver
    ) -> None:
        (layout.root / "docs").mkdir()

        relative = resolver.project_relative_path("spec.md", base=layout.root / "docs")

        assert relative == "docs/spec.md"

    def test_absolute_path_inside_project(
        self, layout: WorkspaceLayout, resolver: ArtifactResolver
    ) -> None:
        assert resolver.project_relative_path(layout.root / "a" / "b.md") == "a/b.md"

    def test_outside_project_is_rejected(
        self, tmp_path: Path, resolver: ArtifactResolver
    ) -> None:
        with pytest.raises(ArtifactPathError, match="outside the project root"):
            _ = resolver.project_relative_path(tmp_path / "elsewhere.md")

    def test_project_root_itself_is_rejected(
        self, layout: WorkspaceLayout, resolver: ArtifactResolver
    ) -> None:
        with pytest.raises(ArtifactPathError, match="project root"):
            _ = resolver.project_relative_path(layout.root)


class TestMatchOutputPattern:
    @pytest.mark.parametrize(
        ("pattern", "relative", "matches"),
        [
            ("design.md", "design.md", True),
            ("*.md", "design.md", True),
            ("docs/*.md", "docs\\api.md", True),
            ("task-?.md", "task-1.md", True),
            ("*.md", "design.txt", False),
            ("Design.md", "design.md", False),
        ],
    )
    def test_glob_semantics(self, pattern: str, relative: str, matches: bool) -> None:
        assert match_output_pattern(pattern, relative) is matches
