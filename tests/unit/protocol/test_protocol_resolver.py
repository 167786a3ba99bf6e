"""Tests for protocol import resolution and merge precedence."""

from collections.abc import Callable
from pathlib import Path

import pytest

from stagewise.exceptions import (
    CircularImportError,
    ProtocolNotFoundError,
    ProtocolParseError,
    ProtocolValidationError,
)
from stagewise.protocol import (
    MAX_IMPORT_DEPTH,
    ByName,
    ByPath,
    LintRules,
    ProtocolResolver,
    load_protocol,
)

WriteFile = Callable[[Path, str], Path]


@pytest.fixture
def protocols_dir(tmp_path: Path) -> Path:
    path = tmp_path / "protocols"
    path.mkdir()
    return path


@pytest.fixture
def resolver(protocols_dir: Path) -> ProtocolResolver:
    return ProtocolResolver(protocols_dir)


class TestLoad:
    def test_loads_named_protocol(
        self, protocols_dir: Path, resolver: ProtocolResolver, write_file: WriteFile
    ) -> None:
        _ = write_file(
            protocols_dir / "simple.yaml",
            """
            name: simple
            version: 2
            stages:
              - id: one
              - id: two
                depends_on: [one]
            """,
        )

        protocol = resolver.load(ByName("simple"))

        assert protocol.name == "simple"
        assert protocol.version == "2"
        assert protocol.stage_ids() == ["one", "two"]
        assert protocol.stages[1].depends_on == ("one",)

    def test_name_defaults_to_file_stem(
        self, protocols_dir: Path, resolver: ProtocolResolver, write_file: WriteFile
    ) -> None:
        _ = write_file(protocols_dir / "unnamed.yaml", "stages:\n  - id: only\n")

        assert resolver.load(ByName("unnamed")).name == "unnamed"

    def test_loads_protocol_by_path(
        self, tmp_path: Path, resolver: ProtocolResolver, write_file: WriteFile
    ) -> None:
        path = write_file(
            tmp_path / "elsewhere" / "custom.yaml",
            "name: custom\nstages:\n  - id: a\n",
        )

        assert resolver.load(ByPath(path)).name == "custom"

    def test_missing_protocol_raises_not_found(self, resolver: ProtocolResolver) -> None:
        with pytest.raises(ProtocolNotFoundError, match="protocol not found"):
            _ = resolver.load(ByName("absent"))

    def test_malformed_yaml_raises_parse_error(
        self, protocols_dir: Path, resolver: ProtocolResolver, write_file: WriteFile
    ) -> None:
        _ = write_file(protocols_dir / "broken.yaml", "stages: [unclosed\n")

        with pytest.raises(ProtocolParseError) as exc_info:
            _ = resolver.load(ByName("broken"))

        assert exc_info.value.path.name == "broken.yaml"

    def test_non_mapping_document_raises_parse_error(
        self, protocols_dir: Path, resolver: ProtocolResolver, write_file: WriteFile
    ) -> None:
        _ = write_file(protocols_dir / "list.yaml", "- id: a\n")

        with pytest.raises(ProtocolParseError, match="must be a mapping"):
            _ = resolver.load(ByName("list"))

    def test_load_protocol_helper(
        self, protocols_dir: Path, write_file: WriteFile
    ) -> None:
        _ = write_file(protocols_dir / "p.yaml", "name: p\nstages:\n  - id: a\n")

        assert load_protocol(ByName("p"), protocols_dir).stage_ids() == ["a"]


class TestImports:
    def test_override_precedence_follows_uses_order(
        self, protocols_dir: Path, resolver: ProtocolResolver, write_file: WriteFile
    ) -> None:
        _ = write_file(
            protocols_dir / "base.yaml",
            "name: base\nstages:\n  - id: check\n    intent: X\n",
        )
        _ = write_file(
            protocols_dir / "override.yaml",
            "name: override\nstages:\n  - id: check\n    intent: Y\n",
        )
        _ = write_file(
            protocols_dir / "main.yaml",
            "name: main\nuses: [base, override]\n",
        )

        protocol = resolver.load(ByName("main"))

        assert protocol.stage_ids() == ["check"]
        stage = protocol.stage_by_id("check")
        assert stage is not None
        assert stage.intent == "Y"

    def test_importing_document_overrides_imports_in_place(
        self, protocols_dir: Path, resolver: ProtocolResolver, write_file: WriteFile
    ) -> None:
        _ = write_file(
            protocols_dir / "base.yaml",
            """
            name: base
            stages:
              - id: first
                intent: base
              - id: second
            """,
        )
        _ = write_file(
            protocols_dir / "main.yaml",
            """
            name: main
            uses: [base]
            stages:
              - id: third
              - id: first
                intent: local
            """,
        )

        protocol = resolver.load(ByName("main"))

        assert protocol.stage_ids() == ["first", "second", "third"]
        assert protocol.stages[0].intent == "local"

    def test_cycle_is_rejected(
        self, protocols_dir: Path, resolver: ProtocolResolver, write_file: WriteFile
    ) -> None:
        _ = write_file(protocols_dir / "a.yaml", "name: a\nuses: [b]\n")
        _ = write_file(protocols_dir / "b.yaml", "name: b\nuses: [a]\n")

        with pytest.raises(CircularImportError, match="circular protocol import") as exc_info:
            _ = resolver.load(ByName("a"))

        assert [path.stem for path in exc_info.value.chain] == ["a", "b", "a"]

    def test_cycle_is_rejected_from_either_side(
        self, protocols_dir: Path, resolver: ProtocolResolver, write_file: WriteFile
    ) -> None:
        _ = write_file(protocols_dir / "a.yaml", "name: a\nuses: [b]\n")
        _ = write_file(protocols_dir / "b.yaml", "name: b\nuses: [a]\n")

        with pytest.raises(CircularImportError):
            _ = resolver.load(ByName("b"))

    def test_self_import_is_rejected(
        self, protocols_dir: Path, resolver: ProtocolResolver, write_file: WriteFile
    ) -> None:
        _ = write_file(protocols_dir / "me.yaml", "name: me\nuses: [me]\n")

        with pytest.raises(CircularImportError):
            _ = resolver.load(ByName("me"))

    def test_diamond_import_is_not_a_cycle(
        self, protocols_dir: Path, resolver: ProtocolResolver, write_file: WriteFile
    ) -> None:
        _ = write_file(
            protocols_dir / "d.yaml", "name: d\nstages:\n  - id: shared\n"
        )
        _ = write_file(
            protocols_dir / "b.yaml", "name: b\nuses: [d]\nstages:\n  - id: from_b\n"
        )
        _ = write_file(
            protocols_dir / "c.yaml", "name: c\nuses: [d]\nstages:\n  - id: from_c\n"
        )
        _ = write_file(protocols_dir / "a.yaml", "name: a\nuses: [b, c]\n")

        protocol = resolver.load(ByName("a"))

        assert protocol.stage_ids() == ["shared", "from_b", "from_c"]

    def test_diamond_shared_stage_takes_last_definition(
        self, protocols_dir: Path, resolver: ProtocolResolver, write_file: WriteFile
    ) -> None:
        _ = write_file(
            protocols_dir / "d.yaml", "name: d\nstages:\n  - id: shared\n    intent: d\n"
        )
        _ = write_file(protocols_dir / "b.yaml", "name: b\nuses: [d]\n")
        _ = write_file(
            protocols_dir / "c.yaml",
            "name: c\nuses: [d]\nstages:\n  - id: shared\n    intent: c\n",
        )
        _ = write_file(protocols_dir / "a.yaml", "name: a\nuses: [b, c]\n")

        protocol = resolver.load(ByName("a"))

        assert protocol.stage_ids() == ["shared"]
        assert protocol.stages[0].intent == "c"

    def test_bare_name_prefers_sibling_of_importer(
        self, tmp_path: Path, protocols_dir: Path, write_file: WriteFile
    ) -> None:
        elsewhere = tmp_path / "elsewhere"
        _ = write_file(
            elsewhere / "base.yaml", "name: base\nstages:\n  - id: sibling\n"
        )
        _ = write_file(
            protocols_dir / "base.yaml", "name: base\nstages:\n  - id: shared_dir\n"
        )
        main = write_file(elsewhere / "main.yaml", "name: main\nuses: [base]\n")

        protocol = ProtocolResolver(protocols_dir).load(ByPath(main))

        assert protocol.stage_ids() == ["sibling"]

    def test_bare_name_falls_back_to_protocols_dir(
        self, tmp_path: Path, protocols_dir: Path, write_file: WriteFile
    ) -> None:
        _ = write_file(
            protocols_dir / "base.yaml", "name: base\nstages:\n  - id: shared_dir\n"
        )
        main = write_file(tmp_path / "other" / "main.yaml", "name: main\nuses: [base]\n")

        protocol = ProtocolResolver(protocols_dir).load(ByPath(main))

        assert protocol.stage_ids() == ["shared_dir"]

    def test_path_import_is_relative_to_importer(
        self, protocols_dir: Path, resolver: ProtocolResolver, write_file: WriteFile
    ) -> None:
        _ = write_file(
            protocols_dir / "shared" / "review.yaml",
            "name: review\nstages:\n  - id: review\n    intent: review\n",
        )
        _ = write_file(
            protocols_dir / "main.yaml", "name: main\nuses: [shared/review.yaml]\n"
        )

        protocol = resolver.load(ByName("main"))

        assert protocol.stages[0].is_review

    def test_missing_import_names_importer(
        self, protocols_dir: Path, resolver: ProtocolResolver, write_file: WriteFile
    ) -> None:
        _ = write_file(protocols_dir / "main.yaml", "name: main\nuses: [ghost]\n")

        with pytest.raises(ProtocolNotFoundError, match="imported by main.yaml"):
            _ = resolver.load(ByName("main"))

    def test_import_depth_is_bounded(
        self, protocols_dir: Path, resolver: ProtocolResolver, write_file: WriteFile
    ) -> None:
        for index in range(MAX_IMPORT_DEPTH + 1):
            _ = write_file(
                protocols_dir / f"p{index}.yaml",
                f"name: p{index}\nuses: [p{index + 1}]\n",
            )
        _ = write_file(
            protocols_dir / f"p{MAX_IMPORT_DEPTH + 1}.yaml",
            "name: leaf\nstages:\n  - id: a\n",
        )

        with pytest.raises(ProtocolValidationError, match="nested deeper"):
            _ = resolver.load(ByName("p0"))

    def test_approvals_and_lint_merge(
        self, protocols_dir: Path, resolver: ProtocolResolver, write_file: WriteFile
    ) -> None:
        _ = write_file(
            protocols_dir / "base.yaml",
            """
            name: base
            stages:
              - id: spec
            approvals:
              - stage: spec
                role: product
            lint:
              required_sections: [Context]
              forbidden_phrases: [maybe]
            """,
        )
        _ = write_file(
            protocols_dir / "main.yaml",
            """
            name: main
            uses: [base]
            approvals:
              - stage: spec
                role: product
              - stage: spec
                role: legal
            lint:
              required_sections: [Context, Task]
            """,
        )

        protocol = resolver.load(ByName("main"))

        assert [a.role for a in protocol.approvals] == ["product", "legal"]
        assert protocol.lint == LintRules(
            required_sections=("Context", "Task"), forbidden_phrases=("maybe",)
        )


class TestValidation:
    def test_duplicate_stage_in_one_document_is_rejected(
        self, protocols_dir: Path, resolver: ProtocolResolver, write_file: WriteFile
    ) -> None:
        _ = write_file(
            protocols_dir / "dup.yaml",
            "name: dup\nstages:\n  - id: a\n  - id: a\n",
        )

        with pytest.raises(ProtocolValidationError, match="duplicate stage id 'a'"):
            _ = resolver.load(ByName("dup"))

    def test_unknown_dependency_is_rejected(
        self, protocols_dir: Path, resolver: ProtocolResolver, write_file: WriteFile
    ) -> None:
        _ = write_file(
            protocols_dir / "dangling.yaml",
            "name: dangling\nstages:\n  - id: a\n    depends_on: [ghost]\n",
        )

        with pytest.raises(ProtocolValidationError, match="unknown stage 'ghost'"):
            _ = resolver.load(ByName("dangling"))

    def test_approval_for_unknown_stage_is_rejected(
        self, protocols_dir: Path, resolver: ProtocolResolver, write_file: WriteFile
    ) -> None:
        _ = write_file(
            protocols_dir / "approvals.yaml",
            """
            name: approvals
            stages:
              - id: a
            approvals:
              - stage: b
                role: product
            """,
        )

        with pytest.raises(ProtocolValidationError, match="references unknown stage 'b'"):
            _ = resolver.load(ByName("approvals"))

    def test_dependency_satisfied_by_import(
        self, protocols_dir: Path, resolver: ProtocolResolver, write_file: WriteFile
    ) -> None:
        _ = write_file(protocols_dir / "base.yaml", "name: base\nstages:\n  - id: a\n")
        _ = write_file(
            protocols_dir / "main.yaml",
            "name: main\nuses: [base]\nstages:\n  - id: b\n    depends_on: [a]\n",
        )

        assert resolver.load(ByName("main")).stage_ids() == ["a", "b"]
