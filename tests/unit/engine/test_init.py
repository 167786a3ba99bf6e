from stagewise.config import Config
from stagewise.engine import init_workspace
from stagewise.state import load_state
from stagewise.workspace import WorkspaceLayout


class TestInitWorkspace:
    def test_creates_layout_and_seed_files(self, layout: WorkspaceLayout) -> None:
        created = init_workspace(layout, project_name="shop")

        for directory in (
            layout.artifacts_dir,
            layout.generated_dir,
            layout.archives_dir,
            layout.tracks_dir,
        ):
            assert directory.is_dir()
        assert layout.config_path in created
        assert layout.state_path in created
        assert layout.protocol_path("multi-stage") in created
        assert (layout.templates_dir / "design.md").is_file()
        assert Config.from_file(layout.config_path).project_name == "shop"
        assert load_state(layout.state_path).protocol == "multi-stage"

    def test_project_name_defaults_to_directory(self, layout: WorkspaceLayout) -> None:
        _ = init_workspace(layout)

        assert Config.from_file(layout.config_path).project_name == "project"

    def test_second_run_creates_nothing(self, layout: WorkspaceLayout) -> None:
        _ = init_workspace(layout)
        (layout.templates_dir / "design.md").write_text("custom", encoding="utf-8")

        assert init_workspace(layout) == []
        assert (layout.templates_dir / "design.md").read_text(encoding="utf-8") == "custom"

    def test_protocol_path_is_recorded_by_stem(self, layout: WorkspaceLayout) -> None:
        _ = init_workspace(layout, protocol="protocols/team-flow.yaml")

        assert Config.from_file(layout.config_path).protocol == "protocols/team-flow.yaml"
        assert load_state(layout.state_path).protocol == "team-flow"
        assert layout.protocol_path("multi-stage").is_file()
