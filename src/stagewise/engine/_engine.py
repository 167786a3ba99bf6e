"""The workflow engine.

`Engine` composes configuration, the resolved protocol and the workflow state
of one workspace, and exposes the operations the CLI calls: compiling a
stage's prompt, recording completions and approvals, and checking workspace
health. Every mutation is saved before the method returns.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Self

from structlog.typing import FilteringBoundLogger

from stagewise.config import Config
from stagewise.exceptions import (
    ApprovalNotDeclaredError,
    ArtifactPathError,
    CheckFailedError,
    MissingDependencyError,
    MissingOutputError,
    StageNotFoundError,
    StagewiseError,
    TaskParseError,
    WorkspaceError,
)
from stagewise.protocol import (
    LintRules,
    Protocol,
    ProtocolResolver,
    ProtocolSource,
    Stage,
    StageType,
)
from stagewise.state import WorkflowState, load_state, save_state
from stagewise.templating import JinjaTemplateRenderer, TemplateRenderer
from stagewise.utils import get_null_logger
from stagewise.workspace import (
    ArtifactResolver,
    WorkspaceLayout,
    copy_file,
    match_output_pattern,
)

from ._check import CheckCategory, CheckReport
from ._compile import (
    CompiledPrompt,
    CompileOptions,
    LintRuleChecker,
    PromptChecker,
    PromptContext,
    PromptInput,
)
from ._tasks import parse_task_list


@dataclass(frozen=True, slots=True)
class CompletionReport:
    """Whether every stage is complete and every declared approval recorded."""

    completed: tuple[str, ...] = ()
    missing_stages: tuple[str, ...] = ()
    missing_approvals: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def is_complete(self) -> bool:
        return not self.missing_stages and not self.missing_approvals


class Engine:
    """Workflow operations over one workspace.

    Attributes:
        layout: Workspace paths.
        config: Loaded configuration.
        protocol: The resolved active protocol.
        state: Mutable workflow state; saved after every mutation.
    """

    def __init__(
        self,
        layout: WorkspaceLayout,
        config: Config,
        protocol: Protocol,
        state: WorkflowState,
        *,
        renderer: TemplateRenderer | None = None,
        checker: PromptChecker | None = None,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        self.layout: WorkspaceLayout = layout
        self.config: Config = config
        self.protocol: Protocol = protocol
        self.state: WorkflowState = state
        self.artifacts: ArtifactResolver = ArtifactResolver(layout)
        self._renderer: TemplateRenderer = renderer or JinjaTemplateRenderer(
            layout.templates_dir
        )
        self._checker: PromptChecker = checker or LintRuleChecker()
        self._logger: FilteringBoundLogger = logger or get_null_logger()

    @classmethod
    def load(
        cls,
        layout: WorkspaceLayout,
        *,
        protocol_override: ProtocolSource | None = None,
        renderer: TemplateRenderer | None = None,
        checker: PromptChecker | None = None,
        logger: FilteringBoundLogger | None = None,
    ) -> Self:
        """Load config, then the active protocol, then state.

        The protocol is `protocol_override` when given, otherwise the one
        named in config (the default protocol when config names none). An
        uninitialized state adopts the protocol's name and version.

        Raises:
            ConfigError: If the configuration cannot be loaded.
            ProtocolError: If the protocol cannot be resolved.
            StateError: If the state document cannot be read.
        """
        log = logger or get_null_logger()
        config = Config.load(layout.config_path, project_root=layout.root)
        source = protocol_override or ProtocolSource.parse(config.active_protocol)
        protocol = ProtocolResolver(layout.protocols_dir, logger=log).load(source)
        state = load_state(layout.state_path)
        if not state.protocol:
            state.protocol = protocol.name
        if not state.spec_version:
            state.spec_version = protocol.version
        return cls(
            layout,
            config,
            protocol,
            state,
            renderer=renderer,
            checker=checker,
            logger=log,
        )

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def stage(self, stage_id: str) -> Stage:
        """Return the stage with `stage_id`.

        Raises:
            StageNotFoundError: If the protocol has no such stage.
        """
        stage = self.protocol.stage_by_id(stage_id)
        if stage is None:
            msg = f"unknown stage: {stage_id}"
            raise StageNotFoundError(msg, stage_id=stage_id)
        return stage

    @property
    def stage_ids(self) -> list[str]:
        return self.protocol.stage_ids()

    def require_stage_dependencies(self, stage: Stage) -> None:
        self.state.require_dependencies(stage)

    def is_ready(self, stage: Stage) -> bool:
        """Whether every dependency of `stage` has completed."""
        return all(self.state.is_completed(dep) for dep in stage.depends_on)

    # -------------------------------------------------------------------------
    # Prompt compilation
    # -------------------------------------------------------------------------

    def list_all_artifacts(self) -> list[PromptInput]:
        """Every file under the artifact root, sorted by relative path."""
        root = self.artifacts.artifacts_root
        if not root.exists():
            return []
        if not root.is_dir():
            msg = f"artifacts path is not a directory: {root}"
            raise WorkspaceError(msg)
        relative_paths = sorted(
            path.relative_to(root).as_posix() for path in root.rglob("*") if path.is_file()
        )
        return [
            PromptInput(name=rel, content=(root / rel).read_text(encoding="utf-8"))
            for rel in relative_paths
        ]

    def _stage_inputs(self, stage: Stage) -> list[PromptInput]:
        if stage.is_review:
            return self.list_all_artifacts()
        inputs: list[PromptInput] = []
        for logical in stage.inputs:
            path = self.artifacts.resolve_input(logical, stage.depends_on, self.stage_ids)
            inputs.append(
                PromptInput(name=logical, content=path.read_text(encoding="utf-8"))
            )
        return inputs

    def build_context(
        self, stage: Stage, options: CompileOptions | None = None
    ) -> PromptContext:
        """Assemble the template context for `stage` without dependency checks."""
        opts = options or CompileOptions()
        return PromptContext(
            stage_id=stage.id,
            stage_name=stage.display_name,
            project_name=self.config.project_name,
            inputs=self._stage_inputs(stage),
            outputs=list(stage.outputs),
            intent=stage.intent,
            language=self.config.language,
            framework=self.config.framework,
            custom_vars=dict(self.config.custom_vars),
            constraints=dict(self.config.constraints),
            stage_type=stage.type,
            prompt=opts.apply(stage.prompt),
            output_contract=stage.output,
        )

    def compile_prompt(
        self, stage: Stage, options: CompileOptions | None = None
    ) -> CompiledPrompt:
        """Render the prompt for `stage`.

        Review stages read every artifact in the store; other stages read
        their declared inputs, resolved through the artifact resolver.

        Raises:
            MissingDependencyError: If a dependency has not completed.
            ArtifactPathError: If an input path is unsafe.
            ArtifactNotFoundError: If an input cannot be found.
            TemplateError: If the template is missing or fails to render.
        """
        self.require_stage_dependencies(stage)
        context = self.build_context(stage, options)
        text = self._renderer.render(stage.template, context)
        compiled = CompiledPrompt(stage_id=stage.id, text=text)
        self._logger.debug(
            "prompt_compiled",
            stage_id=stage.id,
            inputs=len(context.inputs),
            prompt_hash=compiled.prompt_hash,
        )
        return compiled

    def lint_rules_for(self, stage: Stage) -> LintRules:
        """Protocol lint rules merged with the stage's own."""
        rules = self.protocol.lint or LintRules()
        if stage.prompt is not None:
            rules = rules.merge(stage.prompt.lint)
        return rules

    # -------------------------------------------------------------------------
    # Completion and approval
    # -------------------------------------------------------------------------

    def _artifact_relative(self, stage: Stage, path: Path | str, base: Path | None) -> str:
        """Map a user-supplied file to its path inside the stage subtree.

        A file already in the stage directory keeps its place. Any other file
        takes the shortest trailing part of its project path that a declared
        output matches, so `docs/requirements.md` lands at `requirements.md`
        for the output `requirements.md` and keeps `docs/` for `docs/*.md`.
        Files no output claims are stored by name.
        """
        stage_dir = self.layout.stage_artifacts_dir(stage.id).resolve()
        raw = Path(path)
        absolute = (raw if raw.is_absolute() else (base or Path.cwd()) / raw).resolve()
        if absolute.is_relative_to(stage_dir):
            return absolute.relative_to(stage_dir).as_posix()

        outputs = [output for output in stage.outputs if output]
        parts = self.artifacts.project_relative_path(path, base=base).split("/")
        for start in range(len(parts) - 1, -1, -1):
            candidate = "/".join(parts[start:])
            if any(match_output_pattern(output, candidate) for output in outputs):
                return candidate
        return parts[-1]

    def complete_stage(
        self,
        stage_id: str,
        files: Sequence[Path | str],
        *,
        prompt_hash: str = "",
        base: Path | None = None,
    ) -> list[str]:
        """Record `stage_id` as complete with `files` as its outputs.

        Each file is stored under `artifacts/<stage>/` by the name its declared
        output expects, whichever directory it was written in; files already
        inside the stage subtree stay where they are. Every declared output
        must be matched by one of the files.

        Returns:
            The stored artifact paths, relative to the artifact root.

        Raises:
            StageNotFoundError: If the stage is unknown.
            MissingDependencyError: If a dependency has not completed.
            ArtifactPathError: If a file is outside the project or unsafe, or
                two files would be stored at the same path.
            FileNotFoundError: If a file does not exist.
            MissingOutputError: If a declared output has no matching file.
        """
        stage = self.stage(stage_id)
        self.require_stage_dependencies(stage)

        sources: list[tuple[Path, str]] = []
        for path in files:
            source = Path(path) if Path(path).is_absolute() else (base or Path.cwd()) / path
            if not source.is_file():
                msg = f"output file not found: {path}"
                raise FileNotFoundError(msg)
            relative = self._artifact_relative(stage, path, base)
            stored = self.artifacts.resolve_output_relative(f"{stage.id}/{relative}")
            if stored in {seen for _, seen in sources}:
                msg = f"two outputs would be stored at {stored}: {path}"
                raise ArtifactPathError(msg, path=str(path))
            sources.append((source, stored))

        produced = [stored.split("/", 1)[1] for _, stored in sources]
        missing = tuple(
            output
            for output in stage.outputs
            if output and not any(match_output_pattern(output, rel) for rel in produced)
        )
        if missing:
            msg = f"stage {stage.id} is missing declared outputs: {', '.join(missing)}"
            raise MissingOutputError(msg, stage_id=stage.id, missing=missing)

        stored_paths: list[str] = []
        for source, stored in sources:
            destination = self.artifacts.artifact_absolute_from_state(stored)
            if source.resolve() != destination.resolve():
                copy_file(source, destination)
            stored_paths.append(stored)

        self.state.record_completion(stage.id, stored_paths, prompt_hash)
        self.state.current_stage = stage.id
        self.save_state()
        self._logger.info(
            "stage_completed", stage_id=stage.id, files=len(stored_paths)
        )
        return stored_paths

    def approve_stage(
        self, stage_id: str, role: str, approved_by: str, notes: str = ""
    ) -> list[str]:
        """Record `role`'s approval of `stage_id`.

        Returns:
            Advisory warnings: the stage is not completed yet, or an existing
            approval for the role was replaced.

        Raises:
            ApprovalNotDeclaredError: If the protocol does not declare it.
        """
        if not self.protocol.has_approval(stage_id, role):
            msg = f"approval not declared in protocol: stage={stage_id} role={role}"
            raise ApprovalNotDeclaredError(msg, stage_id=stage_id, role=role)

        warnings: list[str] = []
        if not self.state.is_completed(stage_id):
            warnings.append(
                f"stage {stage_id} is not yet completed; approval recorded preemptively"
            )
        if self.state.record_approval(stage_id, role, approved_by, notes):
            warnings.append(f"updating existing approval for role {role}")

        self.save_state()
        self._logger.info(
            "stage_approved", stage_id=stage_id, role=role, approved_by=approved_by
        )
        return warnings

    def missing_approvals(self) -> list[str]:
        """Declared approvals not yet recorded, as `stage:role`."""
        return [
            f"{approval.stage}:{approval.role}"
            for approval in self.protocol.approvals
            if not self.state.has_approval(approval.stage, approval.role)
        ]

    def incomplete_stages(self) -> list[str]:
        return [s.id for s in self.protocol.stages if not self.state.is_completed(s.id)]

    def completion_report(self) -> CompletionReport:
        warnings: list[str] = []
        if self.state.protocol and self.state.protocol != self.protocol.name:
            warnings.append(
                f"protocol drift: state={self.state.protocol} "
                f"protocol={self.protocol.name}"
            )
        return CompletionReport(
            completed=tuple(self.state.completed_stages),
            missing_stages=tuple(self.incomplete_stages()),
            missing_approvals=tuple(self.missing_approvals()),
            warnings=tuple(warnings),
        )

    def save_state(self) -> None:
        save_state(self.layout.state_path, self.state)

    # -------------------------------------------------------------------------
    # Health check
    # -------------------------------------------------------------------------

    def _check_outputs(self, stage: Stage, report: CheckReport) -> None:
        stored_relative: list[str] = []
        output = self.state.stage_outputs.get(stage.id)
        for stored in output.files if output is not None else ():
            try:
                rel = self.artifacts.artifact_relative_from_state(stored)
            except ArtifactPathError as e:
                report.add(
                    CheckCategory.ARTIFACTS,
                    f"Invalid stored artifact path for stage {stage.id}: {stored} ({e})",
                )
                continue
            path = self.artifacts.artifacts_root / rel
            if path.is_file() and path.stat().st_size == 0:
                report.add(
                    CheckCategory.ARTIFACTS,
                    f"Empty artifact for stage {stage.id}: {stored}",
                )
            prefix = f"{stage.id}/"
            stored_relative.append(rel.removeprefix(prefix))

        for pattern in stage.outputs:
            if not pattern:
                continue
            if "*" in pattern or "?" in pattern:
                if not any(match_output_pattern(pattern, rel) for rel in stored_relative):
                    report.add(
                        CheckCategory.OUTPUTS,
                        f"Missing output for stage {stage.id}: {pattern} "
                        "(no stored artifacts match)",
                    )
                continue

            expected = self.layout.stage_artifacts_dir(stage.id) / pattern
            if not expected.is_file():
                report.add(
                    CheckCategory.OUTPUTS,
                    f"Missing output for stage {stage.id}: {expected}",
                )
                continue
            if stage.output is None or not stage.output.sections:
                continue
            content = expected.read_text(encoding="utf-8")
            for section in stage.output.sections:
                if f"# {section}" not in content:
                    report.add(
                        CheckCategory.STRUCTURE,
                        f'Missing section "{section}" in {expected}',
                    )

    def _check_tasks(self, stage: Stage, report: CheckReport) -> None:
        output = self.state.stage_outputs.get(stage.id)
        for stored in output.files if output is not None else ():
            try:
                path = self.artifacts.artifact_absolute_from_state(stored)
            except ArtifactPathError:
                # Already reported under Artifacts.
                continue
            if not path.is_file():
                continue
            try:
                tasks = parse_task_list(path.read_text(encoding="utf-8"))
            except TaskParseError as e:
                report.add(CheckCategory.TASKS, f"[{stored}]: {e}")
                continue
            for warning in tasks.validate_tasks():
                report.add(CheckCategory.TASKS, f"[{stored}]: {warning}")

    def _check_prompt(self, stage: Stage, report: CheckReport) -> None:
        try:
            compiled = self.compile_prompt(stage)
        except MissingDependencyError:
            return
        except (StagewiseError, OSError, UnicodeDecodeError) as e:
            report.add(CheckCategory.PROMPTS, f"Prompt compile ({stage.id}): {e}")
            return
        for finding in self._checker.check(compiled.text, self.lint_rules_for(stage)):
            report.add(CheckCategory.PROMPTS, f"Quality ({stage.id}): {finding}")

    def check(self, *, fail_on_warnings: bool = False) -> CheckReport:
        """Collect advisory warnings about the workspace.

        Stages whose dependencies are not complete are skipped for prompt
        checks, since they are not expected to be reachable yet.

        Raises:
            CheckFailedError: If `fail_on_warnings` is set and any warning
                was found. The exception carries the report.
        """
        report = CheckReport()

        if self.state.protocol and self.state.protocol != self.protocol.name:
            report.add(
                CheckCategory.PROTOCOL,
                f"Protocol drift: state={self.state.protocol} "
                f"protocol={self.protocol.name}",
            )

        for stage in self.protocol.stages:
            if stage.is_review and stage.outputs:
                report.add(
                    CheckCategory.PROTOCOL, f"Review stage {stage.id} declares outputs"
                )
            if self.state.is_completed(stage.id):
                self._check_outputs(stage, report)

        for approval in self.protocol.approvals:
            if self.state.is_completed(approval.stage) and not self.state.has_approval(
                approval.stage, approval.role
            ):
                report.add(
                    CheckCategory.APPROVALS,
                    f"Missing approval for stage {approval.stage} (role: {approval.role})",
                )

        for stage in self.protocol.stages:
            if stage.type == StageType.DECOMPOSE and self.state.is_completed(stage.id):
                self._check_tasks(stage, report)

        for stage in self.protocol.stages:
            if self.is_ready(stage):
                self._check_prompt(stage, report)

        self._logger.info("workspace_checked", warnings=report.total)
        if fail_on_warnings and not report.is_empty:
            msg = f"check failed with {report.total} warnings"
            raise CheckFailedError(msg, total=report.total, report=report)
        return report
