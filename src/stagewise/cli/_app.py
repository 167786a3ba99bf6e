"""The command-line interface for stagewise."""
# ruff: noqa: TC003  # Path needed at runtime for cyclopts parameter parsing

from pathlib import Path
from typing import Annotated

from cyclopts import App, Parameter
from rich.console import Console

from stagewise.protocol import ProtocolSource

from ._commands import register_commands
from ._commands._context import CLIContext

_HELP = "Stage-gated workspace engine for spec-driven development."


def create_app(
    console: Console | None = None,
    error_console: Console | None = None,
    *,
    exit_on_error: bool = True,
) -> App:
    """Build the CLI app.

    Global options are handled by the meta app, so invoke the result through
    `app.meta(...)` for them to apply.
    """
    if console is None:
        console = Console()
    if error_console is None:
        error_console = Console(stderr=True)
    app = App(
        name="stagewise",
        help=_HELP,
        help_on_error=True,
        console=console,
        error_console=error_console,
        exit_on_error=exit_on_error,
    )

    @app.meta.default
    def _default(  # pyright: ignore[reportUnusedFunction]
        *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
        protocol: Annotated[
            str | None,
            Parameter(name="--protocol", help="Protocol name or path to use"),
        ] = None,
        project_root: Annotated[
            Path | None, Parameter(name="--project-root", help="Path to project root")
        ] = None,
        verbose: Annotated[bool, Parameter(help="Log at debug level")] = False,
    ) -> None:
        """Run a stagewise command with global options.

        Args:
            tokens: Command tokens to pass to subcommands.
            protocol: Protocol override; a name or a path to a protocol file.
            project_root: Path to the project root directory.
            verbose: Write debug-level entries to the command log.
        """
        ctx = CLIContext(
            protocol=ProtocolSource.parse(protocol) if protocol else None,
            project_root=project_root,
            verbose=verbose,
        )
        CLIContext.set_current(ctx)

        try:
            app(tokens)
        finally:
            ctx.resources.close()
            CLIContext.reset()

    register_commands(app)
    return app


app = create_app()


def main() -> None:
    """Default entrypoint for the `stagewise` CLI."""
    create_app().meta()


if __name__ == "__main__":
    main()
