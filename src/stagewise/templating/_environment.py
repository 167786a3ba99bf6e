"""Jinja2 Environment factory."""

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from jinja2 import Environment, FileSystemLoader


@dataclass(slots=True, frozen=True)
class EnvironmentConfig:
    """Configuration for the prompt template Environment.

    Attributes:
        autoescape: Enable autoescaping (off for markdown/text prompts).
        trim_blocks: Remove first newline after a block tag.
        lstrip_blocks: Strip leading whitespace before block tags.
        keep_trailing_newline: Preserve trailing newline in templates.
    """

    autoescape: bool = False
    trim_blocks: bool = True
    lstrip_blocks: bool = True
    keep_trailing_newline: bool = True


def create_environment(
    search_paths: Sequence[Path],
    *,
    config: EnvironmentConfig | None = None,
) -> Environment:
    """Create a Jinja2 Environment loading templates from `search_paths`.

    Templates may `{% include %}` one another by path relative to any
    search path.
    """
    config = config or EnvironmentConfig()
    return Environment(
        loader=FileSystemLoader([str(p) for p in search_paths]),
        autoescape=config.autoescape,  # noqa: S701
        trim_blocks=config.trim_blocks,
        lstrip_blocks=config.lstrip_blocks,
        keep_trailing_newline=config.keep_trailing_newline,
    )
