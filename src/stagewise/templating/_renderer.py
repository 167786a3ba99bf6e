"""Prompt template rendering."""

from collections.abc import Mapping
from pathlib import Path
from typing import Protocol, cast

import jinja2
import yaml
from pydantic import BaseModel

from stagewise.exceptions import ArtifactPathError, TemplateError
from stagewise.workspace import normalize_relative_path

from ._environment import EnvironmentConfig, create_environment


class TemplateRenderer(Protocol):
    """Renders a template reference with a context into prompt text."""

    def render(
        self, template: str, context: BaseModel | Mapping[str, object]
    ) -> str: ...


def strip_frontmatter(content: str) -> str:
    """Return `content` without a leading YAML frontmatter block.

    Content without a well-formed `---` delimited mapping is returned as is.
    """
    if not content.startswith("---"):
        return content
    end_marker = content.find("\n---", 3)
    if end_marker == -1:
        return content
    try:
        data = yaml.safe_load(content[3:end_marker])
    except yaml.YAMLError:
        return content
    if not isinstance(data, dict):
        return content
    return content[end_marker + 4 :].lstrip("\n")


def _context_dict(context: BaseModel | Mapping[str, object]) -> dict[str, object]:
    if isinstance(context, BaseModel):
        return context.model_dump()
    return dict(context)


def render_template_string(
    template_str: str,
    context: BaseModel | Mapping[str, object],
    *,
    env: jinja2.Environment | None = None,
) -> str:
    """Render an inline Jinja2 template string.

    Raises:
        TemplateError: If the template is malformed or fails to render.
    """
    try:
        template = (env or jinja2.Environment()).from_string(template_str)  # noqa: S701
        return cast("str", template.render(_context_dict(context)))
    except jinja2.TemplateError as e:
        msg = f"Failed to render inline template: {e}"
        raise TemplateError(msg, template="<string>") from e


class JinjaTemplateRenderer:
    """Render prompt templates stored under a templates directory.

    Template references are paths relative to the directory; references that
    are absolute or climb out of it are rejected. A YAML frontmatter block at
    the top of a template is not rendered.
    """

    def __init__(
        self, templates_dir: Path, *, config: EnvironmentConfig | None = None
    ) -> None:
        self.templates_dir: Path = templates_dir
        self._env: jinja2.Environment = create_environment(
            (templates_dir,), config=config
        )

    def render(self, template: str, context: BaseModel | Mapping[str, object]) -> str:
        """Render `template` with `context`.

        Raises:
            TemplateError: If the reference is unsafe, the file is missing, or
                rendering fails.
        """
        try:
            relative = normalize_relative_path(template)
        except ArtifactPathError as e:
            msg = f"Invalid template reference {template!r}: {e}"
            raise TemplateError(msg, template=template) from e

        path = self.templates_dir / relative
        if not path.is_file():
            msg = f"Template not found: {relative} (in {self.templates_dir})"
            raise TemplateError(msg, template=template)

        body = strip_frontmatter(path.read_text(encoding="utf-8"))
        try:
            compiled = self._env.from_string(body)
            return cast("str", compiled.render(_context_dict(context)))
        except jinja2.TemplateError as e:
            msg = f"Failed to render template {relative}: {e}"
            raise TemplateError(msg, template=template) from e
