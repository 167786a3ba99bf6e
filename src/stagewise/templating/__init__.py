"""Prompt template rendering with Jinja2."""

from ._environment import EnvironmentConfig, create_environment
from ._renderer import (
    JinjaTemplateRenderer,
    TemplateRenderer,
    render_template_string,
    strip_frontmatter,
)

__all__ = [
    "EnvironmentConfig",
    "JinjaTemplateRenderer",
    "TemplateRenderer",
    "create_environment",
    "render_template_string",
    "strip_frontmatter",
]
