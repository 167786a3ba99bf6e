# pyright: reportExplicitAny=false, reportAny=false
"""Configuration models.

`Config` is an immutable view of `.stagewise/config.toml` merged over the
built-in defaults and, optionally, `STAGEWISE_*` environment variables.
"""

from enum import StrEnum
from pathlib import Path
from typing import Any, ClassVar, Self

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from stagewise.exceptions import ConfigValidationError
from stagewise.utils import atomic_write_bytes

from ._defaults import DEFAULT_CONFIG, DEFAULT_PROTOCOL_NAME
from ._loader import deep_merge, parse_env_vars, read_toml_file


class LogLevel(StrEnum):
    """Log level threshold values, most verbose first."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LogFormat(StrEnum):
    JSON = "json"
    TEXT = "text"


class LoggingConfig(BaseModel):
    """Logging configuration section.

    Attributes:
        level: Log level threshold. Unknown values fall back to info.
        format: Log output format. Unknown values fall back to json.
        file: Log file path relative to the project root (empty uses
            `.stagewise/logs/cli.log`).
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.JSON
    file: str = ""

    @field_validator("level", mode="before")
    @classmethod
    def _fallback_level(cls, value: Any) -> Any:
        if isinstance(value, str) and value.lower() in LogLevel.__members__.values():
            return value.lower()
        return LogLevel.INFO

    @field_validator("format", mode="before")
    @classmethod
    def _fallback_format(cls, value: Any) -> Any:
        if isinstance(value, str) and value.lower() in LogFormat.__members__.values():
            return value.lower()
        return LogFormat.JSON


class Config(BaseModel):
    """Project configuration.

    Attributes:
        project_name: Display name of the project. Empty means "use the
            project root directory name" (applied by `load`).
        protocol: Name of the active protocol. Empty selects the default.
        language: Implementation language, exposed to prompt templates.
        framework: Primary framework, exposed to prompt templates.
        custom_vars: Free-form template variables.
        constraints: Named constraints rendered into prompts.
        logging: Logging section.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    project_name: str = ""
    protocol: str = ""
    language: str = ""
    framework: str = ""
    custom_vars: dict[str, str] = Field(default_factory=dict)
    constraints: dict[str, str] = Field(default_factory=dict)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("custom_vars", "constraints", mode="before")
    @classmethod
    def _stringify_values(cls, value: Any) -> Any:
        # Environment overrides arrive type-inferred; these tables hold text.
        if isinstance(value, dict):
            return {
                str(k): v if isinstance(v, str) else str(v) for k, v in value.items()
            }
        return value

    @property
    def active_protocol(self) -> str:
        """The configured protocol name, or the default when none is set."""
        return self.protocol.strip() or DEFAULT_PROTOCOL_NAME

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        *,
        source: str | None = None,
    ) -> Self:
        """Create configuration from a dictionary merged over the defaults.

        Raises:
            ConfigValidationError: If a value has the wrong shape.
        """
        merged = deep_merge(DEFAULT_CONFIG, data)
        try:
            return cls.model_validate(merged)
        except ValidationError as e:
            first = e.errors()[0]
            key = ".".join(str(part) for part in first["loc"])
            msg = f"Invalid configuration value for '{key}': {first['msg']}"
            raise ConfigValidationError(
                msg,
                key=key,
                value=first.get("input"),
                expected=first["type"],
                source=source,
            ) from e

    @classmethod
    def from_file(cls, path: Path) -> Self:
        """Load configuration from a single TOML file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigLoadError: If the file cannot be parsed.
            ConfigValidationError: If validation fails.
        """
        return cls.from_dict(read_toml_file(path), source=str(path))

    @classmethod
    def load(
        cls,
        config_path: Path,
        *,
        project_root: Path | None = None,
        include_env: bool = True,
    ) -> Self:
        """Load merged configuration: defaults, then the file, then environment.

        A missing file contributes nothing. When `project_root` is given and
        no project name is configured, the root directory name is used.

        Raises:
            ConfigLoadError: If the file cannot be parsed.
            ConfigValidationError: If the merged configuration is invalid.
        """
        data: dict[str, Any] = {}
        source = None
        if config_path.is_file():
            data = read_toml_file(config_path)
            source = str(config_path)
        if include_env:
            data = deep_merge(data, parse_env_vars())

        config = cls.from_dict(data, source=source)
        if not config.project_name.strip() and project_root is not None:
            config = config.model_copy(update={"project_name": project_root.name})
        return config

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dot-notation key.

        Examples:
            >>> Config().get("logging.level")
            'info'
            >>> Config().get("nonexistent", "fallback")
            'fallback'
        """
        current: Any = self.to_dict()
        for part in key.split("."):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    def to_toml(self) -> str:
        return tomli_w.dumps(self.to_dict())

    def write(self, path: Path) -> None:
        """Write the configuration to `path` atomically."""
        atomic_write_bytes(path, self.to_toml().encode("utf-8"))
