"""Project configuration loading."""

from ._defaults import DEFAULT_CONFIG, DEFAULT_PROTOCOL_NAME
from ._loader import (
    ENV_PREFIX,
    deep_merge,
    parse_env_vars,
    parse_string_value,
    read_toml_file,
    set_nested_key,
)
from ._models import Config, LogFormat, LoggingConfig, LogLevel

__all__ = [
    "DEFAULT_CONFIG",
    "DEFAULT_PROTOCOL_NAME",
    "ENV_PREFIX",
    "Config",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "deep_merge",
    "parse_env_vars",
    "parse_string_value",
    "read_toml_file",
    "set_nested_key",
]
