"""Shared utilities for stagewise."""

from ._io import atomic_write_bytes, dumps_json, read_json_bytes
from ._logging import LogFormatType, create_cli_logger, get_null_logger
from ._paths import get_assets_dir, get_package_dir

__all__ = [
    "LogFormatType",
    "atomic_write_bytes",
    "create_cli_logger",
    "dumps_json",
    "get_assets_dir",
    "get_null_logger",
    "get_package_dir",
    "read_json_bytes",
]
