# pyright: reportAny=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""Raw configuration layers: the TOML file and STAGEWISE_* environment variables.

Each layer is a plain nested dict. `Config.load` stacks them with
`deep_merge` before validating the result.
"""

import copy
import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import orjson

from stagewise.exceptions import ConfigLoadError

ENV_PREFIX = "STAGEWISE_"

ConfigDict = dict[str, Any]  # pyright: ignore[reportExplicitAny]


def read_toml_file(path: Path) -> ConfigDict:
    """Parse the TOML document at `path`.

    Raises:
        FileNotFoundError: If `path` is missing.
        ConfigLoadError: If the document is not valid TOML.
    """
    raw = path.read_bytes()
    try:
        return tomllib.loads(raw.decode("utf-8"))
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
        msg = f"Failed to parse {path.name}: {e}"
        # lineno and colno exist on Python 3.14+ only.
        raise ConfigLoadError(
            msg,
            path=path,
            line=getattr(e, "lineno", None),
            column=getattr(e, "colno", None),
        ) from e


def deep_merge(base: ConfigDict, override: ConfigDict) -> ConfigDict:
    """Layer `override` on top of `base` and return the combined copy.

    Only tables merge key by key. An array or scalar in `override` wins
    outright. Neither argument is modified.
    """
    merged = copy.deepcopy(base)
    for key, incoming in override.items():
        existing = merged.get(key)
        if isinstance(existing, dict) and isinstance(incoming, dict):
            merged[key] = deep_merge(existing, incoming)
        else:
            merged[key] = copy.deepcopy(incoming)
    return merged


def parse_string_value(value: str) -> Any:  # pyright: ignore[reportExplicitAny]
    """Infer the type of an environment value.

    Tried in order: `true`/`false` in any case, an integer, a float when the
    text has a decimal point, a JSON array or object. Anything else stays a
    string.

    Examples:
        >>> parse_string_value("FALSE")
        False
        >>> parse_string_value("8")
        8
        >>> parse_string_value('["a"]')
        ['a']
    """
    if value.lower() in {"true", "false"}:
        return value.lower() == "true"

    number_type = float if "." in value else int
    try:
        return number_type(value)
    except ValueError:
        pass

    if value[:1] + value[-1:] in {"[]", "{}"}:
        try:
            return orjson.loads(value)
        except orjson.JSONDecodeError:
            pass
    return value


def set_nested_key(data: ConfigDict, dotted_key: str, value: Any) -> None:  # pyright: ignore[reportExplicitAny]
    """Assign `value` at `dotted_key`, replacing non-table intermediates.

    Example:
        >>> data = {"logging": "flat"}
        >>> set_nested_key(data, "logging.file", "cli.log")
        >>> data
        {'logging': {'file': 'cli.log'}}
    """
    *tables, leaf = dotted_key.split(".")
    node = data
    for table in tables:
        child = node.get(table)
        if not isinstance(child, dict):
            child = node[table] = {}
        node = child
    node[leaf] = value


def parse_env_vars(
    prefix: str = ENV_PREFIX,
    environ: Mapping[str, str] | None = None,
) -> ConfigDict:
    """Build a config layer from prefixed environment variables.

    A double underscore nests, so `STAGEWISE_LOGGING__LEVEL=debug` yields
    `{"logging": {"level": "debug"}}`. Keys are lowercased and values typed
    with `parse_string_value`. The bare prefix is ignored.
    """
    layer: ConfigDict = {}
    for name, raw in (os.environ if environ is None else environ).items():
        key = name.removeprefix(prefix)
        if key == name or not key:
            continue
        set_nested_key(layer, key.replace("__", ".").lower(), parse_string_value(raw))
    return layer
