"""Durable load and save of the workflow state document."""

from pathlib import Path

import orjson
from pydantic import ValidationError

from stagewise.exceptions import StateIOError, StateParseError
from stagewise.utils import atomic_write_bytes, dumps_json, read_json_bytes

from ._models import WorkflowState


def load_state(path: Path) -> WorkflowState:
    """Load workflow state from disk.

    A missing or empty file yields a fresh state. Collections absent from the
    document (or stored as null) are back-filled with empty values.

    Raises:
        StateIOError: If the file exists but cannot be read.
        StateParseError: If the content is not a valid state document.
    """
    try:
        content = path.read_bytes()
    except FileNotFoundError:
        return WorkflowState()
    except OSError as e:
        msg = f"Failed to read state file {path}: {e}"
        raise StateIOError(msg, path=path, operation="read", cause=e) from e

    if not content.strip():
        return WorkflowState()

    try:
        data = read_json_bytes(content)
    except orjson.JSONDecodeError as e:
        msg = f"Invalid JSON in state file {path}: {e}"
        raise StateParseError(msg, path=path, cause=e) from e

    if not isinstance(data, dict):
        msg = f"State file {path} must contain a JSON object"
        raise StateParseError(msg, path=path)

    try:
        return WorkflowState.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid state document {path}: {e.error_count()} validation error(s)"
        raise StateParseError(msg, path=path, cause=e) from e


def save_state(path: Path, state: WorkflowState) -> None:
    """Write workflow state atomically.

    The document is written to a temporary file beside `path`, synced, and
    renamed into place; the existing file is untouched on failure.

    Raises:
        StateIOError: If any step of the write fails.
    """
    content = dumps_json(state.model_dump(mode="json"))
    try:
        atomic_write_bytes(path, content)
    except OSError as e:
        msg = f"Failed to write state file {path}: {e}"
        raise StateIOError(msg, path=path, operation="write", cause=e) from e
