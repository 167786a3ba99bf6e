"""Durable file writes and JSON helpers.

All writes go through a temp-file-then-rename pattern so readers in another
process observe either the previous document or the new one, never a partial
write.
"""

import os
import sys
import tempfile
from pathlib import Path
from typing import Any

import orjson
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

__all__ = [
    "RENAME_ATTEMPTS",
    "RENAME_BACKOFF_SECONDS",
    "atomic_write_bytes",
    "dumps_json",
    "read_json_bytes",
]

RENAME_ATTEMPTS = 5
RENAME_BACKOFF_SECONDS = 0.05


def dumps_json(data: dict[str, Any]) -> bytes:  # pyright: ignore[reportExplicitAny]
    """Serialize a mapping to indented, key-sorted JSON with a trailing newline.

    Raises:
        TypeError: If the data contains values orjson cannot serialize.
    """
    return orjson.dumps(data, option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS) + b"\n"


def read_json_bytes(content: bytes) -> Any:  # pyright: ignore[reportExplicitAny]
    """Parse JSON bytes.

    Raises:
        orjson.JSONDecodeError: If the content is not valid JSON.
    """
    return orjson.loads(content)


@retry(
    retry=retry_if_exception_type((PermissionError, FileExistsError)),
    stop=stop_after_attempt(RENAME_ATTEMPTS),
    wait=wait_fixed(RENAME_BACKOFF_SECONDS),
    reraise=True,
)
def _replace_with_retry(source: Path, destination: Path) -> None:
    """Rename `source` over `destination`.

    POSIX rename is atomic and replaces the destination. On Windows the
    destination is removed first and the rename retried with a short backoff,
    which briefly reopens a window where the destination is absent. Any other
    OSError propagates on the first attempt.
    """
    if sys.platform == "win32":
        destination.unlink(missing_ok=True)
    os.replace(source, destination)


def atomic_write_bytes(path: Path, content: bytes) -> None:
    """Write content to a file atomically.

    Writes to a temporary file in the same directory, flushes it to stable
    storage, then renames it over the target path. The temporary file is
    removed on every failure path, and the target is untouched unless the
    final rename succeeds.

    Args:
        path: Destination file path.
        content: Bytes to write.

    Raises:
        OSError: If any step of the write fails.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=path.parent,
            prefix=f".{path.stem}.",
            suffix=".tmp",
            delete=False,
        ) as f:
            temp_path = Path(f.name)
            _ = f.write(content)
            f.flush()
            os.fsync(f.fileno())

        _replace_with_retry(temp_path, path)
    except BaseException:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        raise
