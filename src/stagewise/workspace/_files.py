"""Tree copy and content hashing helpers used by snapshots."""

import hashlib
import os
import shutil
from pathlib import Path

from stagewise.exceptions import WorkspaceError

__all__ = ["collect_file_hashes", "copy_file", "copy_tree"]

_HASH_CHUNK_SIZE = 1024 * 1024


def _copy_symlink(link: Path, src_root: Path, destination: Path) -> None:
    target = os.readlink(link)
    if Path(target).is_absolute():
        msg = f"absolute links not allowed: {link} -> {target}"
        raise WorkspaceError(msg)

    resolved = (link.parent / target).resolve()
    if not resolved.is_relative_to(src_root.resolve()):
        msg = f"link escapes the copied tree: {link} -> {target}"
        raise WorkspaceError(msg)

    destination.symlink_to(target)


def copy_tree(src: Path, dst: Path, *, allow_symlinks: bool = False) -> None:
    """Copy a directory tree, creating an empty destination if `src` is absent.

    Regular files keep their permission bits. Symbolic links are refused
    unless `allow_symlinks` is set, in which case relative links that stay
    inside `src` are recreated as links and absolute links are rejected.

    Args:
        src: Source directory.
        dst: Destination directory. Created if missing.
        allow_symlinks: Recreate safe relative links instead of failing.

    Raises:
        WorkspaceError: If a disallowed link is encountered or `src` is not
            a directory.
        OSError: If a filesystem operation fails.
    """
    dst.mkdir(parents=True, exist_ok=True)
    if not src.exists():
        return
    if not src.is_dir():
        msg = f"not a directory: {src}"
        raise WorkspaceError(msg)

    for dirpath, dirnames, filenames in os.walk(src):
        current = Path(dirpath)
        target_dir = dst / current.relative_to(src)

        for name in sorted(dirnames):
            entry = current / name
            if entry.is_symlink():
                if not allow_symlinks:
                    msg = f"symbolic links not allowed: {entry}"
                    raise WorkspaceError(msg)
                _copy_symlink(entry, src, target_dir / name)
            else:
                (target_dir / name).mkdir(exist_ok=True)

        for name in sorted(filenames):
            entry = current / name
            if entry.is_symlink():
                if not allow_symlinks:
                    msg = f"symbolic links not allowed: {entry}"
                    raise WorkspaceError(msg)
                _copy_symlink(entry, src, target_dir / name)
            else:
                _ = shutil.copy2(entry, target_dir / name)


def copy_file(src: Path, dst: Path) -> None:
    """Copy one file, creating parent directories of `dst` as needed.

    Raises:
        OSError: If the source is missing or the copy fails.
    """
    dst.parent.mkdir(parents=True, exist_ok=True)
    _ = shutil.copy2(src, dst)


def _file_sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as f:
        while chunk := f.read(_HASH_CHUNK_SIZE):
            digest.update(chunk)
    return digest.hexdigest()


def collect_file_hashes(root: Path) -> dict[str, str]:
    """Map every regular file under `root` to its SHA-256 hex digest.

    Keys are POSIX paths relative to `root`. A missing root yields an empty
    mapping.
    """
    if not root.is_dir():
        return {}

    hashes: dict[str, str] = {}
    for path in root.rglob("*"):
        if path.is_file():
            hashes[path.relative_to(root).as_posix()] = _file_sha256(path)
    return hashes
