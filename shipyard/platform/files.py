"""Filesystem helpers for the two persisted documents.

``atomic_write_*`` replace a file via temp file + rename. The update feed
uses ``rewrite_with_backup`` on top of that, which also keeps a byte copy
of the original beside it until the rewrite has been verified.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path

__all__ = [
    "atomic_write_bytes",
    "atomic_write_text",
    "backup_path_for",
    "rewrite_with_backup",
]


def atomic_write_bytes(path: Path, content: bytes) -> None:
    """Write bytes to path atomically using temp file + replace."""
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.",
        suffix=".tmp",
        dir=str(path.parent),
    )
    tmp_path = Path(tmp_name)

    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def atomic_write_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    atomic_write_bytes(path, content.encode(encoding))


def backup_path_for(path: Path) -> Path:
    return path.with_name(f"{path.name}.backup")


def rewrite_with_backup(
    path: Path,
    transform: Callable[[bytes], bytes],
    *,
    write: Callable[[Path, bytes], None] = atomic_write_bytes,
) -> bytes:
    """Rewrite ``path`` with ``transform(original)``, restoring on failure.

    The original is copied to ``<name>.backup`` first. The new content is
    written through a temp file and read back; on any error (including a
    short or corrupted write) the backup is moved back over ``path`` and
    the error propagates. The backup is deleted only once the rewrite is
    verified.

    A backup left behind by an interrupted run is never overwritten.

    Raises:
        FileExistsError: if ``<name>.backup`` already exists.

    Returns:
        The bytes now stored at ``path``.
    """
    backup = backup_path_for(path)
    if backup.exists():
        raise FileExistsError(
            f"stale backup {backup} from an interrupted update; "
            f"restore or remove it before rewriting {path.name}"
        )
    shutil.copy2(path, backup)

    try:
        original = backup.read_bytes()
        updated = transform(original)
        write(path, updated)
        if path.read_bytes() != updated:
            raise OSError(f"verification failed after rewriting {path}")
    except BaseException:
        os.replace(backup, path)
        raise

    backup.unlink()
    return updated
