"""Atomic file writes for small state files."""

import os
import tempfile
from pathlib import Path


def atomic_write_text(path: Path, content: str, encoding: str = "utf-8", mode: int | None = None) -> None:
    """Write content to a file atomically using temp file + rename.

    If the process crashes mid-write, the original file is preserved.
    ``mode`` is applied before the rename, so the final path is never
    readable with looser permissions.
    """
    path = Path(path)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding=encoding) as f:
            f.write(content)
        if mode is not None:
            os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except BaseException:
        os.unlink(tmp_path)
        raise
