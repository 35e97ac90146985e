# src/docs/fileio.py — v1
"""Line-ending handling and crash-safe document writes."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

CRLF = "\r\n"
LF = "\n"


def detect_line_ending(content: str) -> str:
    return CRLF if CRLF in content else LF


def normalize_line_endings(content: str, line_ending: str) -> str:
    """Rewrite every CRLF, CR or LF in ``content`` as ``line_ending``."""
    normalized = content.replace(CRLF, LF).replace("\r", LF)
    if line_ending == CRLF:
        return normalized.replace(LF, CRLF)
    return normalized


def atomic_write_file(path: Path | str, data: bytes, mode: int = 0o644) -> None:
    """Replace ``path`` with ``data`` so readers see either old or new bytes.

    The payload goes to a temp file in the same directory, is fsynced and
    then renamed over the target. The temp file is removed on any failure.
    """
    target = Path(path)
    fd, tmp_path = tempfile.mkstemp(prefix=".git-doc-tmp-", dir=target.parent)
    try:
        with os.fdopen(fd, "wb") as tmp:
            tmp.write(data)
            os.chmod(tmp_path, mode)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_path, target)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        raise
