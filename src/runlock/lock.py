# src/runlock/lock.py — v1
"""Per-repository advisory lock so only one gitdoc run mutates state at a time."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from gitdoc.core.errors import AlreadyRunningError

logger = logging.getLogger(__name__)

LOCK_RELATIVE_PATH = Path(".git-doc") / "run.lock"


class RunLock:
    """Lock file holding the owner's pid.

    Usage:
        with RunLock.acquire(repo_root):
            ...
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    @classmethod
    def acquire(cls, repo_root: Path | str) -> RunLock:
        """Create the lock file, clearing a stale one first.

        Raises:
            AlreadyRunningError: If a live process owns the lock.
        """
        path = Path(repo_root) / LOCK_RELATIVE_PATH
        path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

        if path.exists():
            pid = _read_pid(path)
            if pid is not None and _process_alive(pid):
                raise AlreadyRunningError(pid)
            logger.info("Removing stale run lock %s (pid=%s)", path, pid)
            path.unlink(missing_ok=True)

        payload = json.dumps(
            {"pid": os.getpid(), "created_at": datetime.now(timezone.utc).isoformat()}
        )
        fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(payload)
        return cls(path)

    def release(self) -> None:
        self._path.unlink(missing_ok=True)

    def __enter__(self) -> RunLock:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


def _read_pid(path: Path) -> int | None:
    try:
        text = path.read_text(encoding="utf-8").strip()
    except OSError:
        return None
    if not text:
        return None
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("pid"), int) and payload["pid"] > 0:
        return payload["pid"]
    try:
        return int(text)
    except ValueError:
        return None


def _process_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except OSError:
        return False
    return True
