"""Project lock so two planners never write the same lots.yaml."""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path

logger = logging.getLogger(__name__)

MAX_LOCK_AGE = 3600  # 1 hour


def _lock_path(project_dir: Path) -> Path:
    return project_dir / ".tui-chantier" / ".lock"


def _read_lock(lock_file: Path) -> tuple[int, float] | None:
    """Return (pid, timestamp) of a lock file, or None if it is unreadable."""
    try:
        pid_text, stamp_text = lock_file.read_text(encoding="utf-8").strip().split("|")
        return int(pid_text), float(stamp_text)
    except (ValueError, OSError):
        return None


def _is_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except OSError:
        return False
    return True


def _holder(lock_file: Path) -> int | None:
    """PID of a live, fresh lock holder, or None if the lock is free or stale."""
    if not lock_file.exists():
        return None
    info = _read_lock(lock_file)
    if info is None:
        return None
    pid, timestamp = info
    if not _is_alive(pid) or time.time() - timestamp > MAX_LOCK_AGE:
        return None
    return pid


def acquire_lock(project_dir: Path) -> bool:
    """Try to acquire the project lock. Returns True if successful."""
    lock_file = _lock_path(project_dir)
    lock_file.parent.mkdir(parents=True, exist_ok=True)

    holder = _holder(lock_file)
    if holder is not None:
        logger.info("project %s locked by pid %d", project_dir, holder)
        return False
    if lock_file.exists():
        logger.info("removing stale lock %s", lock_file)
        lock_file.unlink(missing_ok=True)

    lock_file.write_text(f"{os.getpid()}|{time.time()}", encoding="utf-8")
    return True


def release_lock(project_dir: Path) -> None:
    """Release the lock if this process holds it."""
    lock_file = _lock_path(project_dir)
    info = _read_lock(lock_file) if lock_file.exists() else None
    if info is not None and info[0] == os.getpid():
        lock_file.unlink(missing_ok=True)


def is_locked(project_dir: Path) -> bool:
    """Check if the project is locked by another process."""
    holder = _holder(_lock_path(project_dir))
    return holder is not None and holder != os.getpid()
