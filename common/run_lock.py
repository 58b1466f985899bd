# common/run_lock.py
# -*- coding: utf-8 -*-
"""
Advisory file lock that keeps two provisioning runs from overlapping.
"""

import fcntl
import logging
import os
from pathlib import Path
from typing import Optional

module_logger = logging.getLogger(__name__)


class RunLock:
    """
    Non-blocking ``fcntl.flock`` on a lock file.

    The lock file stores the owning PID for diagnostics. The lock is released
    when the process exits, even without an explicit release.
    """

    def __init__(self, lock_path: Path, logger: Optional[logging.Logger] = None):
        self.lock_path = Path(lock_path)
        self.logger = logger or module_logger
        self._fd: Optional[int] = None

    def acquire(self) -> bool:
        """Try to take the lock. Returns False when another process holds it."""
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.lock_path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError:
            owner = self.owner_pid()
            os.close(fd)
            self.logger.debug(
                f"Lock {self.lock_path} is held by PID {owner or 'unknown'}."
            )
            return False

        os.ftruncate(fd, 0)
        os.write(fd, str(os.getpid()).encode())
        self._fd = fd
        return True

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None

    def owner_pid(self) -> Optional[int]:
        try:
            content = self.lock_path.read_text().strip()
        except OSError:
            return None
        return int(content) if content.isdigit() else None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def __enter__(self) -> "RunLock":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
