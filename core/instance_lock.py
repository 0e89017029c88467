"""
Core Module - Instance Lock.

============================================================
RESPONSIBILITY
============================================================
Ensures only one orchestrator process runs at a time.

- Non-blocking exclusive flock on a well-known lock file
- Held for the whole process lifetime
- Released on exit; the kernel releases it on crash
- The lock file is never removed, so every process locks
  the same inode

============================================================
"""

import fcntl
import logging
import os
from pathlib import Path
from typing import Optional, Union

from .exceptions import InstanceLockError


class InstanceLock:
    """
    Process-wide singleton lock.

    Usage::

        with InstanceLock("/tmp/setup_iot_system.lock"):
            ...
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._fd: Optional[int] = None
        self._logger = logging.getLogger(__name__)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        """
        Acquire the lock without blocking.

        Raises:
            InstanceLockError: If another process holds the lock
        """
        if self._fd is not None:
            return

        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self._path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            os.close(fd)
            raise InstanceLockError(str(self._path), cause=e)

        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        self._fd = fd
        self._logger.debug(f"Acquired instance lock: {self._path}")

    def release(self) -> None:
        """
        Release the lock.

        The lock file stays in place. Removing it would let a process
        that opened the old file and a process that creates a new one
        both hold a lock.
        """
        if self._fd is None:
            return

        os.ftruncate(self._fd, 0)
        fcntl.flock(self._fd, fcntl.LOCK_UN)
        os.close(self._fd)
        self._fd = None
        self._logger.debug(f"Released instance lock: {self._path}")

    def __enter__(self) -> "InstanceLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


__all__ = ["InstanceLock"]
