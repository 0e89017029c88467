"""
Orchestrator - Progress Store.

============================================================
RESPONSIBILITY
============================================================
Persists module statuses across runs.

- One "name:status" line per module, no header
- Full rewrite on every save under an exclusive flock
- Reads under a shared flock; malformed lines are skipped
- A missing file is the normal first-run case

The lock lives on a sidecar "<progress>.lock" file, distinct
from the process singleton lock.

============================================================
"""

import fcntl
import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Union

from .models import ModuleStatus
from .registry import ModuleRegistry
from core.constants import PROGRESS_LOCK_SUFFIX
from core.exceptions import PersistenceError


SEPARATOR = ":"


def format_record(name: str, status: ModuleStatus) -> str:
    return f"{name}{SEPARATOR}{status.value}"


def parse_record(line: str):
    """
    Parse one progress line.

    Returns:
        (name, status) or None if the line is malformed
    """
    line = line.rstrip("\r\n")
    if SEPARATOR not in line:
        return None
    name, _, raw_status = line.partition(SEPARATOR)
    name = name.strip()
    status = ModuleStatus.parse(raw_status)
    if not name or status is None:
        return None
    return name, status


class ProgressStore:
    """File-backed progress snapshot."""

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._lock_path = self._path.with_name(self._path.name + PROGRESS_LOCK_SUFFIX)
        self._logger = logging.getLogger(__name__)

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def _locked(self, operation: int) -> Iterator[None]:
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._lock_path, "a") as lock_file:
            fcntl.flock(lock_file.fileno(), operation)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def save(self, registry: ModuleRegistry) -> None:
        """
        Rewrite the progress file from the registry.

        Raises:
            PersistenceError: On any I/O failure
        """
        self._logger.info("Saving progress...")
        lines = [format_record(name, status) for name, status in registry.statuses().items()]
        try:
            with self._locked(fcntl.LOCK_EX):
                with open(self._path, "w", encoding="utf-8") as f:
                    for line in lines:
                        f.write(line + "\n")
                    f.flush()
                    os.fsync(f.fileno())
        except OSError as e:
            self._logger.error(f"Failed to save progress to {self._path}: {e}")
            raise PersistenceError(
                f"Failed to save progress: {e}",
                path=str(self._path),
                cause=e,
            )

        self._logger.info(f"Progress saved to {self._path}")
        for line in lines:
            self._logger.debug(line)

    def load(self) -> Dict[str, ModuleStatus]:
        """
        Read the progress file.

        Returns:
            Status per module name; empty if the file does not exist

        Raises:
            PersistenceError: If the file exists but cannot be read
        """
        self._logger.info("Loading progress...")
        if not self._path.exists():
            self._logger.info("No progress file found. Starting fresh.")
            return {}

        statuses: Dict[str, ModuleStatus] = {}
        try:
            with self._locked(fcntl.LOCK_SH):
                with open(self._path, "rb") as f:
                    for line_number, raw in enumerate(f, 1):
                        try:
                            line = raw.decode("utf-8")
                        except UnicodeDecodeError:
                            self._logger.debug(f"Skipping undecodable progress line {line_number}")
                            continue
                        record = parse_record(line)
                        if record is None:
                            if line.strip():
                                self._logger.debug(
                                    f"Skipping malformed progress line {line_number}: {line.rstrip()}"
                                )
                            continue
                        name, status = record
                        statuses[name] = status
                        self._logger.info(f"Loaded: {name} = {status.value}")
        except FileNotFoundError:
            return {}
        except OSError as e:
            self._logger.error(f"Failed to load progress from {self._path}: {e}")
            raise PersistenceError(
                f"Failed to load progress: {e}",
                path=str(self._path),
                cause=e,
            )

        self._logger.info(f"Progress loaded from {self._path}")
        return statuses

    def clear(self) -> None:
        """Delete the progress file."""
        try:
            with self._locked(fcntl.LOCK_EX):
                self._path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise PersistenceError(
                f"Failed to remove progress file: {e}",
                path=str(self._path),
                cause=e,
            )


__all__ = [
    "ProgressStore",
    "format_record",
    "parse_record",
]
