"""
Orchestrator - Preconditions.

============================================================
RESPONSIBILITY
============================================================
Hard gates checked before any module action runs.

- Network reachability (TCP probe, optional networking restart)
- Required background service active (optional restart)
- Free memory and free disk above hard-coded minimums

A failing check blocks the run outright. This is distinct
from the advisory dependency gate in resolver.py.

============================================================
"""

import logging
import socket
import subprocess
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence

import psutil

from .models import OrchestratorConfig, PreconditionResult
from core.constants import (
    NETWORK_PROBE_TIMEOUT_SECONDS,
    NETWORK_RECOVERY_WAIT_SECONDS,
)


CommandRunner = Callable[[Sequence[str]], int]
"""Runs a command, returns its exit code."""


def run_command(command: Sequence[str]) -> int:
    """Run a system command quietly and return the exit code."""
    try:
        completed = subprocess.run(
            list(command),
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except OSError as e:
        logging.getLogger(__name__).error(f"Command failed to start: {' '.join(command)}: {e}")
        return 127
    return completed.returncode


# ============================================================
# PRECONDITION BASE
# ============================================================

class Precondition(ABC):
    """A single hard gate."""

    name: str = "precondition"

    def __init__(self):
        self._logger = logging.getLogger(__name__)

    @abstractmethod
    def check(self) -> PreconditionResult:
        """Evaluate the gate."""

    def _passed(self, message: str = "") -> PreconditionResult:
        return PreconditionResult(name=self.name, passed=True, message=message)

    def _failed(self, message: str) -> PreconditionResult:
        return PreconditionResult(name=self.name, passed=False, message=message)


# ============================================================
# NETWORK
# ============================================================

class NetworkPrecondition(Precondition):
    """Internet reachability via a TCP probe."""

    name = "network"

    def __init__(
        self,
        host: str,
        port: int,
        timeout: float = NETWORK_PROBE_TIMEOUT_SECONDS,
        attempt_recovery: bool = True,
        recovery_wait: float = NETWORK_RECOVERY_WAIT_SECONDS,
        command_runner: CommandRunner = run_command,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__()
        self._host = host
        self._port = port
        self._timeout = timeout
        self._attempt_recovery = attempt_recovery
        self._recovery_wait = recovery_wait
        self._run = command_runner
        self._sleep = sleep

    def probe(self) -> bool:
        try:
            with socket.create_connection((self._host, self._port), timeout=self._timeout):
                return True
        except OSError:
            return False

    def check(self) -> PreconditionResult:
        if self.probe():
            return self._passed(f"{self._host}:{self._port} reachable")

        if not self._attempt_recovery:
            return self._failed(f"Network unreachable ({self._host}:{self._port})")

        self._logger.error("Network connection lost. Attempting to restore connection...")
        self._run(["systemctl", "restart", "networking"])
        self._sleep(self._recovery_wait)
        if self.probe():
            return self._passed("Network connection restored")

        self._logger.error("Failed to restore network connection.")
        return self._failed(f"Network unreachable ({self._host}:{self._port})")


# ============================================================
# SERVICE
# ============================================================

class ServicePrecondition(Precondition):
    """A systemd service must be active."""

    name = "service"

    def __init__(
        self,
        service: str,
        attempt_recovery: bool = True,
        command_runner: CommandRunner = run_command,
    ):
        super().__init__()
        self._service = service
        self._attempt_recovery = attempt_recovery
        self._run = command_runner

    def is_active(self) -> bool:
        return self._run(["systemctl", "is-active", "--quiet", self._service]) == 0

    def check(self) -> PreconditionResult:
        if self.is_active():
            return self._passed(f"{self._service} active")

        if not self._attempt_recovery:
            return self._failed(f"Service {self._service} is not running")

        self._logger.error(f"{self._service} service is not running. Attempting to restart...")
        self._run(["systemctl", "restart", self._service])
        if self.is_active():
            return self._passed(f"{self._service} restarted")

        self._logger.error(f"Failed to restart {self._service} service.")
        return self._failed(f"Service {self._service} is not running")


# ============================================================
# RESOURCES
# ============================================================

class ResourcePrecondition(Precondition):
    """Free memory and free disk above minimums (KiB)."""

    name = "resources"

    def __init__(
        self,
        min_free_memory_kb: int,
        min_free_disk_kb: int,
        disk_path: str = "/",
    ):
        super().__init__()
        self._min_memory_kb = min_free_memory_kb
        self._min_disk_kb = min_free_disk_kb
        self._disk_path = disk_path

    def check(self) -> PreconditionResult:
        memory_kb = psutil.virtual_memory().available // 1024
        disk_kb = psutil.disk_usage(self._disk_path).free // 1024

        if memory_kb < self._min_memory_kb:
            message = f"Low memory detected ({memory_kb}K free). Some operations may fail."
            self._logger.warning(message)
            return self._failed(message)

        if disk_kb < self._min_disk_kb:
            message = f"Low disk space detected ({disk_kb}K free). Some operations may fail."
            self._logger.warning(message)
            return self._failed(message)

        return self._passed(f"{memory_kb}K memory, {disk_kb}K disk free")


# ============================================================
# CHECKER
# ============================================================

class PreconditionChecker:
    """Runs hard gates in order, stopping at the first failure."""

    def __init__(self, preconditions: Sequence[Precondition] = ()):
        self._preconditions = list(preconditions)
        self._logger = logging.getLogger(__name__)

    @property
    def preconditions(self) -> List[Precondition]:
        return list(self._preconditions)

    def check_all(self) -> Optional[PreconditionResult]:
        """
        Evaluate every gate.

        Returns:
            The first failing result, or None if all passed
        """
        for precondition in self._preconditions:
            try:
                result = precondition.check()
            except Exception as e:
                self._logger.error(f"Precondition {precondition.name} raised: {e}", exc_info=True)
                result = PreconditionResult(
                    name=precondition.name,
                    passed=False,
                    message=f"Check raised {type(e).__name__}: {e}",
                )
            if not result.passed:
                return result
            self._logger.debug(f"Precondition {result.name} passed: {result.message}")
        return None

    @classmethod
    def from_config(cls, config: OrchestratorConfig) -> "PreconditionChecker":
        return cls([
            NetworkPrecondition(
                host=config.network_probe_host,
                port=config.network_probe_port,
                attempt_recovery=config.precondition_recovery,
            ),
            ServicePrecondition(
                service=config.required_service,
                attempt_recovery=config.precondition_recovery,
            ),
            ResourcePrecondition(
                min_free_memory_kb=config.min_free_memory_kb,
                min_free_disk_kb=config.min_free_disk_kb,
            ),
        ])


# ============================================================
# SYSTEM REPORT
# ============================================================

def collect_system_report(disk_path: str = "/") -> Dict[str, Any]:
    """Resource and address snapshot for the System Check action."""
    report: Dict[str, Any] = {}

    try:
        report["load_average"] = psutil.getloadavg()[0]
    except (AttributeError, OSError):
        report["load_average"] = None

    memory = psutil.virtual_memory()
    report["memory_used_pct"] = memory.percent
    report["memory_available_mb"] = memory.available / (1024 * 1024)

    disk = psutil.disk_usage(disk_path)
    report["disk_used_pct"] = disk.percent
    report["disk_free_mb"] = disk.free / (1024 * 1024)

    addresses = []
    for interface, entries in psutil.net_if_addrs().items():
        for entry in entries:
            if entry.family == socket.AF_INET and not entry.address.startswith("127."):
                addresses.append(f"{interface}: {entry.address}")
    report["ip_addresses"] = addresses

    return report


def format_system_report(report: Dict[str, Any], network_ok: Optional[bool] = None) -> str:
    load = report.get("load_average")
    lines = [
        "System Resources:",
        f"  CPU Load:         {load:.2f}" if load is not None else "  CPU Load:         n/a",
        f"  Memory Used:      {report['memory_used_pct']:.1f}%",
        f"  Memory Available: {report['memory_available_mb']:.0f} MB",
        f"  Disk Used:        {report['disk_used_pct']:.1f}%",
        f"  Disk Free:        {report['disk_free_mb']:.0f} MB",
        "",
        "Network Connection:",
    ]
    addresses = report.get("ip_addresses") or ["no IPv4 address"]
    lines.extend(f"  {address}" for address in addresses)
    if network_ok is not None:
        lines.append(f"  Internet:         {'reachable' if network_ok else 'unreachable'}")
    return "\n".join(lines)


__all__ = [
    "CommandRunner",
    "run_command",
    "Precondition",
    "NetworkPrecondition",
    "ServicePrecondition",
    "ResourcePrecondition",
    "PreconditionChecker",
    "collect_system_report",
    "format_system_report",
]
