"""
Orchestrator - Models.

============================================================
RESPONSIBILITY
============================================================
Defines data models for the setup orchestrator.

- Module status (persisted) and execution result (ephemeral)
- Module records held by the registry
- Precondition and batch results
- Configuration dataclass

============================================================
"""

from enum import Enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
import os

from core.constants import (
    DEFAULT_LOCK_FILE,
    DEFAULT_MODULE_TIMEOUT_SECONDS,
    DEFAULT_NETWORK_PROBE_HOST,
    DEFAULT_NETWORK_PROBE_PORT,
    DEFAULT_REQUIRED_SERVICE,
    ENV_FILE_NAME,
    LOG_DIR_NAME,
    LOG_FILE_NAME,
    MIN_FREE_DISK_KB,
    MIN_FREE_MEMORY_KB,
    MODULES_DIR_NAME,
    PROGRESS_FILE_NAME,
)


PROJECT_ROOT = Path(__file__).resolve().parent.parent

ModuleAction = Callable[[], Any]
"""Zero-argument callable; a truthy return means success."""


# ============================================================
# MODULE STATUS
# ============================================================

class ModuleStatus(Enum):
    """
    Module completion status.

    Values are the literal strings written to the progress file.
    """

    NOT_EXECUTED = "Not Executed"
    """Module has never run (or progress was reset)."""

    READY = "Ready"
    """All dependencies are Successful; recommended to run next."""

    SUCCESSFUL = "Successful"
    """Last run succeeded."""

    FAILED = "Failed"
    """Last run failed, timed out, or was blocked."""

    @property
    def glyph(self) -> str:
        """Menu status glyph."""
        return _GLYPHS[self]

    @classmethod
    def parse(cls, text: str) -> Optional["ModuleStatus"]:
        """Parse a progress-file literal, None if unknown."""
        try:
            return cls(text.strip())
        except ValueError:
            return None


_GLYPHS = {
    ModuleStatus.NOT_EXECUTED: "[ ]",
    ModuleStatus.READY: "[*]",
    ModuleStatus.SUCCESSFUL: "[✓]",
    ModuleStatus.FAILED: "[✗]",
}


# ============================================================
# EXECUTION RESULT
# ============================================================

class ExecutionResult(Enum):
    """Outcome of one module run. Never persisted."""

    SUCCESS = "success"
    FAILURE = "failure"
    ACTION_NOT_FOUND = "action_not_found"
    PRECONDITION_FAILED = "precondition_failed"
    TIMED_OUT = "timed_out"

    @property
    def is_success(self) -> bool:
        return self == ExecutionResult.SUCCESS

    @property
    def resulting_status(self) -> ModuleStatus:
        """Module status this result transitions to."""
        if self.is_success:
            return ModuleStatus.SUCCESSFUL
        return ModuleStatus.FAILED

    @property
    def description(self) -> str:
        """Human-readable reason for dialogs."""
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    ExecutionResult.SUCCESS: "Executed successfully",
    ExecutionResult.FAILURE: "Module reported a failure",
    ExecutionResult.ACTION_NOT_FOUND: "Module action not found",
    ExecutionResult.PRECONDITION_FAILED: "Pre-execution checks failed",
    ExecutionResult.TIMED_OUT: "Module timed out",
}


# ============================================================
# MODULE
# ============================================================

@dataclass
class Module:
    """Registry record of one provisioning module."""

    name: str
    """Unique module name, also the menu label."""

    dependencies: Tuple[str, ...] = ()
    """Names of modules that should succeed first."""

    status: ModuleStatus = ModuleStatus.NOT_EXECUTED

    version: Optional[str] = None
    """Version shown next to the name, if known."""

    action: Optional[ModuleAction] = None
    """Bound action; None means unresolved."""

    dependencies_overridden: bool = False
    """Last run started while dependencies were unmet."""

    last_result: Optional[ExecutionResult] = None

    batch_notice: Optional[str] = None
    """Shown before a Complete Install reaches this module; the module
    then runs with its prompts and retry dialog."""

    @property
    def label(self) -> str:
        """Menu label without the glyph."""
        parts = [self.name]
        if self.version:
            parts.append(f"(v{self.version})")
        if self.dependencies:
            parts.append(f"[Depends on: {', '.join(self.dependencies)}]")
        if self.dependencies_overridden:
            parts.append("(deps overridden)")
        return " ".join(parts)


# ============================================================
# PRECONDITION RESULT
# ============================================================

@dataclass(frozen=True)
class PreconditionResult:
    """Outcome of one hard precondition check."""

    name: str
    passed: bool
    message: str = ""


# ============================================================
# BATCH RESULT
# ============================================================

@dataclass
class BatchResult:
    """Outcome of a sequential run over all modules."""

    results: Dict[str, ExecutionResult] = field(default_factory=dict)

    def add(self, name: str, result: ExecutionResult) -> None:
        self.results[name] = result

    @property
    def succeeded(self) -> List[str]:
        return [name for name, r in self.results.items() if r.is_success]

    @property
    def failed(self) -> List[str]:
        return [name for name, r in self.results.items() if not r.is_success]

    @property
    def all_succeeded(self) -> bool:
        return not self.failed


# ============================================================
# ORCHESTRATOR CONFIGURATION
# ============================================================

def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class OrchestratorConfig:
    """Configuration for the setup orchestrator."""

    base_dir: Path = PROJECT_ROOT
    """Directory holding progress, logs and credentials."""

    progress_file: Optional[Path] = None
    log_file: Optional[Path] = None
    env_file: Optional[Path] = None
    modules_dir: Optional[Path] = None

    lock_file: Path = Path(DEFAULT_LOCK_FILE)
    """Process singleton lock."""

    module_timeout_seconds: float = DEFAULT_MODULE_TIMEOUT_SECONDS

    debug: bool = False
    """Enables DEBUG log lines."""

    log_to_console: bool = False

    require_root: bool = True

    # Preconditions
    network_probe_host: str = DEFAULT_NETWORK_PROBE_HOST
    network_probe_port: int = DEFAULT_NETWORK_PROBE_PORT
    required_service: str = DEFAULT_REQUIRED_SERVICE
    min_free_memory_kb: int = MIN_FREE_MEMORY_KB
    min_free_disk_kb: int = MIN_FREE_DISK_KB
    precondition_recovery: bool = True
    """Try restarting networking/services before failing a check."""

    def __post_init__(self) -> None:
        self.base_dir = Path(self.base_dir)
        if self.progress_file is None:
            self.progress_file = self.base_dir / PROGRESS_FILE_NAME
        if self.log_file is None:
            self.log_file = self.base_dir / LOG_DIR_NAME / LOG_FILE_NAME
        if self.env_file is None:
            self.env_file = self.base_dir / ENV_FILE_NAME
        if self.modules_dir is None:
            self.modules_dir = self.base_dir / MODULES_DIR_NAME
        self.progress_file = Path(self.progress_file)
        self.log_file = Path(self.log_file)
        self.env_file = Path(self.env_file)
        self.modules_dir = Path(self.modules_dir)
        self.lock_file = Path(self.lock_file)

    @classmethod
    def from_env(cls) -> "OrchestratorConfig":
        """Load configuration from environment variables."""
        def optional_path(name: str) -> Optional[Path]:
            value = os.getenv(name)
            return Path(value) if value else None

        return cls(
            base_dir=Path(os.getenv("SETUP_BASE_DIR", str(PROJECT_ROOT))),
            progress_file=optional_path("SETUP_PROGRESS_FILE"),
            log_file=optional_path("SETUP_LOG_FILE"),
            env_file=optional_path("SETUP_ENV_FILE"),
            modules_dir=optional_path("SETUP_MODULES_DIR"),
            lock_file=Path(os.getenv("SETUP_LOCK_FILE", DEFAULT_LOCK_FILE)),
            module_timeout_seconds=float(
                os.getenv("MODULE_TIMEOUT_SECONDS", str(DEFAULT_MODULE_TIMEOUT_SECONDS))
            ),
            debug=_env_bool("DEBUG", False),
            log_to_console=_env_bool("LOG_TO_CONSOLE", False),
            require_root=_env_bool("SETUP_REQUIRE_ROOT", True),
            network_probe_host=os.getenv("NETWORK_PROBE_HOST", DEFAULT_NETWORK_PROBE_HOST),
            network_probe_port=int(os.getenv("NETWORK_PROBE_PORT", str(DEFAULT_NETWORK_PROBE_PORT))),
            required_service=os.getenv("REQUIRED_SERVICE", DEFAULT_REQUIRED_SERVICE),
            min_free_memory_kb=int(os.getenv("MIN_FREE_MEMORY_KB", str(MIN_FREE_MEMORY_KB))),
            min_free_disk_kb=int(os.getenv("MIN_FREE_DISK_KB", str(MIN_FREE_DISK_KB))),
            precondition_recovery=_env_bool("PRECONDITION_RECOVERY", True),
        )

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if self.module_timeout_seconds <= 0:
            errors.append("module_timeout_seconds must be positive")

        if self.min_free_memory_kb < 0:
            errors.append("min_free_memory_kb must not be negative")

        if self.min_free_disk_kb < 0:
            errors.append("min_free_disk_kb must not be negative")

        if not 0 < self.network_probe_port < 65536:
            errors.append("network_probe_port must be between 1 and 65535")

        if not self.required_service:
            errors.append("required_service must not be empty")

        return errors


__all__ = [
    "PROJECT_ROOT",
    "ModuleAction",
    "ModuleStatus",
    "ExecutionResult",
    "Module",
    "PreconditionResult",
    "BatchResult",
    "OrchestratorConfig",
]
