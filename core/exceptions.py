"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the setup orchestrator.

- Provides clear exception hierarchy
- Separates fatal configuration errors from per-module failures
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
SetupException (base)
├── ConfigurationError
│   ├── MissingConfigError
│   ├── InvalidConfigError
│   ├── DuplicateModuleError
│   ├── UnknownModuleError
│   └── DependencyCycleError
├── OrchestrationError
│   ├── StartupError
│   │   └── InstanceLockError
│   └── ModuleError
│       └── ModuleTimeoutError
├── PreconditionError
└── PersistenceError

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, requires attention."""

    HIGH = "high"
    """Serious issue, blocks the current operation."""

    CRITICAL = "critical"
    """Setup cannot continue."""


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    RECOVERABLE = "recoverable"
    """Error can be recovered from by re-running the module."""

    TRANSIENT = "transient"
    """Temporary error, retry may succeed."""

    NON_RECOVERABLE = "non_recoverable"
    """Permanent error, requires operator intervention."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class SetupException(Exception):
    """
    Base exception for all setup orchestrator errors.

    All exceptions carry:
    - severity: how loudly to report
    - context: for debugging
    - recoverable: for error handling decisions
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM
    default_recoverable: bool = True
    default_classification: ErrorClassification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.recoverable = recoverable if recoverable is not None else self.default_recoverable
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_recoverable(self) -> bool:
        """Check if error is recoverable."""
        return self.classification in (
            ErrorClassification.RECOVERABLE,
            ErrorClassification.TRANSIENT,
        )

    @property
    def is_fatal(self) -> bool:
        """Check if error must abort the orchestrator."""
        return self.classification == ErrorClassification.NON_RECOVERABLE

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "recoverable": self.recoverable,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def to_log_format(self) -> str:
        """Format exception for a single log line."""
        text = f"{type(self).__name__}: {self.message}"
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            text += f" | {ctx_str}"
        return text


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(SetupException):
    """Error in configuration. Always fatal at startup."""

    default_severity = Severity.CRITICAL
    default_recoverable = False
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key

        super().__init__(message, context=context, **kwargs)


class MissingConfigError(ConfigurationError):
    """Required configuration value or file is missing."""

    def __init__(self, key: str, source: str = "environment"):
        super().__init__(
            message=f"Missing required configuration: {key} (source: {source})",
            config_key=key,
            context={"source": source},
        )
        self.key = key


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""

    def __init__(self, errors: Sequence[str]):
        super().__init__(
            message=f"Invalid configuration: {'; '.join(errors)}",
            context={"errors": list(errors)},
        )
        self.errors = list(errors)


class DuplicateModuleError(ConfigurationError):
    """A module with the same name is already registered."""

    def __init__(self, name: str):
        super().__init__(
            message=f"Module already registered: {name}",
            context={"module": name},
        )
        self.name = name


class UnknownModuleError(ConfigurationError):
    """Module name is not registered."""

    def __init__(self, name: str, referenced_by: Optional[str] = None):
        if referenced_by:
            message = f"Unknown module '{name}' referenced as dependency of '{referenced_by}'"
        else:
            message = f"Unknown module: {name}"
        context = {"module": name}
        if referenced_by:
            context["referenced_by"] = referenced_by
        super().__init__(message=message, context=context)
        self.name = name
        self.referenced_by = referenced_by


class DependencyCycleError(ConfigurationError):
    """Module dependencies form a cycle."""

    def __init__(self, cycle: List[str]):
        super().__init__(
            message=f"Dependency cycle detected: {' -> '.join(cycle)}",
            context={"cycle": list(cycle)},
        )
        self.cycle = list(cycle)


# ============================================================
# ORCHESTRATION ERRORS
# ============================================================

class OrchestrationError(SetupException):
    """Base class for orchestration-related errors."""

    default_severity = Severity.HIGH
    default_recoverable = False
    default_classification = ErrorClassification.NON_RECOVERABLE


class StartupError(OrchestrationError):
    """Orchestrator startup failed."""

    default_severity = Severity.CRITICAL

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if stage:
            context["stage"] = stage

        super().__init__(message, context=context, **kwargs)


class InstanceLockError(StartupError):
    """Another orchestrator instance holds the singleton lock."""

    def __init__(self, lock_path: str, **kwargs):
        super().__init__(
            message=f"Another instance of the setup is already running (lock: {lock_path})",
            stage="instance_lock",
            context={"lock_path": lock_path},
            **kwargs,
        )
        self.lock_path = lock_path


class ModuleError(OrchestrationError):
    """Module execution error."""

    default_recoverable = True
    default_classification = ErrorClassification.TRANSIENT

    def __init__(
        self,
        message: str,
        module_name: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if module_name:
            context["module_name"] = module_name

        super().__init__(message, context=context, **kwargs)
        self.module_name = module_name


class ModuleTimeoutError(ModuleError):
    """Module action exceeded its wall-clock timeout."""

    def __init__(self, module_name: str, timeout_seconds: float):
        super().__init__(
            message=f"Module {module_name} timed out after {timeout_seconds:g} seconds",
            module_name=module_name,
            context={"timeout_seconds": timeout_seconds},
        )
        self.timeout_seconds = timeout_seconds


# ============================================================
# PRECONDITION ERRORS
# ============================================================

class PreconditionError(SetupException):
    """Environmental precondition blocked a module run."""

    default_severity = Severity.HIGH
    default_recoverable = True
    default_classification = ErrorClassification.TRANSIENT

    def __init__(
        self,
        message: str,
        precondition: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if precondition:
            context["precondition"] = precondition

        super().__init__(message, context=context, **kwargs)
        self.precondition = precondition


# ============================================================
# PERSISTENCE ERRORS
# ============================================================

class PersistenceError(SetupException):
    """Progress could not be written or read."""

    default_severity = Severity.MEDIUM
    default_recoverable = True
    default_classification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if path:
            context["path"] = path

        super().__init__(message, context=context, **kwargs)


# ============================================================
# EXCEPTION UTILITIES
# ============================================================

def classify_exception(exc: Exception) -> ErrorClassification:
    """Classify an exception for error handling."""
    if isinstance(exc, SetupException):
        return exc.classification

    if isinstance(exc, (ConnectionError, TimeoutError, OSError)):
        return ErrorClassification.TRANSIENT

    if isinstance(exc, (ValueError, TypeError, KeyError)):
        return ErrorClassification.RECOVERABLE

    if isinstance(exc, (SystemExit, KeyboardInterrupt, MemoryError)):
        return ErrorClassification.NON_RECOVERABLE

    return ErrorClassification.RECOVERABLE


__all__ = [
    "Severity",
    "ErrorClassification",
    "SetupException",
    "ConfigurationError",
    "MissingConfigError",
    "InvalidConfigError",
    "DuplicateModuleError",
    "UnknownModuleError",
    "DependencyCycleError",
    "OrchestrationError",
    "StartupError",
    "InstanceLockError",
    "ModuleError",
    "ModuleTimeoutError",
    "PreconditionError",
    "PersistenceError",
    "classify_exception",
]
