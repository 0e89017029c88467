"""
Orchestrator - Module Runner.

============================================================
RESPONSIBILITY
============================================================
Executes a single module and classifies the outcome.

1. Hard preconditions (block on failure)
2. Soft dependency gate (warn only)
3. Resolve the bound action
4. Run the action in a child process under a timeout
5. Map the outcome to an ExecutionResult and a module status

============================================================
ISOLATION AND TIMEOUT
============================================================
The action runs in a forked child so directory changes,
exported variables and other process state never reach the
orchestrator. A supervisor coroutine polls the child under
asyncio.wait_for. When the timer wins the child and every
process it started (found with psutil) receive
SIGTERM, then SIGKILL after a grace period, and the result
is TIMED_OUT rather than FAILURE.

============================================================
"""

import asyncio
import logging
import multiprocessing
import signal
import sys
from typing import List, Optional

import psutil

from .models import ExecutionResult, Module, ModuleAction
from .preconditions import PreconditionChecker
from .registry import ModuleRegistry
from .resolver import DependencyResolver
from core.constants import (
    CHILD_POLL_INTERVAL_SECONDS,
    DEFAULT_MODULE_TIMEOUT_SECONDS,
    EXIT_CODE_FAILURE,
    EXIT_CODE_SUCCESS,
    EXIT_CODE_TERMINATED,
    TERMINATE_GRACE_SECONDS,
)
from core.exceptions import ModuleTimeoutError, PreconditionError


logger = logging.getLogger(__name__)


# ============================================================
# CHILD PROCESS
# ============================================================

class ActionTerminated(BaseException):
    """Raised inside the child when the supervisor sends SIGTERM."""


def _raise_terminated(signum, frame):
    raise ActionTerminated()


def _child_main(name: str, action: ModuleAction) -> None:
    signal.signal(signal.SIGTERM, _raise_terminated)
    signal.signal(signal.SIGINT, signal.SIG_IGN)
    try:
        outcome = action()
    except ActionTerminated:
        logger.error(f"Module {name} terminated by supervisor")
        sys.exit(EXIT_CODE_TERMINATED)
    except Exception:
        logger.exception(f"Module {name} raised an exception")
        sys.exit(EXIT_CODE_FAILURE)
    sys.exit(EXIT_CODE_SUCCESS if outcome else EXIT_CODE_FAILURE)


def action_available(action: Optional[ModuleAction]) -> bool:
    """False for a missing binding or an action reporting itself unavailable."""
    if action is None:
        return False
    is_available = getattr(action, "is_available", None)
    if callable(is_available):
        return bool(is_available())
    return True


def _descendants(pid: int) -> List[psutil.Process]:
    """Every process started below pid, such as the module's shell and its commands."""
    try:
        return psutil.Process(pid).children(recursive=True)
    except psutil.NoSuchProcess:
        return []


def _is_alive(process: psutil.Process) -> bool:
    try:
        return process.is_running() and process.status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False


def _signal_quietly(send) -> None:
    try:
        send()
    except psutil.NoSuchProcess:
        pass


# ============================================================
# ISOLATED EXECUTOR
# ============================================================

class IsolatedExecutor:
    """Runs one action in a forked child, racing it against a timer."""

    def __init__(
        self,
        poll_interval: float = CHILD_POLL_INTERVAL_SECONDS,
        terminate_grace: float = TERMINATE_GRACE_SECONDS,
    ):
        self._poll_interval = poll_interval
        self._terminate_grace = terminate_grace
        self._context = multiprocessing.get_context("fork")

    async def _wait_for_exit(self, process) -> int:
        while process.exitcode is None:
            await asyncio.sleep(self._poll_interval)
        return process.exitcode

    async def _terminate(self, process) -> None:
        descendants = _descendants(process.pid)
        for child in descendants:
            _signal_quietly(child.terminate)
        process.terminate()
        try:
            await asyncio.wait_for(self._wait_for_exit(process), timeout=self._terminate_grace)
        except asyncio.TimeoutError:
            logger.warning(f"Action process {process.pid} ignored SIGTERM, killing")
            process.kill()
            await self._wait_for_exit(process)
        await self._reap_descendants(descendants)

    async def _reap_descendants(self, descendants) -> None:
        """Wait out the grace period for descendants, then SIGKILL survivors."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._terminate_grace
        alive = [p for p in descendants if _is_alive(p)]
        while alive and loop.time() < deadline:
            await asyncio.sleep(self._poll_interval)
            alive = [p for p in alive if _is_alive(p)]
        for child in alive:
            logger.warning(f"Descendant process {child.pid} ignored SIGTERM, killing")
            _signal_quietly(child.kill)

    async def execute(
        self,
        name: str,
        action: ModuleAction,
        timeout_seconds: float,
    ) -> ExecutionResult:
        """
        Run action and classify its outcome.

        Returns:
            SUCCESS, FAILURE or TIMED_OUT
        """
        process = self._context.Process(
            target=_child_main,
            args=(name, action),
            name=f"module:{name}",
            daemon=True,
        )
        process.start()
        logger.debug(f"Module {name} running in process {process.pid}")

        try:
            exitcode = await asyncio.wait_for(
                self._wait_for_exit(process),
                timeout=timeout_seconds,
            )
        except asyncio.TimeoutError:
            await self._terminate(process)
            error = ModuleTimeoutError(name, timeout_seconds)
            logger.error(f"{error.message} [reason=timeout]")
            return ExecutionResult.TIMED_OUT
        except asyncio.CancelledError:
            await self._terminate(process)
            raise
        finally:
            process.join(timeout=0)

        if exitcode == EXIT_CODE_SUCCESS:
            return ExecutionResult.SUCCESS

        logger.error(f"Module {name} failed with exit code {exitcode} [reason=failure]")
        return ExecutionResult.FAILURE


# ============================================================
# MODULE RUNNER
# ============================================================

class ModuleRunner:
    """Runs modules from the registry one at a time."""

    def __init__(
        self,
        registry: ModuleRegistry,
        resolver: DependencyResolver,
        preconditions: Optional[PreconditionChecker] = None,
        timeout_seconds: float = DEFAULT_MODULE_TIMEOUT_SECONDS,
        executor: Optional[IsolatedExecutor] = None,
    ):
        self._registry = registry
        self._resolver = resolver
        self._preconditions = preconditions
        self._timeout_seconds = timeout_seconds
        self._executor = executor or IsolatedExecutor()
        self._logger = logging.getLogger(__name__)

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    async def run(self, name: str) -> ExecutionResult:
        """
        Run one module and update its status.

        Raises:
            UnknownModuleError: If name is not registered
        """
        module = self._registry.get(name)
        self._logger.info(f"Starting module execution: {name}")

        result = await self._attempt(module)

        module.last_result = result
        self._registry.set_status(name, result.resulting_status)

        if result.is_success:
            self._logger.info(f"Module {name} executed successfully")
        else:
            self._logger.error(f"Error executing module {name}: {result.description}")
        return result

    async def _attempt(self, module: Module) -> ExecutionResult:
        if self._preconditions is not None:
            failure = self._preconditions.check_all()
            if failure is not None:
                error = PreconditionError(
                    f"Pre-execution checks failed for module {module.name}: {failure.message}",
                    precondition=failure.name,
                )
                self._logger.error(f"{error.message} [reason=precondition]")
                return ExecutionResult.PRECONDITION_FAILED

        satisfied = self._resolver.check_and_warn(module.name)
        module.dependencies_overridden = not satisfied
        if not satisfied:
            self._logger.warning(f"Running {module.name} with unmet dependencies (override)")

        if not action_available(module.action):
            self._logger.error(f"No executable action found for module {module.name} [reason=action_not_found]")
            return ExecutionResult.ACTION_NOT_FOUND

        return await self._executor.execute(module.name, module.action, self._timeout_seconds)


__all__ = [
    "ActionTerminated",
    "action_available",
    "IsolatedExecutor",
    "ModuleRunner",
]
