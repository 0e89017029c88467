"""
Orchestrator - Core.

============================================================
RESPONSIBILITY
============================================================
The menu loop driving the whole setup.

- Loads progress at startup and recomputes readiness
- Renders module status, versions and dependencies
- Dispatches module runs and special actions
- Persists progress after every state change
- Recovers from per-module failure without corrupting state

============================================================
EXECUTION MODEL
============================================================
Single-threaded and cooperative. One choice is processed
completely, including nested dialogs, before the next render.
Modules run one at a time; the only concurrent work is the
runner's timeout supervisor.

============================================================
"""

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .models import (
    BatchResult,
    ExecutionResult,
    OrchestratorConfig,
)
from .dialogs import ConsoleDialogs, DialogProvider, MenuItem
from .preconditions import (
    CommandRunner,
    NetworkPrecondition,
    PreconditionChecker,
    collect_system_report,
    format_system_report,
    run_command,
)
from .progress import ProgressStore
from .registry import ModuleRegistry
from .resolver import DependencyResolver
from .runner import IsolatedExecutor, ModuleRunner
from core.constants import (
    EXIT_CODE_FAILURE,
    EXIT_CODE_INTERRUPTED,
    EXIT_CODE_SUCCESS,
    LOG_DATE_FORMAT,
    LOG_FORMAT,
    RESTARTABLE_SERVICES,
    SYSTEM_NAME,
    SYSTEM_VERSION,
)
from core.exceptions import (
    InvalidConfigError,
    PersistenceError,
    SetupException,
    classify_exception,
)


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(
    log_file: Path,
    debug: bool = False,
    console: bool = False,
) -> logging.Logger:
    """
    Set up file logging.

    Lines look like ``[2024-07-21 10:00:00] [INFO] message``.
    DEBUG lines are only written when debug is set.

    Args:
        log_file: Log file, appended to
        debug: Enable DEBUG level
        console: Also echo to stderr

    Returns:
        Configured logger
    """
    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    file_handler.setFormatter(formatter)
    handlers: List[logging.Handler] = [file_handler]

    if console:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        handlers.append(stream_handler)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        handler.close()
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)
    root_logger.handlers = handlers

    return logging.getLogger("orchestrator")


# ============================================================
# MENU ENTRIES
# ============================================================

MENU_COMPLETE_INSTALL = "Complete Install"
MENU_SYSTEM_CHECK = "System Check"
MENU_RESTART_SYSTEM = "Restart System"
MENU_CLEAR_LOGS = "Clear Logs"
MENU_RESET_PROGRESS = "Reset Progress"
MENU_EXIT = "Exit"

RESTART_ALL_SERVICES = "All Services"
RESTART_REBOOT = "Reboot"
RESTART_BACK = "Back"

SPECIAL_ACTIONS: Sequence[MenuItem] = (
    (MENU_COMPLETE_INSTALL, "Run complete installation process"),
    (MENU_SYSTEM_CHECK, "Check system resources and network"),
    (MENU_RESTART_SYSTEM, "Restart services or the system"),
    (MENU_CLEAR_LOGS, "Clear all log files"),
    (MENU_RESET_PROGRESS, "Reset all progress"),
    (MENU_EXIT, "Save progress and exit"),
)


# ============================================================
# ORCHESTRATOR
# ============================================================

class Orchestrator:
    """
    Setup orchestrator.

    Owns the registry and wires the resolver, runner and progress
    store around it.
    """

    def __init__(
        self,
        config: OrchestratorConfig,
        registry: ModuleRegistry,
        dialogs: DialogProvider,
        progress_store: Optional[ProgressStore] = None,
        preconditions: Optional[PreconditionChecker] = None,
        executor: Optional[IsolatedExecutor] = None,
        command_runner: CommandRunner = run_command,
    ):
        """
        Initialize orchestrator.

        Args:
            config: Orchestrator configuration
            registry: Registered modules, in menu order
            dialogs: Terminal UI
            progress_store: Defaults to config.progress_file
            preconditions: Defaults to the checks named in config
            executor: Defaults to a forked-process executor
            command_runner: Runs service and reboot commands
        """
        errors = config.validate()
        if errors:
            raise InvalidConfigError(errors)

        self._config = config
        self._registry = registry
        self._dialogs = dialogs
        self._store = progress_store or ProgressStore(config.progress_file)
        self._run_command = command_runner
        self._resolver = DependencyResolver(registry, warning_sink=self._on_dependency_warning)
        self._runner = ModuleRunner(
            registry=registry,
            resolver=self._resolver,
            preconditions=preconditions if preconditions is not None else PreconditionChecker.from_config(config),
            timeout_seconds=config.module_timeout_seconds,
            executor=executor,
        )

        self._running = False
        self._quiet = False
        self._logger = logging.getLogger(__name__)

    # --------------------------------------------------------
    # Properties
    # --------------------------------------------------------

    @property
    def config(self) -> OrchestratorConfig:
        return self._config

    @property
    def registry(self) -> ModuleRegistry:
        return self._registry

    @property
    def resolver(self) -> DependencyResolver:
        return self._resolver

    @property
    def runner(self) -> ModuleRunner:
        return self._runner

    @property
    def progress_store(self) -> ProgressStore:
        return self._store

    @property
    def is_running(self) -> bool:
        return self._running

    # --------------------------------------------------------
    # Startup
    # --------------------------------------------------------

    def start(self) -> None:
        """Reload persisted progress and recompute readiness."""
        try:
            statuses = self._store.load()
        except PersistenceError as e:
            if not e.is_recoverable:
                raise
            self._logger.warning(f"Progress could not be loaded, starting fresh: {e.message}")
            statuses = {}

        self._registry.apply_statuses(statuses)
        self._resolver.recompute_readiness()
        self.log_registry_summary()

    def log_registry_summary(self) -> None:
        """Log every module with its status."""
        self._logger.info(f"Registered modules: {len(self._registry)}")
        for module in self._registry:
            self._logger.info(f"  {module.status.glyph} {module.label}: {module.status.value}")

    # --------------------------------------------------------
    # Persistence
    # --------------------------------------------------------

    def save_progress(self, notify: bool = True) -> bool:
        """
        Persist the registry.

        Failures are logged and shown; the loop continues on
        in-memory state.
        """
        try:
            self._store.save(self._registry)
            return True
        except PersistenceError as e:
            self._logger.warning(f"Progress not saved, continuing with in-memory state: {e.message}")
            if notify:
                self._dialogs.message(
                    "Warning",
                    f"Progress could not be saved:\n{e.message}\n"
                    "Setup continues; progress will be saved on the next change.",
                )
            return False

    # --------------------------------------------------------
    # Rendering
    # --------------------------------------------------------

    def completion_percentage(self) -> int:
        return self._registry.completion_percentage()

    def menu_items(self) -> List[MenuItem]:
        """Module entries followed by special actions."""
        items: List[MenuItem] = [
            (module.name, f"{module.status.glyph} {module.label}")
            for module in self._registry
        ]
        items.extend(SPECIAL_ACTIONS)
        return items

    def menu_prompt(self) -> str:
        return f"Select an option: (Progress: {self.completion_percentage()}%)"

    # --------------------------------------------------------
    # Module Execution
    # --------------------------------------------------------

    def _on_dependency_warning(self, name: str, message: str) -> None:
        if not self._quiet:
            self._dialogs.message("Dependency Warning", message)

    def _after_run(self, name: str, result: ExecutionResult) -> None:
        if result.is_success:
            self._resolver.recompute_readiness()
        self.save_progress(notify=not self._quiet)

    async def execute_module(self, name: str, interactive: bool = True) -> ExecutionResult:
        """
        Run one module, persist, and offer a retry on failure.

        Args:
            name: Module name
            interactive: Show result dialogs and retry prompt

        Returns:
            Result of the last attempt
        """
        while True:
            result = await self._runner.run(name)
            self._after_run(name, result)

            if result.is_success:
                if interactive:
                    self._dialogs.message("Success", f"Module {name} executed successfully")
                self._logger.info(f"Returning to main menu after successful execution of {name}")
                return result

            if not interactive:
                return result

            self._dialogs.message("Error", f"Error in {name}:\n{result.description}")
            if not self._dialogs.confirm("Retry", "Do you want to try again?"):
                self._logger.error(f"Execution of {name} failed and not retried.")
                return result
            self._logger.info(f"Retrying module {name}")

    async def run_all(self) -> BatchResult:
        """
        Run every module in registration order.

        A failing module never stops the batch. Modules with a batch
        notice are announced first and run with their dialogs.
        """
        self._logger.info("Starting complete installation process...")
        batch = BatchResult()
        names = list(self._registry.all_names())
        total = len(names)

        self._quiet = True
        try:
            for index, name in enumerate(names, 1):
                self._dialogs.progress("Complete Installation", f"Installing {name}...", index * 100 // total)
                notice = self._registry.get(name).batch_notice
                if notice:
                    self._dialogs.message("Complete Installation", f"The next step is {name}. {notice}")
                result = await self.execute_module(name, interactive=bool(notice))
                batch.add(name, result)
                if not result.is_success:
                    self._logger.error(
                        f"Error occurred during {name} ({result.description}). "
                        "Installation will continue."
                    )
        finally:
            self._quiet = False

        self._logger.info(
            f"Complete installation process finished: "
            f"{len(batch.succeeded)} succeeded, {len(batch.failed)} failed"
        )
        summary = "The complete installation process has finished."
        if batch.failed:
            summary += f"\nFailed modules: {', '.join(batch.failed)}\nPlease review the logs."
        self._dialogs.message("Installation Complete", summary)
        return batch

    # --------------------------------------------------------
    # Special Actions
    # --------------------------------------------------------

    def system_check(self) -> str:
        """Show resources and network state."""
        self._logger.info("Starting system check...")
        probe = NetworkPrecondition(
            host=self._config.network_probe_host,
            port=self._config.network_probe_port,
            attempt_recovery=False,
        )
        text = format_system_report(collect_system_report(), network_ok=probe.probe())
        self._dialogs.message("System Check", text)
        self._logger.info("System check completed.")
        return text

    def restart_system(self) -> None:
        """Restart single services, all of them, or the whole host."""
        while True:
            items = [(service, f"Restart {service}") for service in RESTARTABLE_SERVICES]
            items += [
                (RESTART_ALL_SERVICES, "Restart every service above"),
                (RESTART_REBOOT, "Restart the entire system"),
                (RESTART_BACK, "Return to main menu"),
            ]
            choice = self._dialogs.menu(
                title="Restart System",
                prompt="Choose what to restart:",
                items=items,
            )
            if choice is None or choice == RESTART_BACK:
                return
            if choice == RESTART_ALL_SERVICES:
                for service in RESTARTABLE_SERVICES:
                    self.restart_service(service)
            elif choice == RESTART_REBOOT:
                if self.reboot():
                    return
            elif choice in RESTARTABLE_SERVICES:
                self.restart_service(choice)

    def restart_service(self, service: str) -> bool:
        exit_code = self._run_command(["systemctl", "restart", service])
        if exit_code == 0:
            self._logger.info(f"Service {service} restarted")
            self._dialogs.message("Restart System", f"{service} restarted successfully.")
            return True

        self._logger.error(f"Failed to restart {service} (exit code {exit_code})")
        self._dialogs.message("Restart System", f"Failed to restart {service}.")
        return False

    def reboot(self) -> bool:
        """
        Reboot the host after confirmation.

        Progress is saved first. A successful reboot command ends
        the menu loop.
        """
        if not self._dialogs.confirm("Restart System", "Are you sure you want to restart the entire system?"):
            return False

        self.save_progress(notify=False)
        self._logger.info("Rebooting system...")
        exit_code = self._run_command(["reboot"])
        if exit_code != 0:
            self._logger.error(f"Reboot command failed with exit code {exit_code}")
            self._dialogs.message("Restart System", "Failed to restart the system.")
            return False

        self._running = False
        return True

    def clear_logs(self) -> bool:
        """Truncate the log file after confirmation."""
        if not self._dialogs.confirm("Clear Logs", "Are you sure you want to clear all logs?"):
            return False

        log_file = self._config.log_file
        if log_file.exists():
            os.truncate(log_file, 0)
        self._logger.info("Log file cleared and re-initialized.")
        self._dialogs.message("Clear Logs", "Logs have been cleared.")
        return True

    def reset_progress(self) -> bool:
        """Forget all progress after confirmation."""
        if not self._dialogs.confirm(
            "Reset Progress",
            "Are you sure you want to reset all progress? This action cannot be undone.",
        ):
            return False

        try:
            self._store.clear()
        except PersistenceError as e:
            self._logger.warning(e.message)
        self._registry.reset()
        self.save_progress()
        self._logger.info("Progress reset.")
        self._dialogs.message("Reset Progress", "Progress has been reset.")
        return True

    def request_exit(self) -> None:
        self.save_progress()
        self._logger.info("Exiting setup.")
        self._running = False

    # --------------------------------------------------------
    # Menu Loop
    # --------------------------------------------------------

    async def handle_choice(self, choice: str) -> None:
        """Dispatch one menu selection."""
        if choice == MENU_EXIT:
            self.request_exit()
        elif choice == MENU_COMPLETE_INSTALL:
            await self.run_all()
        elif choice == MENU_SYSTEM_CHECK:
            self.system_check()
        elif choice == MENU_RESTART_SYSTEM:
            self.restart_system()
        elif choice == MENU_CLEAR_LOGS:
            self.clear_logs()
        elif choice == MENU_RESET_PROGRESS:
            self.reset_progress()
        elif choice in self._registry:
            await self.execute_module(choice)
        else:
            self._logger.warning(f"Unknown menu choice: {choice}")

    def _log_state(self) -> None:
        self._logger.debug("Current module status:")
        for name, status in self._registry.statuses().items():
            self._logger.debug(f"{name}: {status.value}")

    async def run(self) -> int:
        """
        Run the menu loop until the user exits.

        Returns:
            Process exit code
        """
        self._logger.info(f"Starting {SYSTEM_NAME} v{SYSTEM_VERSION}")
        started = False

        try:
            self.start()
            started = True
            self._running = True
            while self._running:
                self._log_state()
                choice = self._dialogs.menu(
                    title="Main Menu",
                    prompt=self.menu_prompt(),
                    items=self.menu_items(),
                )
                if choice is None:
                    choice = MENU_EXIT
                if not choice:
                    continue
                await self.handle_choice(choice)
            return EXIT_CODE_SUCCESS

        except (KeyboardInterrupt, asyncio.CancelledError):
            self._logger.warning("Interrupted by user")
            if started:
                self.save_progress(notify=False)
            return EXIT_CODE_INTERRUPTED

        except Exception as e:
            classification = classify_exception(e)
            self._logger.critical(
                f"Unexpected error [{classification.value}]: {e}", exc_info=True
            )
            if isinstance(e, SetupException):
                self._logger.critical(f"Error details: {e.to_dict()}")
            # Progress loaded only partially must not overwrite the file.
            if started:
                self.save_progress(notify=False)
            try:
                self._dialogs.message("Error", "An unexpected error occurred. Please check the logs.")
            except Exception:
                self._logger.error("Error dialog could not be shown", exc_info=True)
            return EXIT_CODE_FAILURE

        finally:
            self._running = False


# ============================================================
# FACTORY
# ============================================================

def create_orchestrator(
    config: Optional[OrchestratorConfig] = None,
    registry: Optional[ModuleRegistry] = None,
    dialogs: Optional[DialogProvider] = None,
) -> Orchestrator:
    """
    Build an orchestrator with defaults.

    Without a registry the IoT catalog is loaded from
    config.modules_dir.
    """
    config = config or OrchestratorConfig.from_env()

    if registry is None:
        from .catalog import build_iot_registry
        registry = build_iot_registry(config.modules_dir)

    if dialogs is None:
        dialogs = ConsoleDialogs(backtitle=f"{SYSTEM_NAME} v{SYSTEM_VERSION}")

    return Orchestrator(config=config, registry=registry, dialogs=dialogs)


__all__ = [
    "setup_logging",
    "MENU_COMPLETE_INSTALL",
    "MENU_SYSTEM_CHECK",
    "MENU_RESTART_SYSTEM",
    "MENU_CLEAR_LOGS",
    "MENU_RESET_PROGRESS",
    "MENU_EXIT",
    "RESTART_ALL_SERVICES",
    "RESTART_REBOOT",
    "RESTART_BACK",
    "SPECIAL_ACTIONS",
    "Orchestrator",
    "create_orchestrator",
]
