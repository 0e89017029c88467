"""
Tests for the Orchestrator menu loop, dialogs and CLI.

============================================================
PURPOSE
============================================================
End-to-end scenarios driven through a scripted dialog
provider:
1. Dependency chain run and persisted result
2. Dependency override
3. Complete install continues past failures
4. Retry loop
5. Special actions (reset, clear logs, system check, restart system)
6. Save failures and top-level faults
7. CLI startup checks

============================================================
"""

import io
import logging
from typing import List, Optional
from unittest.mock import patch

import pytest

from orchestrator.cli import create_parser, main
from orchestrator.core import (
    MENU_CLEAR_LOGS,
    MENU_COMPLETE_INSTALL,
    MENU_EXIT,
    MENU_RESET_PROGRESS,
    MENU_RESTART_SYSTEM,
    MENU_SYSTEM_CHECK,
    RESTART_ALL_SERVICES,
    RESTART_BACK,
    RESTART_REBOOT,
    Orchestrator,
    setup_logging,
)
from orchestrator.dialogs import ConsoleDialogs
from orchestrator.models import ExecutionResult, ModuleStatus, OrchestratorConfig
from orchestrator.preconditions import PreconditionChecker
from orchestrator.progress import ProgressStore
from orchestrator.registry import ModuleRegistry
from orchestrator.runner import IsolatedExecutor
from core.constants import REQUIRED_ENV_VARS, RESTARTABLE_SERVICES
from core.exceptions import ErrorClassification, InvalidConfigError, PersistenceError, SetupException
from core.instance_lock import InstanceLock


# ============================================================
# FIXTURES
# ============================================================

class ScriptedDialogs:
    """Dialog provider replaying canned answers."""

    def __init__(self, choices=(), confirms=()):
        self.choices: List[object] = list(choices)
        self.confirms: List[bool] = list(confirms)
        self.messages: List[tuple] = []
        self.progress_updates: List[int] = []
        self.prompts: List[str] = []
        self.menus: List[list] = []

    def menu(self, title, prompt, items) -> Optional[str]:
        self.prompts.append(prompt)
        self.menus.append(list(items))
        if not self.choices:
            return None
        choice = self.choices.pop(0)
        if isinstance(choice, BaseException):
            raise choice
        return choice

    def message(self, title, text) -> None:
        self.messages.append((title, text))

    def confirm(self, title, text) -> bool:
        return self.confirms.pop(0) if self.confirms else False

    def progress(self, title, text, percent) -> None:
        self.progress_updates.append(percent)

    def titles(self) -> List[str]:
        return [title for title, _ in self.messages]


class RecordingRunner:
    """Command runner returning scripted exit codes."""

    def __init__(self, exit_codes):
        self.exit_codes = list(exit_codes)
        self.commands = []

    def __call__(self, command):
        self.commands.append(list(command))
        return self.exit_codes.pop(0) if self.exit_codes else 0


class FailingStore(ProgressStore):
    """Progress store whose reads fail with a given error."""

    def __init__(self, path, error):
        super().__init__(path)
        self.error = error

    def load(self):
        raise self.error


def succeed():
    return True


def fail():
    return False


def fail_once(marker):
    """Fails on the first call, succeeds afterwards."""
    def action():
        if marker.exists():
            return True
        marker.write_text("attempted")
        return False
    return action


@pytest.fixture
def config(tmp_path):
    return OrchestratorConfig(
        base_dir=tmp_path,
        lock_file=tmp_path / "setup.lock",
        module_timeout_seconds=5.0,
        require_root=False,
    )


@pytest.fixture
def make_orchestrator(config):
    def factory(registry, dialogs, progress_store=None, command_runner=None):
        return Orchestrator(
            config=config,
            registry=registry,
            dialogs=dialogs,
            progress_store=progress_store,
            preconditions=PreconditionChecker([]),
            executor=IsolatedExecutor(poll_interval=0.01, terminate_grace=1.0),
            command_runner=command_runner or RecordingRunner([]),
        )
    return factory


@pytest.fixture
def chain():
    """A, then B depending on A."""
    registry = ModuleRegistry()
    registry.register("A", action=succeed)
    registry.register("B", dependencies=["A"], action=succeed)
    return registry


@pytest.fixture
def restore_logging():
    """Undo setup_logging's changes to the root logger."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


# ============================================================
# SCENARIO TESTS
# ============================================================

class TestOrchestratorScenarios:
    """Menu-driven end-to-end scenarios."""

    @pytest.mark.asyncio
    async def test_dependency_chain_persisted(self, chain, make_orchestrator, config):
        dialogs = ScriptedDialogs(choices=["A", "B", MENU_EXIT])
        orchestrator = make_orchestrator(chain, dialogs)

        exit_code = await orchestrator.run()

        assert exit_code == 0
        assert config.progress_file.read_text().splitlines() == [
            "A:Successful",
            "B:Successful",
        ]
        assert dialogs.titles() == ["Success", "Success"]

    @pytest.mark.asyncio
    async def test_success_promotes_dependents(self, chain, make_orchestrator):
        orchestrator = make_orchestrator(chain, ScriptedDialogs())

        await orchestrator.execute_module("A")

        assert chain.get("B").status == ModuleStatus.READY

    @pytest.mark.asyncio
    async def test_progress_prompt(self, chain, make_orchestrator):
        dialogs = ScriptedDialogs(choices=["A", MENU_EXIT])
        orchestrator = make_orchestrator(chain, dialogs)

        await orchestrator.run()

        assert dialogs.prompts[0] == "Select an option: (Progress: 0%)"
        assert dialogs.prompts[1] == "Select an option: (Progress: 50%)"

    @pytest.mark.asyncio
    async def test_menu_items(self, chain, make_orchestrator):
        dialogs = ScriptedDialogs(choices=[MENU_EXIT])
        orchestrator = make_orchestrator(chain, dialogs)

        await orchestrator.run()

        items = dialogs.menus[0]
        assert items[0] == ("A", "[ ] A")
        assert items[1] == ("B", "[ ] B [Depends on: A]")
        assert [tag for tag, _ in items[2:]] == [
            MENU_COMPLETE_INSTALL,
            MENU_SYSTEM_CHECK,
            MENU_RESTART_SYSTEM,
            MENU_CLEAR_LOGS,
            MENU_RESET_PROGRESS,
            MENU_EXIT,
        ]

    @pytest.mark.asyncio
    async def test_dependency_override(self, chain, make_orchestrator):
        dialogs = ScriptedDialogs(choices=["B", MENU_EXIT])
        orchestrator = make_orchestrator(chain, dialogs)

        await orchestrator.run()

        assert dialogs.titles() == ["Dependency Warning", "Success"]
        assert chain.get("B").status == ModuleStatus.SUCCESSFUL
        assert chain.get("B").dependencies_overridden
        assert "(deps overridden)" in dialogs.menus[1][1][1]

    @pytest.mark.asyncio
    async def test_resume_from_progress_file(self, chain, make_orchestrator, config):
        config.progress_file.write_text("A:Successful\nGone Module:Successful\n")
        dialogs = ScriptedDialogs(choices=[MENU_EXIT])
        orchestrator = make_orchestrator(chain, dialogs)

        await orchestrator.run()

        assert chain.get("A").status == ModuleStatus.SUCCESSFUL
        assert chain.get("B").status == ModuleStatus.READY
        assert "Gone Module" not in config.progress_file.read_text()

    @pytest.mark.asyncio
    async def test_complete_install_continues_past_failure(self, make_orchestrator, config):
        registry = ModuleRegistry()
        registry.register("A", action=succeed)
        registry.register("B", action=fail)
        registry.register("C", action=succeed)
        dialogs = ScriptedDialogs()
        orchestrator = make_orchestrator(registry, dialogs)

        batch = await orchestrator.run_all()

        assert batch.succeeded == ["A", "C"]
        assert batch.failed == ["B"]
        assert registry.statuses() == {
            "A": ModuleStatus.SUCCESSFUL,
            "B": ModuleStatus.FAILED,
            "C": ModuleStatus.SUCCESSFUL,
        }
        assert dialogs.progress_updates == [33, 66, 100]
        assert dialogs.titles() == ["Installation Complete"]
        assert "B" in dialogs.messages[-1][1]
        assert config.progress_file.read_text().splitlines() == [
            "A:Successful",
            "B:Failed",
            "C:Successful",
        ]

    @pytest.mark.asyncio
    async def test_complete_install_announces_interactive_module(self, make_orchestrator, tmp_path):
        registry = ModuleRegistry()
        registry.register("A", action=succeed)
        registry.register("Repo", action=fail_once(tmp_path / "repo_attempt"), batch_notice="Pick a repository.")
        registry.register("C", action=succeed)
        dialogs = ScriptedDialogs(confirms=[True])
        orchestrator = make_orchestrator(registry, dialogs)

        batch = await orchestrator.run_all()

        assert batch.succeeded == ["A", "Repo", "C"]
        assert dialogs.messages[0] == ("Complete Installation", "The next step is Repo. Pick a repository.")
        assert dialogs.titles() == ["Complete Installation", "Error", "Success", "Installation Complete"]

    @pytest.mark.asyncio
    async def test_complete_install_is_quiet_on_dependency_warnings(self, chain, make_orchestrator):
        chain.bind_action("A", fail)
        dialogs = ScriptedDialogs()
        orchestrator = make_orchestrator(chain, dialogs)

        await orchestrator.run_all()

        assert "Dependency Warning" not in dialogs.titles()
        assert chain.get("B").dependencies_overridden

    @pytest.mark.asyncio
    async def test_retry_until_success(self, make_orchestrator, tmp_path):
        registry = ModuleRegistry()
        registry.register("Flaky", action=fail_once(tmp_path / "attempted"))
        dialogs = ScriptedDialogs(confirms=[True])
        orchestrator = make_orchestrator(registry, dialogs)

        result = await orchestrator.execute_module("Flaky")

        assert result == ExecutionResult.SUCCESS
        assert dialogs.titles() == ["Error", "Success"]
        assert registry.get("Flaky").status == ModuleStatus.SUCCESSFUL

    @pytest.mark.asyncio
    async def test_retry_declined(self, make_orchestrator, caplog):
        registry = ModuleRegistry()
        registry.register("Broken", action=fail)
        dialogs = ScriptedDialogs(confirms=[False])
        orchestrator = make_orchestrator(registry, dialogs)

        caplog.set_level(logging.INFO)
        result = await orchestrator.execute_module("Broken")

        assert result == ExecutionResult.FAILURE
        assert registry.get("Broken").status == ModuleStatus.FAILED
        assert "Execution of Broken failed and not retried." in caplog.text

    @pytest.mark.asyncio
    async def test_empty_choice_rerenders(self, chain, make_orchestrator):
        dialogs = ScriptedDialogs(choices=["", MENU_EXIT])
        orchestrator = make_orchestrator(chain, dialogs)

        assert await orchestrator.run() == 0
        assert len(dialogs.menus) == 2

    @pytest.mark.asyncio
    async def test_cancel_exits_and_saves(self, chain, make_orchestrator, config):
        orchestrator = make_orchestrator(chain, ScriptedDialogs())

        assert await orchestrator.run() == 0
        assert config.progress_file.exists()
        assert not orchestrator.is_running


# ============================================================
# SPECIAL ACTION TESTS
# ============================================================

class TestSpecialActions:
    """Tests for reset, clear logs and system check."""

    @pytest.mark.asyncio
    async def test_reset_progress(self, chain, make_orchestrator, config):
        dialogs = ScriptedDialogs(choices=["A", MENU_RESET_PROGRESS, MENU_EXIT], confirms=[True])
        orchestrator = make_orchestrator(chain, dialogs)

        await orchestrator.run()

        assert chain.count(ModuleStatus.NOT_EXECUTED) == 2
        assert config.progress_file.read_text().splitlines() == [
            "A:Not Executed",
            "B:Not Executed",
        ]

    def test_reset_cancelled(self, chain, make_orchestrator):
        chain.set_status("A", ModuleStatus.SUCCESSFUL)
        orchestrator = make_orchestrator(chain, ScriptedDialogs(confirms=[False]))

        assert orchestrator.reset_progress() is False
        assert chain.get("A").status == ModuleStatus.SUCCESSFUL

    def test_clear_logs(self, chain, make_orchestrator, config):
        config.log_file.parent.mkdir(parents=True)
        config.log_file.write_text("[2024-07-21 10:00:00] [INFO] old line\n")
        orchestrator = make_orchestrator(chain, ScriptedDialogs(confirms=[True]))

        assert orchestrator.clear_logs() is True
        assert "old line" not in config.log_file.read_text()

    def test_clear_logs_cancelled(self, chain, make_orchestrator, config):
        config.log_file.parent.mkdir(parents=True)
        config.log_file.write_text("keep\n")
        orchestrator = make_orchestrator(chain, ScriptedDialogs(confirms=[False]))

        assert orchestrator.clear_logs() is False
        assert config.log_file.read_text() == "keep\n"

    def test_system_check(self, chain, make_orchestrator):
        dialogs = ScriptedDialogs()
        orchestrator = make_orchestrator(chain, dialogs)

        with patch("orchestrator.core.NetworkPrecondition.probe", return_value=False):
            text = orchestrator.system_check()

        assert "System Resources:" in text
        assert "unreachable" in text
        assert dialogs.titles() == ["System Check"]


class TestRestartSystem:
    """Tests for the Restart System menu."""

    @pytest.mark.asyncio
    async def test_menu_dispatch(self, chain, make_orchestrator):
        runner = RecordingRunner([0])
        dialogs = ScriptedDialogs(choices=[MENU_RESTART_SYSTEM, "mosquitto", RESTART_BACK, MENU_EXIT])
        orchestrator = make_orchestrator(chain, dialogs, command_runner=runner)

        assert await orchestrator.run() == 0

        assert runner.commands == [["systemctl", "restart", "mosquitto"]]
        assert ("Restart System", "mosquitto restarted successfully.") in dialogs.messages
        restart_tags = [tag for tag, _ in dialogs.menus[1]]
        assert restart_tags == list(RESTARTABLE_SERVICES) + [RESTART_ALL_SERVICES, RESTART_REBOOT, RESTART_BACK]

    def test_failed_restart_reported(self, chain, make_orchestrator):
        runner = RecordingRunner([1])
        dialogs = ScriptedDialogs(choices=["nginx"])
        orchestrator = make_orchestrator(chain, dialogs, command_runner=runner)

        orchestrator.restart_system()

        assert dialogs.messages == [("Restart System", "Failed to restart nginx.")]

    def test_all_services(self, chain, make_orchestrator):
        runner = RecordingRunner([0, 0, 1])
        dialogs = ScriptedDialogs(choices=[RESTART_ALL_SERVICES])
        orchestrator = make_orchestrator(chain, dialogs, command_runner=runner)

        orchestrator.restart_system()

        assert runner.commands == [["systemctl", "restart", s] for s in RESTARTABLE_SERVICES]
        assert ("Restart System", "Failed to restart iot-backend.") in dialogs.messages
        assert len(dialogs.messages) == len(RESTARTABLE_SERVICES)

    def test_reboot_declined(self, chain, make_orchestrator):
        runner = RecordingRunner([])
        dialogs = ScriptedDialogs(choices=[RESTART_REBOOT], confirms=[False])
        orchestrator = make_orchestrator(chain, dialogs, command_runner=runner)

        orchestrator.restart_system()

        assert runner.commands == []

    @pytest.mark.asyncio
    async def test_reboot_saves_and_stops_loop(self, chain, make_orchestrator, config):
        runner = RecordingRunner([0])
        dialogs = ScriptedDialogs(choices=["A", MENU_RESTART_SYSTEM, RESTART_REBOOT], confirms=[True])
        orchestrator = make_orchestrator(chain, dialogs, command_runner=runner)

        assert await orchestrator.run() == 0

        assert runner.commands == [["reboot"]]
        assert len(dialogs.menus) == 3
        assert "A:Successful" in config.progress_file.read_text()

    def test_reboot_failure_stays_in_menu(self, chain, make_orchestrator):
        runner = RecordingRunner([1])
        dialogs = ScriptedDialogs(choices=[RESTART_REBOOT, RESTART_BACK], confirms=[True])
        orchestrator = make_orchestrator(chain, dialogs, command_runner=runner)

        orchestrator.restart_system()

        assert dialogs.titles() == ["Restart System"]
        assert "Failed to restart the system." in dialogs.messages[0][1]
        assert len(dialogs.menus) == 2


# ============================================================
# FAILURE HANDLING TESTS
# ============================================================

class TestFailureHandling:
    """Tests for save failures and top-level faults."""

    @pytest.mark.asyncio
    async def test_save_failure_does_not_stop_loop(self, chain, make_orchestrator, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        dialogs = ScriptedDialogs(choices=["A", MENU_EXIT])
        orchestrator = make_orchestrator(
            chain, dialogs, progress_store=ProgressStore(blocker / "progress.txt"),
        )

        exit_code = await orchestrator.run()

        assert exit_code == 0
        assert chain.get("A").status == ModuleStatus.SUCCESSFUL
        assert "Warning" in dialogs.titles()

    @pytest.mark.asyncio
    async def test_unexpected_error_exits_with_failure(self, chain, make_orchestrator, config):
        dialogs = ScriptedDialogs(choices=[RuntimeError("dialog crashed")])
        orchestrator = make_orchestrator(chain, dialogs)

        exit_code = await orchestrator.run()

        assert exit_code == 1
        assert config.progress_file.exists()
        assert dialogs.titles() == ["Error"]

    @pytest.mark.asyncio
    async def test_unexpected_error_logs_classification(self, chain, make_orchestrator, caplog):
        dialogs = ScriptedDialogs(choices=[SetupException("dialog backend lost", context={"tty": "none"})])
        orchestrator = make_orchestrator(chain, dialogs)

        caplog.set_level(logging.INFO)
        assert await orchestrator.run() == 1

        assert "Unexpected error [recoverable]: dialog backend lost" in caplog.text
        assert "'tty': 'none'" in caplog.text

    @pytest.mark.asyncio
    async def test_undecodable_progress_file(self, chain, make_orchestrator, config):
        config.progress_file.write_bytes(b"A:Successful\n\xff\xfe:Failed\n")
        dialogs = ScriptedDialogs(choices=[MENU_EXIT])
        orchestrator = make_orchestrator(chain, dialogs)

        assert await orchestrator.run() == 0

        assert chain.get("A").status == ModuleStatus.SUCCESSFUL
        assert dialogs.titles() == []

    @pytest.mark.asyncio
    async def test_recoverable_load_error_starts_fresh(self, chain, make_orchestrator, config):
        store = FailingStore(config.progress_file, PersistenceError("disk read error"))
        dialogs = ScriptedDialogs(choices=[MENU_EXIT])
        orchestrator = make_orchestrator(chain, dialogs, progress_store=store)

        assert await orchestrator.run() == 0
        assert chain.get("A").status == ModuleStatus.NOT_EXECUTED

    @pytest.mark.asyncio
    async def test_fatal_load_error_keeps_progress_file(self, chain, make_orchestrator, config):
        config.progress_file.write_text("A:Successful\n")
        error = PersistenceError("progress file unreadable", classification=ErrorClassification.NON_RECOVERABLE)
        store = FailingStore(config.progress_file, error)
        dialogs = ScriptedDialogs(choices=[MENU_EXIT])
        orchestrator = make_orchestrator(chain, dialogs, progress_store=store)

        assert await orchestrator.run() == 1

        assert config.progress_file.read_text() == "A:Successful\n"
        assert dialogs.titles() == ["Error"]
        assert dialogs.menus == []

    @pytest.mark.asyncio
    async def test_interrupt_exits_130(self, chain, make_orchestrator, config):
        dialogs = ScriptedDialogs(choices=[KeyboardInterrupt()])
        orchestrator = make_orchestrator(chain, dialogs)

        assert await orchestrator.run() == 130
        assert config.progress_file.exists()

    def test_invalid_config_rejected(self, chain, tmp_path):
        config = OrchestratorConfig(base_dir=tmp_path, module_timeout_seconds=-1)

        with pytest.raises(InvalidConfigError):
            Orchestrator(config=config, registry=chain, dialogs=ScriptedDialogs())


# ============================================================
# CONSOLE DIALOG TESTS
# ============================================================

class TestConsoleDialogs:
    """Tests for the plain-text dialog provider."""

    ITEMS = [("A", "[ ] A"), ("Exit", "Save progress and exit")]

    def _dialogs(self, answers):
        answers = list(answers)

        def fake_input(prompt):
            if not answers:
                raise EOFError
            return answers.pop(0)

        output = io.StringIO()
        return ConsoleDialogs(input_func=fake_input, output=output), output

    def test_menu_by_number(self):
        dialogs, output = self._dialogs(["2"])

        assert dialogs.menu("Main Menu", "Select an option:", self.ITEMS) == "Exit"
        assert " 1. [ ] A" in output.getvalue()

    def test_menu_by_tag(self):
        dialogs, _ = self._dialogs(["exit"])

        assert dialogs.menu("Main Menu", "", self.ITEMS) == "Exit"

    def test_menu_invalid(self):
        dialogs, _ = self._dialogs(["9"])

        assert dialogs.menu("Main Menu", "", self.ITEMS) == ""

    def test_menu_eof(self):
        dialogs, _ = self._dialogs([])

        assert dialogs.menu("Main Menu", "", self.ITEMS) is None

    def test_confirm(self):
        dialogs, _ = self._dialogs(["y", "no"])

        assert dialogs.confirm("Retry", "Again?") is True
        assert dialogs.confirm("Retry", "Again?") is False

    def test_progress(self):
        dialogs, output = self._dialogs([])

        dialogs.progress("Complete Installation", "Installing A...", 50)

        assert "50%" in output.getvalue()


# ============================================================
# LOGGING TESTS
# ============================================================

class TestSetupLogging:
    """Tests for setup_logging."""

    def test_info_written_debug_suppressed(self, tmp_path, restore_logging):
        log_file = tmp_path / "log" / "iot_setup.log"

        logger = setup_logging(log_file)
        logger.info("visible")
        logger.debug("hidden")

        text = log_file.read_text()
        assert "[INFO] visible" in text
        assert "hidden" not in text

    def test_debug_enabled(self, tmp_path, restore_logging):
        log_file = tmp_path / "iot_setup.log"

        logger = setup_logging(log_file, debug=True)
        logger.debug("visible")

        assert "[DEBUG] visible" in log_file.read_text()


# ============================================================
# CLI TESTS
# ============================================================

@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Environment for a CLI run rooted in tmp_path."""
    monkeypatch.setenv("SETUP_BASE_DIR", str(tmp_path))
    monkeypatch.setenv("SETUP_LOCK_FILE", str(tmp_path / "setup.lock"))
    monkeypatch.setenv("SETUP_REQUIRE_ROOT", "false")
    for name in ("SETUP_PROGRESS_FILE", "SETUP_LOG_FILE", "SETUP_ENV_FILE", "SETUP_MODULES_DIR"):
        monkeypatch.delenv(name, raising=False)
    for name in REQUIRED_ENV_VARS:
        monkeypatch.setenv(name, "secret")
    return tmp_path


class TestCli:
    """Tests for CLI startup."""

    def test_parser(self):
        args = create_parser().parse_args(["--debug"])

        assert args.debug is True

    def test_invalid_number(self, cli_env, monkeypatch, capsys):
        monkeypatch.setenv("MODULE_TIMEOUT_SECONDS", "later")

        assert main([]) == 1
        assert "Invalid environment configuration" in capsys.readouterr().err

    def test_requires_root(self, cli_env, monkeypatch, capsys):
        monkeypatch.setenv("SETUP_REQUIRE_ROOT", "true")

        with patch("orchestrator.cli.os.geteuid", return_value=1000):
            assert main([]) == 1

        assert "root privileges" in capsys.readouterr().err

    def test_missing_credentials_file(self, cli_env, restore_logging, capsys):
        assert main([]) == 1
        assert "credentials.env" in capsys.readouterr().err

    def test_missing_variable(self, cli_env, monkeypatch, restore_logging, capsys):
        (cli_env / "credentials.env").write_text("# no values\n")
        monkeypatch.delenv("MQTT_USER")

        assert main([]) == 1
        assert "MQTT_USER" in capsys.readouterr().err

    def test_fatal_startup_error_logged_as_critical(self, cli_env, monkeypatch, restore_logging, capsys):
        (cli_env / "credentials.env").write_text("# no values\n")
        monkeypatch.delenv("MQTT_USER")

        assert main([]) == 1

        log_text = (cli_env / "log" / "iot_setup.log").read_text()
        assert "[CRITICAL] Startup failed: MissingConfigError" in log_text

    def test_second_instance_rejected(self, cli_env, restore_logging, capsys):
        (cli_env / "credentials.env").write_text("# no values\n")

        with InstanceLock(cli_env / "setup.lock"):
            assert main([]) == 1

        assert "already running" in capsys.readouterr().err

    def test_runs_menu_and_exits(self, cli_env, restore_logging, capsys):
        (cli_env / "credentials.env").write_text("# no values\n")

        with patch("builtins.input", side_effect=EOFError):
            assert main([]) == 0

        assert (cli_env / "setup_progress.txt").exists()
        assert (cli_env / "log" / "iot_setup.log").exists()
        with InstanceLock(cli_env / "setup.lock") as lock:
            assert lock.is_held
