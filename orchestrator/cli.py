"""
Orchestrator - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line entry point for the setup orchestrator.

- Requires root privileges
- Holds the process singleton lock for the whole run
- Loads credentials.env and checks required variables
- Starts the interactive menu

All interaction happens in the menu; configuration comes from
the environment (see OrchestratorConfig.from_env).

============================================================
USAGE
============================================================
sudo python app.py
sudo python -m orchestrator.cli --debug

============================================================
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

from .models import OrchestratorConfig
from .core import Orchestrator, create_orchestrator, setup_logging
from .catalog import build_iot_registry
from core.constants import (
    EXIT_CODE_FAILURE,
    EXIT_CODE_INTERRUPTED,
    SYSTEM_NAME,
    SYSTEM_VERSION,
)
from core.environment import check_environment, load_environment
from core.exceptions import ConfigurationError, InstanceLockError, StartupError
from core.instance_lock import InstanceLock


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="iot-setup",
        description="Interactive setup for the IoT Control System",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  SETUP_BASE_DIR          Directory for progress, logs and credentials.env
  SETUP_MODULES_DIR       Directory of module scripts (default: <base>/modules)
  MODULE_TIMEOUT_SECONDS  Per-module timeout (default: 300)
  DEBUG=true              Write DEBUG lines to the log
        """
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Write DEBUG lines to the log file",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"%(prog)s {SYSTEM_VERSION}",
    )

    return parser


# ============================================================
# CLI CONFIGURATION BUILDER
# ============================================================

def build_config(args: argparse.Namespace) -> OrchestratorConfig:
    """
    Build orchestrator configuration from environment and CLI.

    Raises:
        ValueError: If a numeric environment value does not parse
    """
    config = OrchestratorConfig.from_env()
    if args.debug:
        config.debug = True
    return config


def is_root() -> bool:
    return os.geteuid() == 0


def print_banner(config: OrchestratorConfig) -> None:
    """Print startup banner."""
    print()
    print("=" * 60)
    print(f"  {SYSTEM_NAME} v{SYSTEM_VERSION}")
    print("=" * 60)
    print(f"  Progress:   {config.progress_file}")
    print(f"  Log File:   {config.log_file}")
    print(f"  Modules:    {config.modules_dir}")
    print(f"  Timeout:    {config.module_timeout_seconds:g}s")
    print("=" * 60)
    print()


def _fail(message: str) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return EXIT_CODE_FAILURE


# ============================================================
# MAIN ENTRY POINT
# ============================================================

async def async_main(orchestrator: Orchestrator) -> int:
    """Run the menu loop."""
    return await orchestrator.run()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except ValueError as e:
        return _fail(f"Invalid environment configuration: {e}")

    errors = config.validate()
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return EXIT_CODE_FAILURE

    if config.require_root and not is_root():
        return _fail("This setup must be run with root privileges (sudo).")

    logger = setup_logging(config.log_file, debug=config.debug, console=config.log_to_console)
    logger.info(f"Starting {SYSTEM_NAME} v{SYSTEM_VERSION}")

    try:
        with InstanceLock(config.lock_file):
            load_environment(config.env_file)
            check_environment()

            registry = build_iot_registry(config.modules_dir)
            registry.validate()
            orchestrator = create_orchestrator(config=config, registry=registry)

            print_banner(config)
            return asyncio.run(async_main(orchestrator))

    except InstanceLockError as e:
        logger.error(e.message)
        return _fail("Another instance of the script is already running.")
    except (ConfigurationError, StartupError) as e:
        log = logger.critical if e.is_fatal else logger.error
        log(f"Startup failed: {e.to_log_format()}")
        logger.debug(f"Startup error details: {e.to_dict()}")
        return _fail(e.message)
    except KeyboardInterrupt:
        logging.getLogger(__name__).warning("Interrupted by user")
        return EXIT_CODE_INTERRUPTED


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
