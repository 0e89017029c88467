"""
Orchestrator Package - Setup Coordination Layer.

============================================================
PACKAGE OVERVIEW
============================================================
This package drives the interactive setup of the IoT Control
System. It is the SINGLE ENTRYPOINT that loads progress, shows
the menu and runs setup modules one at a time.

============================================================
CORE PRINCIPLES
============================================================
1. The orchestrator has NO provisioning logic
2. Dependencies are advisory: the user may override them
3. A failing module never brings down the menu
4. Progress is persisted after every state change
5. A module that timed out is never marked Successful

============================================================
ARCHITECTURE
============================================================

    +-----------------------------------------------------+
    |                     Orchestrator                    |
    |-----------------------------------------------------|
    |  ModuleRegistry     |  Modules, statuses, graph     |
    |  DependencyResolver |  Readiness and warnings       |
    |  ModuleRunner       |  Isolated, bounded execution  |
    |  ProgressStore      |  Locked progress file         |
    |  Preconditions      |  Network, service, resources  |
    |  CLI                |  Command-line interface       |
    +-----------------------------------------------------+

============================================================
QUICK START
============================================================
Command line usage::

    sudo python app.py
    sudo python app.py --debug

Programmatic usage::

    import asyncio
    from orchestrator import (
        Orchestrator,
        OrchestratorConfig,
        ModuleRegistry,
        ConsoleDialogs,
    )

    registry = ModuleRegistry()
    registry.register("Network Setup", action=setup_network)
    registry.register("MQTT Setup", dependencies=["Network Setup"], action=setup_mqtt)

    orchestrator = Orchestrator(
        config=OrchestratorConfig(base_dir="/opt/setup"),
        registry=registry,
        dialogs=ConsoleDialogs(),
    )
    exit_code = asyncio.run(orchestrator.run())

============================================================
EXPORTS
============================================================
"""

# ============================================================
# Models
# ============================================================
from orchestrator.models import (
    # Enums
    ModuleStatus,
    ExecutionResult,

    # Module definitions
    Module,
    ModuleAction,

    # Results
    PreconditionResult,
    BatchResult,

    # Configuration
    OrchestratorConfig,
)

# ============================================================
# Registry
# ============================================================
from orchestrator.registry import (
    ModuleRegistry,
    DependencyGraph,
    build_registry,
)

# ============================================================
# Execution
# ============================================================
from orchestrator.resolver import DependencyResolver
from orchestrator.runner import IsolatedExecutor, ModuleRunner
from orchestrator.actions import ScriptAction
from orchestrator.progress import ProgressStore
from orchestrator.preconditions import (
    NetworkPrecondition,
    ServicePrecondition,
    ResourcePrecondition,
    PreconditionChecker,
)

# ============================================================
# Dialogs
# ============================================================
from orchestrator.dialogs import (
    DialogProvider,
    ConsoleDialogs,
)

# ============================================================
# Core
# ============================================================
from orchestrator.core import (
    Orchestrator,
    create_orchestrator,
    setup_logging,
)
from orchestrator.catalog import BATCH_NOTICES, IOT_MODULES, build_iot_registry

# ============================================================
# CLI
# ============================================================
from orchestrator.cli import (
    create_parser,
    build_config,
    print_banner,
    main,
    async_main,
)

# ============================================================
# Package metadata
# ============================================================
__version__ = "4.8.0"
__author__ = "IoT Control System Team"

__all__ = [
    # Models - Enums
    "ModuleStatus",
    "ExecutionResult",

    # Models - Module definitions
    "Module",
    "ModuleAction",

    # Models - Results
    "PreconditionResult",
    "BatchResult",

    # Models - Configuration
    "OrchestratorConfig",

    # Registry
    "ModuleRegistry",
    "DependencyGraph",
    "build_registry",

    # Execution
    "DependencyResolver",
    "IsolatedExecutor",
    "ModuleRunner",
    "ScriptAction",
    "ProgressStore",
    "NetworkPrecondition",
    "ServicePrecondition",
    "ResourcePrecondition",
    "PreconditionChecker",

    # Dialogs
    "DialogProvider",
    "ConsoleDialogs",

    # Core
    "Orchestrator",
    "create_orchestrator",
    "setup_logging",
    "IOT_MODULES",
    "BATCH_NOTICES",
    "build_iot_registry",

    # CLI
    "create_parser",
    "build_config",
    "print_banner",
    "main",
    "async_main",
]
