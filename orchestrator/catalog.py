"""
Orchestrator - IoT Module Catalog.

============================================================
RESPONSIBILITY
============================================================
The fixed IoT stack, in recommended execution order.

Each entry binds a module name to the shell script function
that provisions it. Dependencies reference earlier entries.
Modules listed in BATCH_NOTICES prompt the operator, so
Complete Install announces them and runs them interactively.

============================================================
"""

import logging
from pathlib import Path
from typing import List, Mapping, Sequence, Tuple, Union

from .actions import ScriptAction
from .registry import ModuleRegistry


IOT_MODULES: Sequence[Tuple[str, Tuple[str, ...]]] = (
    ("Network Setup", ()),
    ("GitHub Setup", ("Network Setup",)),
    ("Database Setup", ("GitHub Setup",)),
    ("MQTT Setup", ("Database Setup",)),
    ("Backend Setup", ("MQTT Setup",)),
    ("Frontend Setup", ("Backend Setup",)),
    ("Webserver Setup", ("Frontend Setup",)),
    ("VPN Setup", ("Webserver Setup",)),
    ("ESP32 Setup", ("MQTT Setup",)),
    ("Monitoring Setup", ("Backend Setup",)),
    ("Backup Setup", ("Database Setup", "Backend Setup")),
)

# Modules that need the operator during Complete Install
BATCH_NOTICES: Mapping[str, str] = {
    "GitHub Setup": (
        "You will need to choose between cloning an existing "
        "repository or creating a new one."
    ),
}


def build_iot_registry(modules_dir: Union[str, Path]) -> ModuleRegistry:
    """Register the IoT stack with script actions from modules_dir."""
    logger = logging.getLogger(__name__)
    registry = ModuleRegistry()

    for name, dependencies in IOT_MODULES:
        action = ScriptAction.for_module(modules_dir, name)
        registry.register(
            name=name,
            dependencies=dependencies,
            action=action,
            version=action.read_version(),
            batch_notice=BATCH_NOTICES.get(name),
        )

    missing = missing_scripts(registry)
    if missing:
        logger.warning(f"Module scripts not found: {', '.join(missing)}")
    return registry


def missing_scripts(registry: ModuleRegistry) -> List[str]:
    """Modules whose script action is not available."""
    return [
        module.name for module in registry
        if isinstance(module.action, ScriptAction) and not module.action.is_available()
    ]


__all__ = [
    "IOT_MODULES",
    "BATCH_NOTICES",
    "build_iot_registry",
    "missing_scripts",
]
