"""
Orchestrator - Module Registry.

============================================================
RESPONSIBILITY
============================================================
Holds every known module and its status.

- Register modules with dependencies (fail fast on bad graphs)
- Look up and update module status
- Bind actions to modules
- Apply and snapshot statuses for persistence

Insertion order is the menu order and the recommended
execution order. It does not constrain what the user runs.

============================================================
"""

import logging
from typing import Dict, Iterable, KeysView, List, Mapping, Optional, Sequence, Set

from .models import Module, ModuleAction, ModuleStatus
from core.exceptions import (
    ConfigurationError,
    DependencyCycleError,
    DuplicateModuleError,
    UnknownModuleError,
)


# ============================================================
# DEPENDENCY GRAPH
# ============================================================

class DependencyGraph:
    """
    Module dependency edges.

    Uses depth-first search to detect cycles.
    """

    def __init__(self):
        self._edges: Dict[str, List[str]] = {}  # node -> dependencies

    def add_node(self, name: str, dependencies: Sequence[str] = ()) -> None:
        """Add a node with its dependencies."""
        self._edges[name] = list(dependencies)
        for dep in dependencies:
            self._edges.setdefault(dep, [])

    def remove_node(self, name: str) -> None:
        self._edges.pop(name, None)

    def find_cycle(self) -> Optional[List[str]]:
        """
        Find a dependency cycle.

        Returns:
            The cycle as a path whose first and last element are equal,
            or None if the graph is acyclic
        """
        visited: Set[str] = set()
        stack: List[str] = []
        on_stack: Set[str] = set()

        def visit(node: str) -> Optional[List[str]]:
            if node in on_stack:
                return stack[stack.index(node):] + [node]
            if node in visited:
                return None

            stack.append(node)
            on_stack.add(node)

            for dep in self._edges.get(node, []):
                cycle = visit(dep)
                if cycle:
                    return cycle

            stack.pop()
            on_stack.remove(node)
            visited.add(node)
            return None

        for node in list(self._edges):
            cycle = visit(node)
            if cycle:
                return cycle
        return None

    def get_dependents(self, name: str) -> Set[str]:
        """Get modules that depend on the given module."""
        return {node for node, deps in self._edges.items() if name in deps}


# ============================================================
# MODULE REGISTRY
# ============================================================

class ModuleRegistry:
    """
    Central registry for all provisioning modules.

    The registry is plain data. Status transitions come from the
    runner or from an explicit reset; no transition is rejected.
    """

    def __init__(self):
        self._modules: Dict[str, Module] = {}
        self._graph = DependencyGraph()
        self._logger = logging.getLogger(__name__)

    # --------------------------------------------------------
    # Registration
    # --------------------------------------------------------

    def register(
        self,
        name: str,
        dependencies: Sequence[str] = (),
        action: Optional[ModuleAction] = None,
        version: Optional[str] = None,
        batch_notice: Optional[str] = None,
    ) -> Module:
        """
        Register a module with status Not Executed.

        Dependencies must already be registered.

        Raises:
            DuplicateModuleError: If the name is taken
            UnknownModuleError: If a dependency is not registered
            DependencyCycleError: If the module depends on itself
        """
        if name in self._modules:
            raise DuplicateModuleError(name)

        dependencies = tuple(dependencies)
        if name in dependencies:
            raise DependencyCycleError([name, name])
        for dep in dependencies:
            if dep not in self._modules:
                raise UnknownModuleError(dep, referenced_by=name)

        self._graph.add_node(name, dependencies)
        cycle = self._graph.find_cycle()
        if cycle:
            self._graph.remove_node(name)
            raise DependencyCycleError(cycle)

        module = Module(
            name=name,
            dependencies=dependencies,
            action=action,
            version=version,
            batch_notice=batch_notice,
        )
        self._modules[name] = module

        self._logger.debug(f"Registered module: {name}")
        return module

    def bind_action(self, name: str, action: ModuleAction) -> None:
        """Bind or replace the action of a registered module."""
        self.get(name).action = action

    def validate(self, require_actions: bool = True) -> None:
        """
        Validate the registry before the menu loop starts.

        Raises:
            DependencyCycleError: If the graph has a cycle
            ConfigurationError: If a module has no action bound
        """
        cycle = self._graph.find_cycle()
        if cycle:
            raise DependencyCycleError(cycle)

        if require_actions:
            unbound = [m.name for m in self._modules.values() if m.action is None]
            if unbound:
                raise ConfigurationError(
                    message=f"No action bound for modules: {', '.join(unbound)}",
                    context={"modules": unbound},
                )

    # --------------------------------------------------------
    # Lookup
    # --------------------------------------------------------

    def get(self, name: str) -> Module:
        """
        Get a module record.

        Raises:
            UnknownModuleError: If not registered
        """
        try:
            return self._modules[name]
        except KeyError:
            raise UnknownModuleError(name) from None

    def all_names(self) -> KeysView:
        """Registration-ordered names. Iterable any number of times."""
        return self._modules.keys()

    def modules(self) -> List[Module]:
        """Module records in registration order."""
        return list(self._modules.values())

    def dependents(self, name: str) -> List[str]:
        """Registered modules that declare a dependency on name."""
        found = self._graph.get_dependents(name)
        return [n for n in self._modules if n in found]

    def __contains__(self, name: object) -> bool:
        return name in self._modules

    def __len__(self) -> int:
        return len(self._modules)

    def __iter__(self):
        return iter(self._modules.values())

    # --------------------------------------------------------
    # Status
    # --------------------------------------------------------

    def set_status(self, name: str, status: ModuleStatus) -> None:
        """
        Overwrite a module status.

        Raises:
            UnknownModuleError: If not registered
        """
        module = self.get(name)
        if module.status != status:
            self._logger.debug(f"Status {name}: {module.status.value} -> {status.value}")
        module.status = status

    def statuses(self) -> Dict[str, ModuleStatus]:
        """Snapshot of all statuses in registration order."""
        return {name: m.status for name, m in self._modules.items()}

    def apply_statuses(self, statuses: Mapping[str, ModuleStatus]) -> List[str]:
        """
        Apply a persisted status map.

        Names not registered are ignored. Registered names absent from
        the map keep their current status.

        Returns:
            Names whose status was applied
        """
        applied = []
        for name, status in statuses.items():
            module = self._modules.get(name)
            if module is None:
                self._logger.debug(f"Ignoring progress for unknown module: {name}")
                continue
            module.status = status
            applied.append(name)
        return applied

    def reset(self) -> None:
        """Set every module back to Not Executed."""
        for module in self._modules.values():
            module.status = ModuleStatus.NOT_EXECUTED
            module.dependencies_overridden = False
            module.last_result = None

    def count(self, status: ModuleStatus) -> int:
        return sum(1 for m in self._modules.values() if m.status == status)

    def completion_percentage(self) -> int:
        """Successful modules as an integer percentage."""
        if not self._modules:
            return 0
        return self.count(ModuleStatus.SUCCESSFUL) * 100 // len(self._modules)

    def get_status_summary(self) -> Dict[str, int]:
        """Count of modules per status."""
        return {status.value: self.count(status) for status in ModuleStatus}


def build_registry(definitions: Iterable[Mapping]) -> ModuleRegistry:
    """
    Build a registry from definition mappings.

    Each mapping holds ``name`` and optionally ``dependencies``,
    ``action``, ``version`` and ``batch_notice``.
    """
    registry = ModuleRegistry()
    for definition in definitions:
        registry.register(
            name=definition["name"],
            dependencies=definition.get("dependencies", ()),
            action=definition.get("action"),
            version=definition.get("version"),
            batch_notice=definition.get("batch_notice"),
        )
    return registry


__all__ = [
    "DependencyGraph",
    "ModuleRegistry",
    "build_registry",
]
