"""
Orchestrator - Dependency Resolver.

============================================================
RESPONSIBILITY
============================================================
Evaluates inter-module dependencies against the registry.

- is_satisfied: all dependencies Successful
- check_and_warn: soft gate, warns but never blocks
- recompute_readiness: promote satisfied modules to Ready

Dependencies are advisory. Hard blocking is reserved for
environmental preconditions (see preconditions.py).

============================================================
"""

import logging
from typing import Callable, List, Optional

from .models import ModuleStatus
from .registry import ModuleRegistry


WarningSink = Callable[[str, str], None]
"""Receives (module name, warning text)."""

_PROMOTABLE = (ModuleStatus.NOT_EXECUTED, ModuleStatus.FAILED)


class DependencyResolver:
    """Dependency evaluation over a shared registry."""

    def __init__(
        self,
        registry: ModuleRegistry,
        warning_sink: Optional[WarningSink] = None,
    ):
        self._registry = registry
        self._warning_sink = warning_sink
        self._logger = logging.getLogger(__name__)

    def set_warning_sink(self, sink: Optional[WarningSink]) -> None:
        self._warning_sink = sink

    def first_unmet(self, name: str) -> Optional[str]:
        """First dependency of name that is not Successful."""
        for dep in self._registry.get(name).dependencies:
            if self._registry.get(dep).status != ModuleStatus.SUCCESSFUL:
                return dep
        return None

    def is_satisfied(self, name: str) -> bool:
        """True iff every dependency of name is Successful."""
        return self.first_unmet(name) is None

    def check_and_warn(self, name: str) -> bool:
        """
        Soft dependency gate.

        Emits a warning naming the first unmet dependency. The caller
        decides whether to proceed.

        Returns:
            Whether all dependencies are satisfied
        """
        unmet = self.first_unmet(name)
        if unmet is None:
            return True

        message = (
            f"Warning: Dependency '{unmet}' has not been executed yet. "
            f"It is recommended to run it before proceeding with {name}."
        )
        self._logger.warning(message)
        if self._warning_sink is not None:
            self._warning_sink(name, message)
        return False

    def recompute_readiness(self) -> List[str]:
        """
        Promote Not Executed and Failed modules whose dependencies are
        all Successful to Ready.

        Only modules declaring at least one dependency are promoted;
        an independent module keeps its own outcome.

        Returns:
            Names that transitioned to Ready
        """
        promoted = []
        for module in self._registry:
            if not module.dependencies or module.status not in _PROMOTABLE:
                continue
            if self.is_satisfied(module.name):
                self._registry.set_status(module.name, ModuleStatus.READY)
                promoted.append(module.name)
                self._logger.info(f"Module {module.name} is now ready to execute")
        return promoted


__all__ = [
    "WarningSink",
    "DependencyResolver",
]
