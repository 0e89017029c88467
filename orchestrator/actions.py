"""
Orchestrator - Module Actions.

============================================================
RESPONSIBILITY
============================================================
Bindings between module names and executable actions.

- ScriptAction runs a function from a module shell script
- Bindings are explicit objects built at startup, not
  function names computed at run time
- Script version headers feed the menu labels

============================================================
"""

import logging
import re
import subprocess
from pathlib import Path
from typing import Optional, Union


_VERSION_PATTERN = re.compile(r"^#\s*Version:\s*(\S+)")


def module_slug(name: str) -> str:
    """'Network Setup' -> 'network_setup'."""
    return re.sub(r"\s+", "_", name.strip().lower())


def read_script_version(script_path: Union[str, Path]) -> Optional[str]:
    """Version from the first '# Version: X.Y.Z' header line."""
    try:
        with open(script_path, "r", encoding="utf-8", errors="replace") as f:
            for line in f:
                match = _VERSION_PATTERN.match(line)
                if match:
                    return match.group(1)
    except OSError:
        return None
    return None


class ScriptAction:
    """
    Runs ``function_name`` after sourcing ``script_path`` in bash.

    Returns True iff the function exits with status 0.
    """

    def __init__(
        self,
        script_path: Union[str, Path],
        function_name: str,
        shell: str = "/bin/bash",
    ):
        self.script_path = Path(script_path)
        self.function_name = function_name
        self.shell = shell
        self._logger = logging.getLogger(__name__)

    @classmethod
    def for_module(cls, modules_dir: Union[str, Path], name: str) -> "ScriptAction":
        slug = module_slug(name)
        return cls(Path(modules_dir) / f"{slug}.sh", slug)

    def is_available(self) -> bool:
        return self.script_path.is_file()

    def read_version(self) -> Optional[str]:
        return read_script_version(self.script_path)

    def command(self):
        script = (
            'source "$1" || exit 1; '
            'declare -F "$2" >/dev/null || { echo "Function $2 not found in $1" >&2; exit 2; }; '
            '"$2"'
        )
        return [self.shell, "-c", script, "module", str(self.script_path), self.function_name]

    def __call__(self) -> bool:
        self._logger.info(f"Executing {self.function_name} from {self.script_path}")
        completed = subprocess.run(self.command(), check=False)
        if completed.returncode != 0:
            self._logger.error(
                f"{self.function_name} exited with status {completed.returncode}"
            )
        return completed.returncode == 0

    def __repr__(self) -> str:
        return f"ScriptAction({str(self.script_path)!r}, {self.function_name!r})"


__all__ = [
    "module_slug",
    "read_script_version",
    "ScriptAction",
]
