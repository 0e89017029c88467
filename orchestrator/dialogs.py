"""
Orchestrator - Dialogs.

============================================================
RESPONSIBILITY
============================================================
The narrow interface between the menu loop and the terminal.

- DialogProvider protocol: menu, message, confirm, progress
- ConsoleDialogs: numbered-menu implementation on stdin/stdout

Any widget toolkit can be plugged in by implementing the
protocol.

============================================================
"""

import sys
from typing import Callable, List, Optional, Protocol, Sequence, TextIO, Tuple


MenuItem = Tuple[str, str]
"""(tag returned on selection, text displayed)."""


class DialogProvider(Protocol):
    """Terminal UI used by the orchestrator."""

    def menu(self, title: str, prompt: str, items: Sequence[MenuItem]) -> Optional[str]:
        """Show a menu; return the selected tag or None on cancel."""
        ...

    def message(self, title: str, text: str) -> None:
        """Show an informational message."""
        ...

    def confirm(self, title: str, text: str) -> bool:
        """Ask a yes/no question."""
        ...

    def progress(self, title: str, text: str, percent: int) -> None:
        """Show a progress gauge."""
        ...


class ConsoleDialogs:
    """Plain-text dialogs on a terminal."""

    def __init__(
        self,
        input_func: Optional[Callable[[str], str]] = None,
        output: Optional[TextIO] = None,
        backtitle: str = "",
    ):
        self._input = input_func or input
        self._output = output or sys.stdout
        self._backtitle = backtitle

    def _print(self, text: str = "") -> None:
        print(text, file=self._output)

    def _header(self, title: str) -> None:
        self._print()
        if self._backtitle:
            self._print(self._backtitle)
        self._print("=" * 60)
        self._print(f"  {title}")
        self._print("=" * 60)

    def _ask(self, prompt: str) -> Optional[str]:
        try:
            return self._input(prompt)
        except EOFError:
            return None

    def menu(self, title: str, prompt: str, items: Sequence[MenuItem]) -> Optional[str]:
        self._header(title)
        tags: List[str] = []
        for index, (tag, text) in enumerate(items, 1):
            tags.append(tag)
            self._print(f"  {index:2d}. {text}")
        self._print()
        self._print(prompt)

        answer = self._ask("> ")
        if answer is None:
            return None
        answer = answer.strip()
        if not answer:
            return ""
        if answer.isdigit():
            index = int(answer)
            if 1 <= index <= len(tags):
                return tags[index - 1]
            return ""
        for tag in tags:
            if tag.lower() == answer.lower():
                return tag
        return ""

    def message(self, title: str, text: str) -> None:
        self._header(title)
        self._print(text)
        self._ask("Press Enter to continue...")

    def confirm(self, title: str, text: str) -> bool:
        self._header(title)
        self._print(text)
        answer = self._ask("[y/N] ")
        return answer is not None and answer.strip().lower() in ("y", "yes")

    def progress(self, title: str, text: str, percent: int) -> None:
        width = 40
        filled = width * max(0, min(percent, 100)) // 100
        bar = "#" * filled + "-" * (width - filled)
        self._print(f"{title}: [{bar}] {percent:3d}% {text}")


__all__ = [
    "MenuItem",
    "DialogProvider",
    "ConsoleDialogs",
]
