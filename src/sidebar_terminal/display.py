"""sidebar_terminal.display

The narrow surface the engine draws on. Calls are fire-and-forget and must be
applied in order; the engine never reads display state back.
"""

from __future__ import annotations

from typing import Protocol


class Display(Protocol):
    """Subset of a terminal widget used by the engine."""

    def write(self, text: str) -> None: ...

    def write_line(self, text: str) -> None: ...

    def clear_screen(self) -> None: ...

    def scroll_to_bottom(self) -> None: ...

    def scroll_to_top(self) -> None: ...
