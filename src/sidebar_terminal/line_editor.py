"""sidebar_terminal.line_editor

Turns a stream of input units (single characters, pasted text or short escape
sequences as delivered by the display surface) into committed command lines.

The editor does no I/O: each call returns what should be echoed and, on Enter,
the trimmed line to dispatch.
"""

from __future__ import annotations

from dataclasses import dataclass

from .ansi import CRLF, ERASE_BACK, INTERRUPT_ECHO


KEY_ENTER = 13
KEY_BACKSPACE = 8
KEY_DELETE = 127
KEY_INTERRUPT = 3


@dataclass(frozen=True)
class InputResult:
    echo: str = ""
    submitted: str | None = None
    # True when the caller should write a fresh prompt (empty Enter, Ctrl-C).
    reprompt: bool = False


_NOTHING = InputResult()


class LineEditor:
    def __init__(self) -> None:
        self._pending = ""

    @property
    def pending_line(self) -> str:
        return self._pending

    def reset(self) -> None:
        self._pending = ""

    def handle_input(self, unit: str) -> InputResult:
        if not unit:
            return _NOTHING

        code = ord(unit[0])

        if code == KEY_ENTER:
            line = self._pending.strip()
            self._pending = ""
            if line:
                return InputResult(echo=CRLF, submitted=line)
            return InputResult(echo=CRLF, reprompt=True)

        if code in (KEY_DELETE, KEY_BACKSPACE):
            if not self._pending:
                return _NOTHING
            self._pending = self._pending[:-1]
            return InputResult(echo=ERASE_BACK)

        if code == KEY_INTERRUPT:
            self._pending = ""
            return InputResult(echo=INTERRUPT_ECHO, reprompt=True)

        if code >= 32:
            self._pending += unit
            return InputResult(echo=unit)

        # Remaining control codes and escape sequences (arrows, function keys).
        return _NOTHING
