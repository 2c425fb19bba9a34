"""sidebar_terminal.ansi

Output framing shared by the engine and the display surfaces.

The prompt and error framing bytes are part of the output contract and must
stay bit-for-bit identical: existing renderers match on them.
"""

from __future__ import annotations

import re
from typing import Iterator


CRLF = "\r\n"
RED = "\x1b[31m"
GREEN = "\x1b[32m"
RESET = "\x1b[0m"

ERASE_BACK = "\b \b"
INTERRUPT_ECHO = "^C" + CRLF

_ANSI_RE = re.compile(r"(?s)\x1b\[[0-?]*[ -/]*[@-~]")
_OSC_RE = re.compile(r"(?s)\x1b\].*?(?:\x07|\x1b\\)")
# Only SGR ("m") sequences carry colour; everything else is dropped by renderers.
_SGR_RE = re.compile(r"\x1b\[([0-9;]*)m")


def format_prompt(cwd: str, *, new_line: bool = True) -> str:
    prefix = CRLF if new_line else ""
    return f"{prefix}{GREEN}{cwd}{RESET} $ "


def error_text(text: str) -> str:
    return f"{RED}{text}{RESET}"


def strip_ansi(text: str) -> str:
    if not text:
        return ""
    t = _OSC_RE.sub("", text)
    t = _ANSI_RE.sub("", t)
    return t


def iter_sgr_segments(text: str) -> Iterator[tuple[tuple[int, ...] | None, str]]:
    """Split `text` into `(sgr_codes, plain)` runs.

    `sgr_codes` is None for a run of plain text and a tuple of ints for an SGR
    sequence (an empty `ESC[m` yields `(0,)`). Non-SGR escapes are stripped
    from the plain runs.
    """

    pos = 0
    for m in _SGR_RE.finditer(text or ""):
        if m.start() > pos:
            plain = strip_ansi(text[pos : m.start()])
            if plain:
                yield None, plain
        raw = m.group(1)
        codes: list[int] = []
        for part in raw.split(";"):
            try:
                codes.append(int(part) if part else 0)
            except ValueError:
                continue
        yield tuple(codes or [0]), ""
        pos = m.end()
    if pos < len(text or ""):
        plain = strip_ansi(text[pos:])
        if plain:
            yield None, plain
