"""sidebar_terminal.config

Terminal configuration.

Each engine receives its own `TerminalConfig`; there is no process-wide
settings object. Values come from, in increasing priority:

1. built-in defaults
2. environment variables (optionally from a local `.env` file)
3. `settings.json` in the state directory (see `sidebar_terminal.prefs`)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .executor import default_shell


_LOG = logging.getLogger("sidebar_terminal.config")

DEFAULT_FONT_SIZE: int = 14
DEFAULT_STATE_DIR_NAME = ".sidebar_terminal"

ENV_PREFIX = "SIDEBAR_TERMINAL_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _load_dotenv_best_effort() -> None:
    """Best-effort `.env` loader.

    Supported format: `KEY=VALUE` per line, with optional quotes.
    Lines starting with `#` are ignored.

    Only `SIDEBAR_TERMINAL_*` keys are read, and only those not already present
    in `os.environ`; spawned commands inherit `os.environ`.
    """

    try:
        env_path = Path.cwd() / ".env"
        if not env_path.exists() or not env_path.is_file():
            return

        for raw in env_path.read_text(encoding="utf-8").splitlines():
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            k, v = line.split("=", 1)
            key = k.strip()
            val = v.strip().strip('"').strip("'")
            if not key.startswith(ENV_PREFIX):
                continue
            os.environ.setdefault(key, val)
    except (OSError, UnicodeDecodeError):
        # Never fail startup due to dotenv parsing.
        return


def default_state_dir() -> Path:
    return Path.home() / DEFAULT_STATE_DIR_NAME


@dataclass(frozen=True)
class TerminalConfig:
    shell: str = field(default_factory=default_shell)
    font_size: int = DEFAULT_FONT_SIZE
    cursor_blink: bool = True
    startup_directory: str | None = None
    command_timeout_s: float | None = None
    state_dir: Path = field(default_factory=default_state_dir)


def parse_font_size(value: object) -> int | None:
    try:
        size = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return size if size > 0 else None


def parse_bool(value: object) -> bool | None:
    if isinstance(value, bool):
        return value
    s = str(value).strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    return None


def parse_timeout(value: object) -> float | None:
    try:
        t = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    return t if t > 0 else None


def _from_environ(state_dir: Path | None) -> TerminalConfig:
    env = os.environ
    cfg = TerminalConfig()

    shell = (env.get("SIDEBAR_TERMINAL_SHELL") or "").strip() or cfg.shell

    font_size = cfg.font_size
    raw_size = env.get("SIDEBAR_TERMINAL_FONT_SIZE")
    if raw_size is not None:
        parsed = parse_font_size(raw_size)
        if parsed is None:
            _LOG.warning("ignoring invalid SIDEBAR_TERMINAL_FONT_SIZE=%r", raw_size)
        else:
            font_size = parsed

    blink = cfg.cursor_blink
    raw_blink = env.get("SIDEBAR_TERMINAL_CURSOR_BLINK")
    if raw_blink is not None:
        b = parse_bool(raw_blink)
        if b is None:
            _LOG.warning("ignoring invalid SIDEBAR_TERMINAL_CURSOR_BLINK=%r", raw_blink)
        else:
            blink = b

    timeout = cfg.command_timeout_s
    raw_timeout = env.get("SIDEBAR_TERMINAL_TIMEOUT_S")
    if raw_timeout:
        timeout = parse_timeout(raw_timeout)
        if timeout is None:
            _LOG.warning("ignoring invalid SIDEBAR_TERMINAL_TIMEOUT_S=%r", raw_timeout)

    if state_dir is None:
        raw_dir = (env.get("SIDEBAR_TERMINAL_STATE_DIR") or "").strip()
        state_dir = Path(raw_dir).expanduser() if raw_dir else cfg.state_dir

    return TerminalConfig(
        shell=shell,
        font_size=font_size,
        cursor_blink=blink,
        startup_directory=(env.get("SIDEBAR_TERMINAL_CWD") or "").strip() or None,
        command_timeout_s=timeout,
        state_dir=Path(state_dir),
    )


def load_config(state_dir: Path | None = None) -> TerminalConfig:
    from .prefs import apply_settings, load_settings

    _load_dotenv_best_effort()
    cfg = _from_environ(state_dir)
    return apply_settings(cfg, load_settings(cfg.state_dir))
