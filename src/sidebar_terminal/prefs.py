"""sidebar_terminal.prefs

Persistence for terminal settings across app restarts.

Settings live in `<state_dir>/settings.json`. Only the user-editable fields of
`TerminalConfig` are stored; `state_dir` itself is never persisted.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from pathlib import Path
from typing import Any

from .config import TerminalConfig, parse_bool, parse_font_size, parse_timeout


_LOG = logging.getLogger("sidebar_terminal.prefs")

JsonDict = dict[str, Any]

SETTINGS_KEYS: tuple[str, ...] = (
    "shell",
    "font_size",
    "cursor_blink",
    "startup_directory",
    "command_timeout_s",
)


def settings_path(state_dir: Path) -> Path:
    return (Path(state_dir) / "settings.json").resolve()


def load_settings(state_dir: Path) -> JsonDict:
    p = settings_path(state_dir)
    try:
        if not p.exists():
            return {}
        d = json.loads(p.read_text(encoding="utf-8"))
        return d if isinstance(d, dict) else {}
    except (OSError, ValueError) as e:
        _LOG.warning("could not read %s: %s", p, e)
        return {}


def save_settings(state_dir: Path, data: JsonDict) -> None:
    p = settings_path(state_dir)
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_suffix(".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    tmp.replace(p)


def config_to_settings(cfg: TerminalConfig) -> JsonDict:
    return {k: getattr(cfg, k) for k in SETTINGS_KEYS}


def apply_settings(cfg: TerminalConfig, overrides: JsonDict) -> TerminalConfig:
    """Return `cfg` with valid `overrides` applied; invalid values are skipped."""

    if not isinstance(overrides, dict):
        return cfg

    changes: JsonDict = {}
    for k, v in overrides.items():
        if k not in SETTINGS_KEYS:
            continue
        if k == "shell":
            if isinstance(v, str) and v.strip():
                changes[k] = v.strip()
            else:
                # Empty shell resets to the default, as in the settings tab.
                changes[k] = TerminalConfig().shell
        elif k == "font_size":
            size = parse_font_size(v)
            if size is None:
                _LOG.warning("ignoring invalid font_size=%r", v)
                continue
            changes[k] = size
        elif k == "cursor_blink":
            b = parse_bool(v)
            if b is None:
                continue
            changes[k] = b
        elif k == "startup_directory":
            changes[k] = v.strip() if isinstance(v, str) and v.strip() else None
        elif k == "command_timeout_s":
            changes[k] = parse_timeout(v) if v is not None else None

    if not changes:
        return cfg
    return dataclasses.replace(cfg, **changes)
