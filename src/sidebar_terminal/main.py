"""sidebar_terminal.main

Entry point for the terminal window.

Run:
    python -m sidebar_terminal.main [--cwd DIR] [--shell PATH] [--font-size N]

Command-line values override environment and saved settings for this run;
pass `--save` to keep them.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from .config import TerminalConfig, load_config, parse_font_size, parse_timeout
from .prefs import apply_settings, config_to_settings, save_settings


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="sidebar_terminal.main")
    ap.add_argument("--cwd", default=None, help="Startup directory (falls back to home if invalid)")
    ap.add_argument("--shell", default=None, help="Shell used to run external commands")
    ap.add_argument("--font-size", default=None, help="Font size in pixels")
    ap.add_argument("--timeout", default=None, help="Kill external commands after this many seconds")
    ap.add_argument("--no-blink", action="store_true", help="Disable cursor blinking")
    ap.add_argument("--state-dir", default=None, help="Directory for settings.json and terminal.log")
    ap.add_argument("--save", action="store_true", help="Persist the given options to settings.json")
    return ap


def config_from_args(args: argparse.Namespace) -> TerminalConfig:
    state_dir = Path(args.state_dir).expanduser() if args.state_dir else None
    cfg = load_config(state_dir)

    overrides: dict[str, object] = {}
    if args.cwd is not None:
        overrides["startup_directory"] = args.cwd
    if args.shell is not None:
        overrides["shell"] = args.shell
    if args.font_size is not None:
        if parse_font_size(args.font_size) is None:
            raise SystemExit(f"invalid --font-size: {args.font_size!r}")
        overrides["font_size"] = args.font_size
    if args.timeout is not None:
        if parse_timeout(args.timeout) is None:
            raise SystemExit(f"invalid --timeout: {args.timeout!r}")
        overrides["command_timeout_s"] = args.timeout
    if args.no_blink:
        overrides["cursor_blink"] = False

    cfg = apply_settings(cfg, overrides)
    if args.save:
        save_settings(cfg.state_dir, config_to_settings(cfg))
    return cfg


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = config_from_args(args)

    # Qt is only needed once we actually open a window.
    from .terminal_ui import TerminalWindow, _setup_run_logging

    _setup_run_logging(cfg.state_dir)
    w = TerminalWindow(cfg)
    return w.exec()


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
