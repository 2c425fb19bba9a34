"""sidebar_terminal.paths

Logical working-directory handling for the `cd` built-in.

Resolution is purely lexical (`..` and `.` are collapsed, symlinks are left
alone) and never touches the process's own working directory.
"""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path


_LOG = logging.getLogger("sidebar_terminal.paths")


def home_directory() -> str:
    return str(Path.home())


def resolve_target(target: str, cwd: str, home: str) -> str:
    if not target or target == "~":
        return os.path.normpath(home)
    if target.startswith("~/"):
        return os.path.normpath(os.path.join(home, target[2:]))
    if not os.path.isabs(target):
        return os.path.normpath(os.path.join(cwd, target))
    return os.path.normpath(target)


def change_directory(cwd: str, target: str, *, home: str | None = None) -> tuple[str, str | None]:
    """Resolve a `cd` target against `cwd`.

    Returns `(new_cwd, error)`. On failure `new_cwd` is the unchanged `cwd` and
    `error` is the message to show (without colour framing).
    """

    try:
        resolved = resolve_target(target, cwd, home if home is not None else home_directory())
        try:
            st = os.stat(resolved)
        except (FileNotFoundError, NotADirectoryError):
            return cwd, f"cd: no such file or directory: {target}"
        if not stat.S_ISDIR(st.st_mode):
            return cwd, f"cd: no such file or directory: {target}"
    except (OSError, ValueError, RuntimeError) as e:
        # RuntimeError: Path.home() cannot determine the home directory.
        _LOG.info("cd failed target=%r error=%s", target, e)
        return cwd, f"cd: {e}"

    return resolved, None


def validate_startup_directory(candidate: str | os.PathLike[str] | None) -> str:
    """Absolute, normalized `candidate` if it is an existing directory, else home."""

    home = home_directory()
    if candidate is None or not str(candidate).strip():
        return home
    try:
        p = os.path.normpath(os.path.abspath(os.path.expanduser(str(candidate))))
        if os.path.isdir(p):
            return p
    except (OSError, ValueError):
        pass
    _LOG.warning("startup directory %r is not a directory; using %s", str(candidate), home)
    return home
