"""sidebar_terminal.executor

Process execution for commands that are not built-ins.

Every command runs in a fresh, stateless child process started in the engine's
logical working directory. The caller's own process directory is never
changed.

`SubprocessExecutor.execute()` blocks until the child exits; the dispatcher
calls it from a worker thread.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import ntpath
import os
import signal
import subprocess
import sys
import threading
from typing import Mapping, Optional, Protocol


_LOG = logging.getLogger("sidebar_terminal.executor")


@dataclass(frozen=True)
class ExecutionError:
    message: str
    exit_code: Optional[int] = None


@dataclass(frozen=True)
class ExecutionResult:
    stdout: bytes = b""
    stderr: bytes = b""
    error: Optional[ExecutionError] = None


class ProcessExecutor(Protocol):
    """Process surface used by the dispatcher."""

    def execute(self, command: str, *, cwd: str, env: Mapping[str, str]) -> ExecutionResult: ...

    def cancel(self) -> None:
        """Kill the running child, if any. No further commands are started."""
        ...


def default_shell() -> str:
    if sys.platform == "win32":
        return "powershell.exe"
    return os.environ.get("SHELL") or "/bin/bash"


def _is_powershell(shell: str) -> bool:
    # ntpath splits on both separators.
    name = ntpath.basename(shell).lower()
    return name in {"powershell", "powershell.exe", "pwsh", "pwsh.exe"}


def build_argv(command: str, shell: str | None) -> tuple[list[str] | str, bool]:
    """Return `(args, use_shell)` for `subprocess.Popen`."""

    sh = (shell or "").strip()
    if not sh:
        return command, True
    if _is_powershell(sh):
        return [sh, "-NoProfile", "-Command", command], False
    if sys.platform == "win32":
        # cmd.exe-style shells: let COMSPEC handle quoting.
        return command, True
    return [sh, "-c", command], False


class SubprocessExecutor:
    def __init__(self, *, shell: str | None = None, timeout_s: float | None = None) -> None:
        self._shell = shell
        self._timeout_s = timeout_s
        self._proc: subprocess.Popen[bytes] | None = None
        self._cancelled = False
        self._lock = threading.Lock()

    def execute(self, command: str, *, cwd: str, env: Mapping[str, str]) -> ExecutionResult:
        with self._lock:
            if self._cancelled:
                _LOG.debug("not spawning %r: cancelled", command)
                return ExecutionResult(error=ExecutionError(message=f"Command cancelled: {command}"))
        args, use_shell = build_argv(command, self._shell)
        _LOG.debug("spawn command=%r cwd=%s shell=%s", command, cwd, self._shell)
        try:
            p = subprocess.Popen(  # noqa: S603
                args,
                cwd=cwd,
                env=dict(env),
                shell=use_shell,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                # Own process group so timeouts and cancel reach grandchildren.
                start_new_session=(os.name != "nt"),
            )
        except (OSError, ValueError) as e:
            _LOG.info("spawn failed command=%r error=%s", command, e)
            return ExecutionResult(error=ExecutionError(message=str(e)))

        with self._lock:
            self._proc = p
            cancelled = self._cancelled
        if cancelled:
            # cancel() ran between the check above and Popen.
            _kill_tree(p)
        try:
            try:
                out, err = p.communicate(timeout=self._timeout_s)
            except subprocess.TimeoutExpired:
                _kill_tree(p)
                out, err = p.communicate()
                return ExecutionResult(
                    stdout=out or b"",
                    stderr=err or b"",
                    error=ExecutionError(
                        message=f"Command timed out after {self._timeout_s:g}s: {command}",
                        exit_code=p.returncode,
                    ),
                )
        finally:
            with self._lock:
                self._proc = None

        rc = p.returncode
        _LOG.debug("exit command=%r rc=%s", command, rc)
        error = None
        if rc:
            error = ExecutionError(message=f"Command failed: {command}", exit_code=rc)
        return ExecutionResult(stdout=out or b"", stderr=err or b"", error=error)

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            p = self._proc
        if p is None:
            return
        if p.poll() is None:
            _kill_tree(p)


def _kill_tree(p: subprocess.Popen[bytes]) -> None:
    try:
        if os.name != "nt":
            os.killpg(p.pid, signal.SIGKILL)
        else:
            p.kill()
    except (ProcessLookupError, PermissionError):
        # Already gone.
        pass
    except OSError:
        p.kill()
