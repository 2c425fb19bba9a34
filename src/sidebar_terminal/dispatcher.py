"""sidebar_terminal.dispatcher

Routes committed command lines either to a built-in (`cd`, `clear`/`cls`,
`pwd`) or to the process executor, and relays the results to the display.

Rules:
- Every command ends with exactly one prompt re-arm, after all of its output.
- At most one command is in flight per dispatcher. Commands submitted while
  one is running are queued and started, in order, once the previous prompt
  has been written. A queued line is echoed twice: live as it is typed, and
  again after the prompt it finally runs under.
- `busy` is cleared before the prompt that ends the last command is written,
  so input arriving right after that prompt sees an idle dispatcher.
- Errors are rendered, never raised to the caller.

Threading:
- `dispatch()` is called on the input thread.
- External commands run through `scheduler` (a daemon thread by default) and
  complete on that thread, so the display must accept writes from any thread.
- `write_lock` serializes every state change that is followed by a write.
  Hosts that write their own echo hold it too (see `TerminalEngine`).
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
import logging
import os
import threading
from typing import Callable, Mapping

from .ansi import CRLF, error_text, format_prompt
from .display import Display
from .executor import ExecutionError, ExecutionResult, ProcessExecutor
from .paths import change_directory


_LOG = logging.getLogger("sidebar_terminal.dispatcher")

Scheduler = Callable[[Callable[[], None]], None]
DirectoryCallback = Callable[[str], None]

CLEAR_COMMANDS = frozenset({"clear", "cls"})


@dataclass
class EngineState:
    working_directory: str


def thread_scheduler(work: Callable[[], None]) -> None:
    threading.Thread(target=work, name="sidebar-terminal-exec", daemon=True).start()


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def _describe(e: BaseException) -> str:
    return f"{type(e).__name__}: {e}"


class CommandDispatcher:
    def __init__(
        self,
        display: Display,
        executor: ProcessExecutor,
        state: EngineState,
        *,
        scheduler: Scheduler | None = None,
        env: Mapping[str, str] | None = None,
        home: str | None = None,
        on_directory_changed: DirectoryCallback | None = None,
    ) -> None:
        self._display = display
        self._executor = executor
        self._state = state
        self._scheduler = scheduler or thread_scheduler
        self._env = dict(env) if env is not None else None
        self._home = home
        self._on_directory_changed = on_directory_changed

        # Reentrant: a display may feed input back synchronously while we write.
        self._write_lock = threading.RLock()
        self._lock = threading.Lock()
        self._busy = False
        self._closed = False
        self._queue: deque[str] = deque()

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._busy

    @property
    def queued(self) -> int:
        with self._lock:
            return len(self._queue)

    @property
    def write_lock(self) -> threading.RLock:
        return self._write_lock

    # ---- public API ----

    def dispatch(self, command: str) -> None:
        with self._write_lock:
            with self._lock:
                if self._closed:
                    _LOG.debug("dispatch after close ignored: %r", command)
                    return
                if self._busy:
                    self._queue.append(command)
                    _LOG.debug("queued %r (depth=%d)", command, len(self._queue))
                    return
                self._busy = True
            self._run_from(command)

    def rearm(self, *, new_line: bool = True) -> None:
        self._display.write(format_prompt(self._state.working_directory, new_line=new_line))
        self._display.scroll_to_bottom()

    def reprompt_if_idle(self) -> bool:
        """Write a fresh prompt unless a command will write one. Returns True if written."""

        with self._write_lock:
            with self._lock:
                if self._busy or self._closed:
                    return False
            self.rearm()
            return True

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._queue.clear()
        self._executor.cancel()

    # ---- internals ----

    def _run_from(self, command: str | None) -> None:
        """Run `command`, then queued commands, until one goes async."""

        while command is not None:
            if self._execute_guarded(command):
                return
            command = self._next_queued()

    def _next_queued(self) -> str | None:
        with self._lock:
            if self._closed or not self._queue:
                if self._closed:
                    self._busy = False
                return None
            command = self._queue.popleft()
        # Show the queued line after the prompt it is now running under.
        self._write_safely(command + CRLF)
        return command

    def _end_command(self, *, new_line: bool = True) -> None:
        """Settle `busy` and write the prompt that ends the current command."""

        with self._lock:
            if not self._queue or self._closed:
                self._queue.clear()
                self._busy = False
        try:
            self.rearm(new_line=new_line)
        except Exception:
            _LOG.exception("prompt write failed")

    def _write_safely(self, text: str) -> None:
        try:
            self._display.write(text)
        except Exception:
            _LOG.exception("display write failed")

    def _report(self, e: BaseException) -> None:
        try:
            self._display.write_line(error_text(_describe(e)))
        except Exception:
            _LOG.exception("display write failed")

    def _execute_guarded(self, command: str) -> bool:
        # `_end_command` never raises, so anything caught here happened before it.
        try:
            return self._execute(command)
        except Exception as e:
            _LOG.exception("command %r failed", command)
            self._report(e)
            self._end_command()
            return False

    def _execute(self, command: str) -> bool:
        """Run one command. Returns True when it continues asynchronously."""

        cmd = (command or "").strip()
        if not cmd:
            # LineEditor never submits empty lines.
            _LOG.debug("empty command dispatched; ignoring")
            self._end_command()
            return False

        if cmd.startswith("cd "):
            self._change_directory(cmd[3:].strip())
            return False

        if cmd == "cd":
            self._change_directory("")
            return False

        if cmd in CLEAR_COMMANDS:
            self._display.clear_screen()
            self._display.scroll_to_top()
            self._end_command(new_line=False)
            return False

        if cmd == "pwd":
            self._display.write_line(self._state.working_directory)
            self._end_command()
            return False

        return self._start_external(cmd)

    def _change_directory(self, target: str) -> None:
        before = self._state.working_directory
        after, error = change_directory(before, target, home=self._home)
        if error is not None:
            self._display.write_line(error_text(error))
        elif after != before:
            self._state.working_directory = after
            _LOG.info("cwd %s -> %s", before, after)
            cb = self._on_directory_changed
            if cb is not None:
                cb(after)
        self._end_command()

    def _start_external(self, command: str) -> bool:
        cwd = self._state.working_directory
        env = self._env if self._env is not None else os.environ.copy()

        def work() -> None:
            with self._lock:
                closed = self._closed
            if closed:
                _LOG.debug("skipping %r: closed before start", command)
                return
            try:
                result = self._executor.execute(command, cwd=cwd, env=env)
            except Exception as e:
                _LOG.exception("executor raised for %r", command)
                result = ExecutionResult(error=ExecutionError(message=_describe(e)))
            self._complete(result)

        _LOG.debug("external %r cwd=%s", command, cwd)
        try:
            self._scheduler(work)
        except Exception as e:
            _LOG.exception("could not schedule %r", command)
            self._report(e)
            self._end_command()
            return False
        return True

    def _complete(self, result: ExecutionResult) -> None:
        with self._write_lock:
            with self._lock:
                closed = self._closed
            if closed:
                # Engine closed while the command ran; its display may be gone.
                _LOG.debug("dropping result after close")
                return
            try:
                self._relay(result)
            except Exception as e:
                _LOG.exception("relaying output failed")
                self._report(e)
            self._end_command()
            self._run_from(self._next_queued())

    def _relay(self, result: ExecutionResult) -> None:
        if result.stdout:
            self._display.write(_decode(result.stdout))
        if result.stderr:
            self._display.write(error_text(_decode(result.stderr)))
        # stderr, when present, already explains the failure.
        if result.error is not None and not result.stderr:
            self._display.write_line(error_text(result.error.message))
