"""sidebar_terminal.engine

One terminal session: a `LineEditor`, a `CommandDispatcher` and the
`EngineState` they share. Engines are fully independent of each other; a host
that shows several terminals creates one engine per terminal.

Public API (used by hosts):
- start()
- submit_input(unit)
- close()
"""

from __future__ import annotations

import logging
import os

from .config import TerminalConfig
from .dispatcher import CommandDispatcher, DirectoryCallback, EngineState, Scheduler
from .display import Display
from .executor import ProcessExecutor, SubprocessExecutor
from .line_editor import LineEditor
from .paths import validate_startup_directory


_LOG = logging.getLogger("sidebar_terminal.engine")


class TerminalEngine:
    def __init__(
        self,
        display: Display,
        config: TerminalConfig | None = None,
        *,
        executor: ProcessExecutor | None = None,
        scheduler: Scheduler | None = None,
        working_directory: str | os.PathLike[str] | None = None,
        on_directory_changed: DirectoryCallback | None = None,
    ) -> None:
        self._cfg = config or TerminalConfig()
        self._display = display

        start_dir = working_directory if working_directory is not None else self._cfg.startup_directory
        self._state = EngineState(working_directory=validate_startup_directory(start_dir))

        self._editor = LineEditor()
        self._dispatcher = CommandDispatcher(
            display,
            executor or SubprocessExecutor(shell=self._cfg.shell, timeout_s=self._cfg.command_timeout_s),
            self._state,
            scheduler=scheduler,
            on_directory_changed=on_directory_changed,
        )
        self._started = False
        _LOG.info("engine created cwd=%s shell=%s", self._state.working_directory, self._cfg.shell)

    @property
    def config(self) -> TerminalConfig:
        return self._cfg

    @property
    def working_directory(self) -> str:
        return self._state.working_directory

    @property
    def pending_line(self) -> str:
        return self._editor.pending_line

    @property
    def busy(self) -> bool:
        return self._dispatcher.busy

    def start(self) -> None:
        """Write the first prompt (no leading line break)."""

        if self._started:
            return
        self._started = True
        self._dispatcher.rearm(new_line=False)

    def submit_input(self, unit: str) -> None:
        # Echo and the idle check must not interleave with a completion prompt.
        with self._dispatcher.write_lock:
            res = self._editor.handle_input(unit)
            if res.echo:
                self._display.write(res.echo)
            if res.submitted is not None:
                self._dispatcher.dispatch(res.submitted)
            elif res.reprompt:
                # While a command runs, its completion writes the next prompt.
                self._dispatcher.reprompt_if_idle()

    def close(self) -> None:
        self._editor.reset()
        self._dispatcher.close()
        _LOG.info("engine closed cwd=%s", self._state.working_directory)
