from __future__ import annotations

from pathlib import Path

from sidebar_terminal.dispatcher import CommandDispatcher, EngineState
from sidebar_terminal.executor import ExecutionError, ExecutionResult

from stubs import PROMPT_END, ManualScheduler, RecordingDisplay, StubExecutor, inline


def make(tmp_path: Path, results=None, scheduler=inline, **kw):
    display = RecordingDisplay()
    executor = StubExecutor(results)
    state = EngineState(working_directory=str(tmp_path))
    d = CommandDispatcher(display, executor, state, scheduler=scheduler, **kw)
    return d, display, executor, state


def test_cd_then_pwd_reflects_new_directory(tmp_path: Path) -> None:
    (tmp_path / "proj").mkdir()
    d, display, executor, state = make(tmp_path)

    d.dispatch("cd proj")
    assert state.working_directory == str(tmp_path / "proj")

    display.calls.clear()
    d.dispatch("pwd")
    assert display.calls[0] == ("write_line", str(tmp_path / "proj"))
    assert display.calls[1] == ("write", f"\r\n\x1b[32m{tmp_path / 'proj'}\x1b[0m $ ")
    assert display.calls[2] == ("scroll_to_bottom", None)
    assert executor.calls == []


def test_cd_to_missing_directory_renders_error_and_keeps_state(tmp_path: Path) -> None:
    d, display, executor, state = make(tmp_path)

    d.dispatch("cd /definitely/not/a/real/path")

    assert state.working_directory == str(tmp_path)
    assert display.calls[0] == (
        "write_line",
        "\x1b[31mcd: no such file or directory: /definitely/not/a/real/path\x1b[0m",
    )
    assert len(display.prompts()) == 1


def test_cd_remainder_is_trimmed(tmp_path: Path) -> None:
    (tmp_path / "a b").mkdir()
    d, _display, _executor, state = make(tmp_path)
    d.dispatch("cd    a b  ")
    assert state.working_directory == str(tmp_path / "a b")


def test_bare_cd_goes_home(tmp_path: Path) -> None:
    home = tmp_path / "home"
    home.mkdir()
    d, display, executor, state = make(tmp_path, home=str(home))
    d.dispatch("cd")
    assert state.working_directory == str(home)
    assert executor.calls == []
    assert len(display.prompts()) == 1


def test_directory_change_callback(tmp_path: Path) -> None:
    (tmp_path / "x").mkdir()
    seen: list[str] = []
    d, _display, _executor, _state = make(tmp_path, on_directory_changed=seen.append)
    d.dispatch("cd x")
    d.dispatch("cd /definitely/not/a/real/path")
    assert seen == [str(tmp_path / "x")]


def test_clear_and_cls_reprompt_without_line_break(tmp_path: Path) -> None:
    for cmd in ("clear", "cls"):
        d, display, executor, _state = make(tmp_path)
        d.dispatch(cmd)
        assert display.calls[0] == ("clear_screen", None)
        assert display.calls[1] == ("scroll_to_top", None)
        assert display.calls[2] == ("write", f"\x1b[32m{tmp_path}\x1b[0m $ ")
        assert executor.calls == []


def test_builtins_are_case_sensitive_and_exact(tmp_path: Path) -> None:
    d, _display, executor, _state = make(tmp_path)
    d.dispatch("CLEAR")
    d.dispatch("pwd -P")
    d.dispatch("cdx foo")
    assert [c for c, _ in executor.calls] == ["CLEAR", "pwd -P", "cdx foo"]


def test_external_command_runs_in_logical_cwd_with_inherited_env(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("SIDEBAR_TERMINAL_TEST_VAR", "1")
    d, _display, executor, _state = make(tmp_path)
    d.dispatch("ls -la")
    assert executor.calls == [("ls -la", str(tmp_path))]
    assert executor.envs[0].get("SIDEBAR_TERMINAL_TEST_VAR") == "1"


def test_external_stdout_written_verbatim_then_prompt(tmp_path: Path) -> None:
    d, display, _executor, _state = make(tmp_path, [ExecutionResult(stdout=b"a\nb\n")])
    d.dispatch("printf 'a\\nb\\n'")
    assert display.texts()[0] == "a\nb\n"
    assert display.texts()[1].endswith(PROMPT_END)
    assert len(display.texts()) == 2


def test_stderr_wins_over_error_message(tmp_path: Path) -> None:
    result = ExecutionResult(
        stdout=b"partial\n",
        stderr=b"boom\n",
        error=ExecutionError(message="Command failed: x", exit_code=1),
    )
    d, display, _executor, _state = make(tmp_path, [result])
    d.dispatch("x")
    texts = display.texts()
    assert texts[0] == "partial\n"
    assert texts[1] == "\x1b[31mboom\n\x1b[0m"
    assert not any("Command failed" in t for t in texts)
    assert len(display.prompts()) == 1


def test_error_message_shown_once_when_stderr_empty(tmp_path: Path) -> None:
    result = ExecutionResult(
        stdout=b"out\n",
        error=ExecutionError(message="Command failed: false", exit_code=1),
    )
    d, display, _executor, _state = make(tmp_path, [result])
    d.dispatch("false")
    assert display.calls[0] == ("write", "out\n")
    assert display.calls[1] == ("write_line", "\x1b[31mCommand failed: false\x1b[0m")
    assert sum("Command failed" in t for t in display.texts()) == 1
    assert display.texts()[-1].endswith(PROMPT_END)


def test_executor_exception_is_rendered_not_raised(tmp_path: Path) -> None:
    class Exploding(StubExecutor):
        def execute(self, command, *, cwd, env):
            raise RuntimeError("spawn exploded")

    display = RecordingDisplay()
    state = EngineState(working_directory=str(tmp_path))
    d = CommandDispatcher(display, Exploding(), state, scheduler=inline)
    d.dispatch("anything")
    assert ("write_line", "\x1b[31mRuntimeError: spawn exploded\x1b[0m") in display.calls
    assert len(display.prompts()) == 1
    assert d.busy is False


def test_scheduler_failure_still_rearms(tmp_path: Path) -> None:
    def broken(work) -> None:
        raise RuntimeError("can't start new thread")

    d, display, _executor, _state = make(tmp_path, scheduler=broken)
    d.dispatch("sleep 1")
    assert len(display.prompts()) == 1
    assert d.busy is False


def test_commands_submitted_while_busy_are_queued_and_serialized(tmp_path: Path) -> None:
    (tmp_path / "sub").mkdir()
    sched = ManualScheduler()
    d, display, executor, state = make(
        tmp_path,
        [ExecutionResult(stdout=b"one\n"), ExecutionResult(stdout=b"two\n")],
        scheduler=sched,
    )

    d.dispatch("first")
    assert d.busy is True
    d.dispatch("cd sub")
    d.dispatch("second")
    assert d.queued == 2
    # Nothing ran yet, and the queued cd must not have changed the directory.
    assert executor.calls == []
    assert state.working_directory == str(tmp_path)

    sched.run_next()
    # first completed; cd ran from the queue; second started in the new cwd.
    assert executor.calls == [("first", str(tmp_path))]
    assert state.working_directory == str(tmp_path / "sub")
    assert d.busy is True
    assert len(sched.pending) == 1

    sched.run_next()
    assert executor.calls[1] == ("second", str(tmp_path / "sub"))
    assert d.busy is False
    assert d.queued == 0

    texts = display.texts()
    # Output of each command precedes its prompt; queued lines are echoed after a prompt.
    i_one = texts.index("one\n")
    i_cd_echo = texts.index("cd sub\r\n")
    i_second_echo = texts.index("second\r\n")
    i_two = texts.index("two\n")
    assert i_one < i_cd_echo < i_second_echo < i_two
    assert texts[i_cd_echo - 1].endswith(PROMPT_END)
    assert texts[-1].endswith(PROMPT_END)
    assert len(display.prompts()) == 3


def test_close_before_worker_starts_never_executes(tmp_path: Path) -> None:
    sched = ManualScheduler()
    d, display, executor, _state = make(tmp_path, [ExecutionResult(stdout=b"late\n")], scheduler=sched)
    d.dispatch("long")
    d.dispatch("queued")
    d.close()
    assert executor.cancelled == 1

    # The worker was scheduled before close() but only gets to run now.
    sched.run_next()
    assert executor.calls == []
    assert "late\n" not in display.texts()

    d.dispatch("after close")
    assert executor.calls == []


def test_result_arriving_after_close_is_dropped(tmp_path: Path) -> None:
    d, display, _executor, _state = make(tmp_path, scheduler=ManualScheduler())

    class ClosingExecutor(StubExecutor):
        def execute(self, command, *, cwd, env):
            d.close()
            return ExecutionResult(stdout=b"late\n")

    d._executor = ClosingExecutor()  # noqa: SLF001
    d.dispatch("long")
    d._scheduler.run_next()  # type: ignore[attr-defined]  # noqa: SLF001
    assert "late\n" not in display.texts()
    assert display.prompts() == []


def test_directory_callback_error_is_rendered_and_dispatcher_recovers(tmp_path: Path) -> None:
    (tmp_path / "x").mkdir()

    def broken(_cwd: str) -> None:
        raise RuntimeError("host callback failed")

    d, display, executor, state = make(tmp_path, on_directory_changed=broken)
    d.dispatch("cd x")

    assert ("write_line", "\x1b[31mRuntimeError: host callback failed\x1b[0m") in display.calls
    assert len(display.prompts()) == 1
    assert d.busy is False
    assert state.working_directory == str(tmp_path / "x")

    d.dispatch("echo hi")
    assert executor.calls == [("echo hi", str(tmp_path / "x"))]
    assert d.queued == 0


def test_missing_home_directory_is_a_cd_error(tmp_path: Path, monkeypatch) -> None:
    def no_home() -> str:
        raise RuntimeError("Could not determine home directory.")

    monkeypatch.setattr("sidebar_terminal.paths.home_directory", no_home)
    d, display, _executor, state = make(tmp_path)
    d.dispatch("cd ~")
    assert state.working_directory == str(tmp_path)
    assert ("write_line", "\x1b[31mcd: Could not determine home directory.\x1b[0m") in display.calls
    assert d.busy is False


def test_display_error_while_relaying_still_rearms_and_advances(tmp_path: Path) -> None:
    class FlakyDisplay(RecordingDisplay):
        def write(self, text: str) -> None:
            if text == "boom-out\n":
                raise OSError("view is gone")
            super().write(text)

    display = FlakyDisplay()
    executor = StubExecutor([ExecutionResult(stdout=b"boom-out\n"), ExecutionResult(stdout=b"fine\n")])
    sched = ManualScheduler()
    d = CommandDispatcher(display, executor, EngineState(working_directory=str(tmp_path)), scheduler=sched)

    d.dispatch("first")
    d.dispatch("second")
    sched.run_next()
    assert ("write_line", "\x1b[31mOSError: view is gone\x1b[0m") in display.calls
    assert len(display.prompts()) == 1
    assert [c for c, _ in executor.calls] == ["first"]

    sched.run_next()
    assert [c for c, _ in executor.calls] == ["first", "second"]
    assert "fine\n" in display.texts()
    assert d.busy is False


def test_busy_is_cleared_before_final_prompt_is_written(tmp_path: Path) -> None:
    seen: list[bool] = []

    class Observing(RecordingDisplay):
        def write(self, text: str) -> None:
            super().write(text)
            if text.endswith(PROMPT_END):
                seen.append(d.busy)

    sched = ManualScheduler()
    display = Observing()
    d = CommandDispatcher(display, StubExecutor(), EngineState(working_directory=str(tmp_path)), scheduler=sched)
    d.dispatch("one")
    d.dispatch("pwd")
    sched.run_next()
    # Prompt after "one" still has "pwd" queued; prompt after "pwd" is the last.
    assert seen == [True, False]


def test_empty_command_is_silent_noop(tmp_path: Path) -> None:
    d, display, executor, _state = make(tmp_path)
    d.dispatch("   ")
    assert executor.calls == []
    assert display.texts() == [f"\r\n\x1b[32m{tmp_path}\x1b[0m $ "]
