"""Stub collaborators shared by the engine and dispatcher tests."""

from __future__ import annotations

from sidebar_terminal.executor import ExecutionResult


PROMPT_END = "\x1b[0m $ "


class RecordingDisplay:
    def __init__(self) -> None:
        self.calls: list[tuple[str, object]] = []

    def write(self, text: str) -> None:
        self.calls.append(("write", text))

    def write_line(self, text: str) -> None:
        self.calls.append(("write_line", text))

    def clear_screen(self) -> None:
        self.calls.append(("clear_screen", None))

    def scroll_to_bottom(self) -> None:
        self.calls.append(("scroll_to_bottom", None))

    def scroll_to_top(self) -> None:
        self.calls.append(("scroll_to_top", None))

    def texts(self) -> list[str]:
        return [str(v) for k, v in self.calls if k in {"write", "write_line"}]

    def prompts(self) -> list[str]:
        return [t for t in self.texts() if t.endswith(PROMPT_END)]


class StubExecutor:
    def __init__(self, results: list[ExecutionResult] | None = None) -> None:
        self.results = list(results or [])
        self.calls: list[tuple[str, str]] = []
        self.envs: list[dict[str, str]] = []
        self.cancelled = 0

    def execute(self, command: str, *, cwd: str, env) -> ExecutionResult:
        self.calls.append((command, cwd))
        self.envs.append(dict(env))
        if self.results:
            return self.results.pop(0)
        return ExecutionResult()

    def cancel(self) -> None:
        self.cancelled += 1


class ManualScheduler:
    """Holds scheduled work until `run_next()` is called."""

    def __init__(self) -> None:
        self.pending: list = []

    def __call__(self, work) -> None:
        self.pending.append(work)

    def run_next(self) -> None:
        self.pending.pop(0)()


def inline(work) -> None:
    work()
