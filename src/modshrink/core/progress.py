"""Progress reporting for pipeline stages.

Stages ask the sink for a bounded bar when the number of work units is known
up front, and for a spinner otherwise. Both return a ProgressTask that is
advanced per unit and finished when the stage completes.
"""

from __future__ import annotations

import threading
from typing import Any, Protocol

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
)


class ProgressTask(Protocol):
    def advance(self, n: int = 1) -> None: ...

    def finish(self) -> None: ...

    def __enter__(self) -> ProgressTask: ...

    def __exit__(self, *exc: object) -> None: ...


class ProgressSink(Protocol):
    def bar(self, total: int, message: str, finish_message: str) -> ProgressTask: ...

    def spinner(self, message: str, finish_message: str) -> ProgressTask: ...


class _NullTask:
    def advance(self, n: int = 1) -> None:
        pass

    def finish(self) -> None:
        pass

    def __enter__(self) -> _NullTask:
        return self

    def __exit__(self, *exc: object) -> None:
        self.finish()


class NullProgress:
    """Progress sink that renders nothing."""

    def bar(self, total: int, message: str, finish_message: str) -> ProgressTask:
        return _NullTask()

    def spinner(self, message: str, finish_message: str) -> ProgressTask:
        return _NullTask()


class _RichTask:
    def __init__(self, owner: RichProgress, task_id: TaskID, finish_message: str) -> None:
        self._owner = owner
        self._task_id = task_id
        self._finish_message = finish_message
        self._finished = False

    def advance(self, n: int = 1) -> None:
        self._owner.progress.advance(self._task_id, n)

    def finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        progress = self._owner.progress
        task = next(t for t in progress.tasks if t.id == self._task_id)
        # Spinners have no total; pin them to a completed state.
        total = task.total if task.total is not None else 1
        progress.update(
            self._task_id, description=self._finish_message, total=total, completed=total
        )
        progress.stop_task(self._task_id)
        self._owner.task_finished()

    def __enter__(self) -> _RichTask:
        return self

    def __exit__(self, *exc: object) -> None:
        self.finish()


class RichProgress:
    """Render stage progress with rich on stderr.

    The live display starts with the first task and stops once every task
    handed out has finished.
    """

    TEMPLATE_WIDTH = 25

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(stderr=True)
        self.progress = Progress(
            SpinnerColumn(finished_text="[green]\u2713[/green]"),
            TextColumn(f"{{task.description:<{self.TEMPLATE_WIDTH}}}"),
            BarColumn(bar_width=40),
            MofNCompleteColumn(),
            TimeRemainingColumn(),
            console=self.console,
        )
        self._lock = threading.Lock()
        self._open = 0

    def bar(self, total: int, message: str, finish_message: str) -> ProgressTask:
        return self._add(message, finish_message, total=total)

    def spinner(self, message: str, finish_message: str) -> ProgressTask:
        return self._add(message, finish_message, total=None)

    def task_finished(self) -> None:
        with self._lock:
            self._open -= 1
            if self._open == 0:
                self.progress.stop()
                # The last frame stays on screen; drop tasks so a restart does not repeat them.
                for task_id in self.progress.task_ids:
                    self.progress.remove_task(task_id)

    def _add(self, message: str, finish_message: str, **kwargs: Any) -> ProgressTask:
        with self._lock:
            if self._open == 0:
                self.progress.start()
            self._open += 1
        task_id = self.progress.add_task(message, **kwargs)
        return _RichTask(self, task_id, finish_message)


def resolve_progress(progress: ProgressSink | None) -> ProgressSink:
    return progress if progress is not None else NullProgress()
