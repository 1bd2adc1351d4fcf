"""Task operations: ties the store, timer and alarm into user-facing actions."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping

import click

from hourglass.core.alarm import Alarm
from hourglass.core.errors import MissingConfigurationError
from hourglass.core.format import format_duration
from hourglass.core.store import TaskRecord, TaskStore
from hourglass.core.timer import Timer

logger = logging.getLogger(__name__)


def _describe(record: TaskRecord) -> str:
    if record.is_tracked:
        sessions = "session" if record.sample_count == 1 else "sessions"
        return (
            f"~{format_duration(record.tracked_average)} "
            f"(average of {record.sample_count} tracked {sessions})"
        )
    if record.target_millis is not None:
        return format_duration(record.target_millis)
    return "(no duration)"


def render_tasks(tasks: Mapping[str, TaskRecord]) -> str:
    """Format *tasks* as aligned ``name  duration`` lines."""
    if not tasks:
        return "No tasks."
    width = max(len(name) for name in tasks)
    return "\n".join(f"{name.ljust(width)}  {_describe(record)}" for name, record in tasks.items())


class TaskRunner:
    """Runs the hourglass commands against one task file.

    Each method returns the final message for the user; progress lines
    along the way are sent to *echo*.
    """

    def __init__(
        self,
        store: TaskStore,
        timer: Timer,
        alarm: Alarm,
        echo: Callable[[str], None] = click.echo,
    ) -> None:
        self._store = store
        self._timer = timer
        self._alarm = alarm
        self._echo = echo

    # -- task file -------------------------------------------------------------

    def create_task_file(self) -> str:
        self._store.initialize()
        return f"Created task file at {self._store.path}"

    def set_task(self, name: str, duration_text: str) -> str:
        record = self._store.set_target(name, duration_text)
        return f"Task '{name}' set to {format_duration(record.target_millis)}."

    def remove_task(self, name: str) -> str:
        self._store.remove_task(name)
        return f"Removed task '{name}'."

    def view_tasks(self, names: Iterable[str] = ()) -> str:
        return render_tasks(self._store.list_tasks(names))

    # -- timing ----------------------------------------------------------------

    def run_fixed_timer(self, name: str, silent: bool = False) -> str:
        """Wait out the task's target duration, then ring until interrupted.

        The alarm rings even when the wait was cancelled: it marks the end
        of the waiting phase however that came about.
        """
        record = self._store.list_tasks([name])[name]
        if record.target_millis is None:
            raise MissingConfigurationError(name)

        self._echo("Timer started. Press CTRL-C to cancel.")
        outcome = self._timer.wait_fixed(
            record.target_millis, render_progress=not silent, label=f"Task '{name}'"
        )
        if outcome.cancelled:
            self._echo(f"Timer cancelled after {format_duration(round(outcome.elapsed_ms))}.")

        self._echo("Alarm started. Press CTRL-C to stop alarm.")
        rang_ms = self._alarm.ring(-1)
        return f"Alarm stopped after {format_duration(rang_ms)}."

    def run_tracked_session(self, name: str) -> str:
        """Measure time until the user interrupts and fold it into the average."""
        # Fail on an unreadable task file before the user spends time tracking.
        self._store.load()
        self._echo(f"Tracking '{name}'. Press CTRL-C to stop.")
        outcome = self._timer.wait_until_cancelled()
        record = self._store.record_tracked_sample(name, outcome.elapsed_ms)
        logger.info("Recorded %.0f ms for %r", outcome.elapsed_ms, name)
        sessions = "session" if record.sample_count == 1 else "sessions"
        return (
            f"Tracked '{name}' for {format_duration(round(outcome.elapsed_ms))}. "
            f"Average: {format_duration(record.tracked_average)} "
            f"over {record.sample_count} {sessions}."
        )
