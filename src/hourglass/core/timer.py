"""Timer core: waits out a duration, or until cancelled, as a state machine."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum

import click

from hourglass.core.cancel import CancelToken
from hourglass.core.errors import InvalidStateError
from hourglass.core.format import format_duration

logger = logging.getLogger(__name__)

# Longest single sleep; also the progress bar's tick cadence.
_TICK_SECONDS = 1.0


class TimerState(Enum):
    """Possible states of the timer."""

    IDLE = "idle"
    WAITING = "waiting"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class WaitOutcome:
    """How a wait ended and how long it took, in milliseconds."""

    state: TimerState
    elapsed_ms: float

    @property
    def cancelled(self) -> bool:
        return self.state is TimerState.CANCELLED


_VALID_START_STATES = frozenset({TimerState.IDLE, TimerState.COMPLETED, TimerState.CANCELLED})


class _NoProgress:
    def update(self, n_steps: int, current_item: float | None = None) -> None:
        pass


@contextmanager
def _progress(duration_ms: int, label: str, render: bool) -> Iterator:
    if not render:
        yield _NoProgress()
        return
    total = format_duration(duration_ms)
    with click.progressbar(
        length=max(duration_ms, 1),
        label=label,
        show_eta=False,
        show_percent=True,
        empty_char=".",
        width=40,
        item_show_func=lambda ms: None if ms is None else f"{format_duration(ms)}/{total}",
    ) as bar:
        yield bar


class Timer:
    """Waits for a duration, or indefinitely, until a :class:`CancelToken` fires.

    Cancellation is a normal outcome, not an error: the wait returns a
    :class:`WaitOutcome` in the ``CANCELLED`` state and the token is consumed.
    Uses ``time.monotonic()`` so measurements are immune to clock changes.
    """

    def __init__(self, token: CancelToken) -> None:
        self._token = token
        self._state: TimerState = TimerState.IDLE
        self._started_at: float = 0.0

    @property
    def state(self) -> TimerState:
        return self._state

    # -- public interface ----------------------------------------------------

    def wait_fixed(
        self, duration_ms: int, render_progress: bool = False, label: str = ""
    ) -> WaitOutcome:
        """Wait *duration_ms* milliseconds unless cancelled first.

        When *render_progress* is true a progress bar advances once per second.
        """
        if duration_ms < 0:
            raise ValueError(f"duration_ms must not be negative, got {duration_ms}")
        self._begin_waiting()
        deadline = self._started_at + duration_ms / 1000.0
        shown = 0

        with _progress(duration_ms, label, render_progress) as bar:
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    bar.update(duration_ms - shown, duration_ms)
                    return self._finish(TimerState.COMPLETED)
                if self._token.wait(min(remaining, _TICK_SECONDS)):
                    self._token.consume()
                    return self._finish(TimerState.CANCELLED)
                elapsed = min(int(self._elapsed_ms()), duration_ms)
                bar.update(elapsed - shown, elapsed)
                shown = elapsed

    def wait_until_cancelled(self) -> WaitOutcome:
        """Wait with no deadline until the token fires."""
        self._begin_waiting()
        while not self._token.wait(_TICK_SECONDS):
            pass
        self._token.consume()
        return self._finish(TimerState.CANCELLED)

    # -- private helpers -----------------------------------------------------

    def _require_state(self, method: str, valid: frozenset[TimerState]) -> None:
        """Raise ``InvalidStateError`` if the current state is not in *valid*."""
        if self._state not in valid:
            raise InvalidStateError(f"{method}() is not valid from {self._state.value} state")

    def _begin_waiting(self) -> None:
        self._require_state("wait", _VALID_START_STATES)
        self._started_at = time.monotonic()
        self._state = TimerState.WAITING
        logger.debug("Timer waiting")

    def _elapsed_ms(self) -> float:
        return (time.monotonic() - self._started_at) * 1000.0

    def _finish(self, state: TimerState) -> WaitOutcome:
        self._state = state
        outcome = WaitOutcome(state=state, elapsed_ms=self._elapsed_ms())
        logger.debug("Timer %s after %.0f ms", state.value, outcome.elapsed_ms)
        return outcome
