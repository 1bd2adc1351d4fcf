"""Cooperative cancellation driven by the keyboard interrupt."""

from __future__ import annotations

import signal
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager

# How often wait() checks for an interrupt raised by the signal handler.
_SIGNAL_POLL_SECONDS = 0.05


class CancelToken:
    """A flag raised by an interrupt and polled by waiting operations.

    The token is edge-triggered: whoever acts on a cancellation calls
    :meth:`consume`, which clears the flag so the next operation in the
    same process can be interrupted on its own.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._interrupted = False

    def cancel(self) -> None:
        self._event.set()

    def interrupt(self) -> None:
        """Cancel from a signal handler.

        Only sets a plain attribute: the handler may run while the main
        thread holds the event's lock, so it must not take it.
        """
        self._interrupted = True

    @property
    def is_cancelled(self) -> bool:
        return self._interrupted or self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block for up to *timeout* seconds; return ``True`` if cancelled."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while not self.is_cancelled:
            if deadline is None:
                step = _SIGNAL_POLL_SECONDS
            else:
                step = min(_SIGNAL_POLL_SECONDS, deadline - time.monotonic())
                if step <= 0:
                    return False
            self._event.wait(step)
        return True

    def consume(self) -> bool:
        """Clear a pending cancellation and report whether there was one."""
        if not self.is_cancelled:
            return False
        self._interrupted = False
        self._event.clear()
        return True


@contextmanager
def listen_for_interrupt(token: CancelToken) -> Iterator[CancelToken]:
    """Route SIGINT to *token* for the duration of the block.

    Must be entered from the main thread.  The previous handler is restored
    on exit.
    """

    def _handle_signal(signum, _frame) -> None:
        token.interrupt()

    previous = signal.signal(signal.SIGINT, _handle_signal)
    try:
        yield token
    finally:
        signal.signal(signal.SIGINT, previous)
