"""Alarm: repeats an audible cue until told to stop."""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import click

from hourglass.core.cancel import CancelToken
from hourglass.core.errors import PlaybackError

if TYPE_CHECKING:
    from hourglass.config import Settings

logger = logging.getLogger(__name__)

_POLL_SECONDS = 0.05

# Command-line players tried in order when none is configured.
_KNOWN_PLAYERS = (
    ["afplay"],
    ["paplay"],
    ["aplay", "-q"],
    ["ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet"],
)


class Player(Protocol):
    def play(self, token: CancelToken) -> None:
        """Play one cycle of the cue, returning early if *token* fires."""


class BellPlayer:
    """Rings the terminal bell, then pauses for *interval* seconds."""

    def __init__(self, interval: float = 0.5) -> None:
        self.interval = interval

    def play(self, token: CancelToken) -> None:
        try:
            click.echo("\a", nl=False)
        except OSError as exc:
            raise PlaybackError(f"Cannot ring the terminal bell: {exc}") from exc
        token.wait(self.interval)


class CommandPlayer:
    """Plays a sound file through an external audio player process.

    *command* is the full argv, sound file included.  The player runs in its
    own session so a terminal CTRL-C reaches only hourglass; a cancellation
    then terminates the player.
    """

    def __init__(self, command: list[str], sound_file: Path | str) -> None:
        self.command = list(command)
        self.sound_file = Path(sound_file)

    def play(self, token: CancelToken) -> None:
        if not self.sound_file.is_file():
            raise PlaybackError(f"{self.sound_file}: No such sound file.")
        try:
            proc = subprocess.Popen(
                self.command,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as exc:
            raise PlaybackError(f"Cannot run {self.command[0]!r}: {exc}") from exc

        while True:
            try:
                returncode = proc.wait(timeout=_POLL_SECONDS)
                break
            except subprocess.TimeoutExpired:
                if token.is_cancelled:
                    proc.terminate()
                    proc.wait()
                    return

        # A player killed by the same interrupt is a normal stop.
        if token.is_cancelled:
            return
        if returncode != 0:
            raise PlaybackError(
                f"{self.command[0]} exited with status {returncode} playing {self.sound_file}"
            )


def _detect_command() -> list[str] | None:
    for candidate in _KNOWN_PLAYERS:
        if shutil.which(candidate[0]):
            return list(candidate)
    return None


def build_player(settings: Settings) -> Player:
    """Pick a playback backend from *settings*.

    Without a sound file the terminal bell is used.  With one, the configured
    player command is used, else the first known player found on ``PATH``.
    """
    if settings.sound_file is None:
        return BellPlayer()
    if settings.player_command:
        command = shlex.split(settings.player_command, posix=sys.platform != "win32")
    else:
        command = _detect_command()
        if command is None:
            logger.warning("No audio player found on PATH, falling back to the terminal bell")
            return BellPlayer()
    return CommandPlayer([*command, str(settings.sound_file)], settings.sound_file)


class Alarm:
    """Plays a cue repeatedly through a :class:`Player` until stopped."""

    def __init__(self, player: Player, token: CancelToken) -> None:
        self._player = player
        self._token = token

    def ring(self, repeat: int = -1) -> int:
        """Play the cue *repeat* times, or forever when *repeat* is ``-1``.

        Stops after the current cycle once the token fires, consuming the
        cancellation.  Returns the milliseconds from first play to stop.
        A :class:`PlaybackError` aborts the alarm without retrying.
        """
        if repeat == 0 or repeat < -1:
            raise ValueError(f"repeat must be -1 or a positive integer, got {repeat}")
        # Only interrupts that arrive while ringing count.
        self._token.consume()
        started = time.monotonic()
        remaining = repeat
        cycles = 0
        while True:
            self._player.play(self._token)
            cycles += 1
            if self._token.consume():
                break
            remaining -= 1
            if remaining == 0:
                break
        elapsed = round((time.monotonic() - started) * 1000)
        logger.debug("Alarm stopped after %d cycle(s), %d ms", cycles, elapsed)
        return elapsed
