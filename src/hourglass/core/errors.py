"""Error taxonomy shared by the task store, timer, alarm and CLI.

Every error the tool knows how to report derives from :class:`HourglassError`;
``str(error)`` is the one-line diagnostic shown to the user.
"""

from __future__ import annotations

import errno
from pathlib import Path


class HourglassError(Exception):
    """Base class for every error hourglass reports to the user."""


class InvalidInputError(HourglassError):
    """Raised when user input (e.g. a duration string) is malformed."""

    def __init__(self, text: str, reason: str) -> None:
        self.text = text
        self.reason = reason
        super().__init__(f"Invalid input '{text}': {reason}")


class TaskNotFoundError(HourglassError):
    """Raised when an operation names a task that is not in the task file."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"No task named '{name}'.")


class MissingConfigurationError(HourglassError):
    """Raised when a fixed timer is started for a task with no target duration."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"Task '{name}' has no target duration. "
            f'Run "hourglass set {name} <time>" first.'
        )


class InvalidStateError(HourglassError):
    """Raised when an invalid timer state transition is attempted."""


class PlaybackError(HourglassError):
    """Raised when the alarm sound cannot be played."""


# -- storage -----------------------------------------------------------------


class StorageError(HourglassError):
    """Raised when the task file cannot be read or written."""

    reason = "Storage error"

    def __init__(self, path: Path | str, detail: str | None = None) -> None:
        self.path = Path(path)
        self.detail = detail
        super().__init__(self._describe())

    def _describe(self) -> str:
        if self.detail:
            return f"{self.path}: {self.reason}: {self.detail}"
        return f"{self.path}: {self.reason}."


class TaskFileMissingError(StorageError):
    reason = "No such file"

    def _describe(self) -> str:
        return f'{self.path}: No such file: Run "hourglass init" to create a new task file.'


class TaskFileExistsError(StorageError):
    reason = "File already exists"


class TaskFileIsDirectoryError(StorageError):
    reason = "Is a directory"

    def _describe(self) -> str:
        return f"{self.path} is a directory."


class TaskFilePermissionError(StorageError):
    reason = "Permission denied"


class TaskFileFormatError(StorageError):
    reason = "Not a valid task file"


def storage_error(exc: OSError, path: Path | str) -> StorageError:
    """Map an ``OSError`` raised while touching *path* onto a :class:`StorageError`."""
    if isinstance(exc, FileNotFoundError):
        return TaskFileMissingError(path)
    if isinstance(exc, FileExistsError):
        return TaskFileExistsError(path)
    if isinstance(exc, IsADirectoryError):
        return TaskFileIsDirectoryError(path)
    if isinstance(exc, PermissionError) or exc.errno in (errno.EACCES, errno.EPERM):
        return TaskFilePermissionError(path)
    return StorageError(path, exc.strerror or str(exc))
