"""Task store: the JSON task file and its load / mutate / store cycle."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from hourglass.core.errors import (
    TaskFileFormatError,
    TaskNotFoundError,
    storage_error,
)
from hourglass.core.format import parse_duration

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskRecord:
    """One task: either a fixed target or a tracked running average.

    Setting one mode always builds a fresh record, so the fields of the
    other mode are dropped rather than merged.
    """

    target_millis: int | None = None
    tracked_average: float | None = None
    sample_count: int | None = None

    @property
    def is_tracked(self) -> bool:
        return self.tracked_average is not None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.target_millis is not None:
            data["targetMillis"] = self.target_millis
        if self.tracked_average is not None:
            data["trackedAverage"] = self.tracked_average
            data["sampleCount"] = self.sample_count
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TaskRecord:
        target = data.get("targetMillis")
        average = data.get("trackedAverage")
        count = data.get("sampleCount")
        if (average is None) != (count is None):
            raise ValueError("trackedAverage and sampleCount must appear together")
        if count is not None and (not isinstance(count, int) or count < 1):
            raise ValueError(f"sampleCount must be a positive integer, got {count!r}")
        if target is not None and (not isinstance(target, int) or target < 0):
            raise ValueError(f"targetMillis must be a non-negative integer, got {target!r}")
        return cls(
            target_millis=target,
            tracked_average=float(average) if average is not None else None,
            sample_count=count,
        )


@dataclass
class TaskDocument:
    """In-memory form of the task file: ``{"tasks": {name: record}}``."""

    tasks: dict[str, TaskRecord] = field(default_factory=dict)

    # -- queries ---------------------------------------------------------------

    def get(self, name: str) -> TaskRecord:
        """Return the record for *name* or raise :class:`TaskNotFoundError`."""
        try:
            return self.tasks[name]
        except KeyError:
            raise TaskNotFoundError(name) from None

    def select(self, names: Iterable[str]) -> dict[str, TaskRecord]:
        """Return every task if *names* is empty, else exactly the named ones."""
        names = list(names)
        if not names:
            return dict(self.tasks)
        return {name: self.get(name) for name in names}

    # -- mutations -------------------------------------------------------------

    def set_target(self, name: str, target_millis: int) -> TaskRecord:
        """Give *name* a fixed target, discarding any tracked average."""
        record = TaskRecord(target_millis=target_millis)
        self.tasks[name] = record
        return record

    def remove(self, name: str) -> None:
        self.get(name)
        del self.tasks[name]

    def record_sample(self, name: str, elapsed_ms: float) -> TaskRecord:
        """Fold one tracked session of *elapsed_ms* into the task's average.

        The first sample switches the task to tracked mode.  Later samples use
        ``average = old_average + elapsed / new_count``, which is intentionally
        kept as-is rather than replaced by a true arithmetic mean.
        """
        current = self.tasks.get(name)
        if current is None or not current.is_tracked:
            record = TaskRecord(tracked_average=float(elapsed_ms), sample_count=1)
        else:
            count = current.sample_count + 1
            record = TaskRecord(
                tracked_average=current.tracked_average + elapsed_ms / count,
                sample_count=count,
            )
        self.tasks[name] = record
        return record

    # -- serialisation ---------------------------------------------------------

    def to_json(self) -> str:
        data = {"tasks": {name: record.to_dict() for name, record in self.tasks.items()}}
        return json.dumps(data, indent=2) + "\n"

    @classmethod
    def from_json(cls, text: str) -> TaskDocument:
        """Parse task-file text.  Raises ``ValueError`` on malformed content."""
        data = json.loads(text)
        if not isinstance(data, dict) or not isinstance(data.get("tasks"), dict):
            raise ValueError('expected an object with a "tasks" object')
        tasks = {}
        for name, raw in data["tasks"].items():
            if not isinstance(raw, dict):
                raise ValueError(f"task {name!r} is not an object")
            tasks[name] = TaskRecord.from_dict(raw)
        return cls(tasks=tasks)


class TaskStore:
    """Reads and writes the task file at a fixed path.

    Nothing is cached between calls: every operation loads the whole file,
    applies one edit in memory and writes the whole file back.  There is no
    locking, so concurrent writers race and the last one wins.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    # -- transaction primitives ------------------------------------------------

    def load(self) -> TaskDocument:
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise storage_error(exc, self.path) from exc
        try:
            document = TaskDocument.from_json(text)
        except ValueError as exc:
            raise TaskFileFormatError(self.path, str(exc)) from exc
        logger.debug("Loaded %d task(s) from %s", len(document.tasks), self.path)
        return document

    def store(self, document: TaskDocument) -> None:
        payload = document.to_json()
        try:
            self.path.write_text(payload, encoding="utf-8")
        except OSError as exc:
            raise storage_error(exc, self.path) from exc
        logger.debug("Wrote %d task(s) to %s", len(document.tasks), self.path)

    @contextmanager
    def transaction(self) -> Iterator[TaskDocument]:
        """Load the document, yield it for editing, then write it back.

        If the block raises, the file is left untouched.
        """
        document = self.load()
        yield document
        self.store(document)

    # -- operations ------------------------------------------------------------

    def initialize(self) -> None:
        """Create an empty task file.  Fails if the file already exists."""
        payload = TaskDocument().to_json()
        try:
            with open(self.path, "x", encoding="utf-8") as f:
                f.write(payload)
        except OSError as exc:
            raise storage_error(exc, self.path) from exc
        logger.info("Created task file %s", self.path)

    def set_target(self, name: str, duration_text: str) -> TaskRecord:
        target = parse_duration(duration_text)
        with self.transaction() as document:
            return document.set_target(name, target)

    def remove_task(self, name: str) -> None:
        with self.transaction() as document:
            document.remove(name)

    def record_tracked_sample(self, name: str, elapsed_ms: float) -> TaskRecord:
        with self.transaction() as document:
            return document.record_sample(name, elapsed_ms)

    def list_tasks(self, names: Iterable[str] = ()) -> dict[str, TaskRecord]:
        return self.load().select(names)
