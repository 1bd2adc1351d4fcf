"""Tests for the task file store."""

import json
import os
import sys
from pathlib import Path

import pytest

from hourglass.core.errors import (
    InvalidInputError,
    StorageError,
    TaskFileExistsError,
    TaskFileFormatError,
    TaskFileIsDirectoryError,
    TaskFileMissingError,
    TaskFilePermissionError,
    TaskNotFoundError,
)
from hourglass.core.store import TaskDocument, TaskRecord, TaskStore

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _read_tasks(path: Path) -> dict:
    """Read and return the ``tasks`` object of the task file."""
    return json.loads(path.read_text(encoding="utf-8"))["tasks"]


@pytest.fixture()
def store(tmp_path: Path) -> TaskStore:
    """Return a store backed by a freshly initialized task file."""
    task_store = TaskStore(tmp_path / "tasks.json")
    task_store.initialize()
    return task_store


# ---------------------------------------------------------------------------
# initialize()
# ---------------------------------------------------------------------------


class TestInitialize:
    """initialize() creates an empty task file exactly once."""

    def test_creates_empty_document(self, tmp_path: Path) -> None:
        path = tmp_path / "tasks.json"
        TaskStore(path).initialize()
        assert json.loads(path.read_text(encoding="utf-8")) == {"tasks": {}}

    def test_document_ends_with_newline(self, tmp_path: Path) -> None:
        path = tmp_path / "tasks.json"
        TaskStore(path).initialize()
        assert path.read_text(encoding="utf-8").endswith("\n")

    def test_second_initialize_raises_and_keeps_file(self, store: TaskStore) -> None:
        store.set_target("t", "10s")
        before = store.path.read_text(encoding="utf-8")
        with pytest.raises(TaskFileExistsError) as excinfo:
            store.initialize()
        assert excinfo.value.path == store.path
        assert store.path.read_text(encoding="utf-8") == before

    def test_exists_error_is_a_storage_error(self, store: TaskStore) -> None:
        with pytest.raises(StorageError):
            store.initialize()

    def test_missing_parent_directory(self, tmp_path: Path) -> None:
        with pytest.raises(TaskFileMissingError):
            TaskStore(tmp_path / "nope" / "tasks.json").initialize()


# ---------------------------------------------------------------------------
# set_target()
# ---------------------------------------------------------------------------


class TestSetTarget:
    """set_target() stores a fixed duration and drops tracked state."""

    def test_writes_target_millis(self, store: TaskStore) -> None:
        store.set_target("t", "10s")
        assert _read_tasks(store.path) == {"t": {"targetMillis": 10000}}

    def test_returns_the_record(self, store: TaskStore) -> None:
        assert store.set_target("t", "2h") == TaskRecord(target_millis=7_200_000)

    def test_overwrites_previous_target(self, store: TaskStore) -> None:
        store.set_target("t", "10s")
        store.set_target("t", "1m")
        assert _read_tasks(store.path)["t"] == {"targetMillis": 60000}

    def test_discards_tracked_average(self, store: TaskStore) -> None:
        store.record_tracked_sample("t", 4000)
        store.set_target("t", "5m")
        assert _read_tasks(store.path)["t"] == {"targetMillis": 300000}

    def test_invalid_duration_leaves_file_untouched(self, store: TaskStore) -> None:
        before = store.path.read_text(encoding="utf-8")
        with pytest.raises(InvalidInputError):
            store.set_target("t", "ten minutes")
        assert store.path.read_text(encoding="utf-8") == before

    def test_without_task_file_raises(self, tmp_path: Path) -> None:
        missing = TaskStore(tmp_path / "missing.json")
        with pytest.raises(TaskFileMissingError) as excinfo:
            missing.set_target("t", "10s")
        assert excinfo.value.path == tmp_path / "missing.json"
        assert not (tmp_path / "missing.json").exists()


# ---------------------------------------------------------------------------
# remove_task()
# ---------------------------------------------------------------------------


class TestRemoveTask:
    """remove_task() deletes exactly one task."""

    def test_removes_only_the_named_task(self, store: TaskStore) -> None:
        store.set_target("a", "1s")
        store.set_target("b", "2s")
        store.remove_task("a")
        assert _read_tasks(store.path) == {"b": {"targetMillis": 2000}}

    def test_unknown_task_raises_and_keeps_file(self, store: TaskStore) -> None:
        store.set_target("a", "1s")
        before = store.path.read_text(encoding="utf-8")
        with pytest.raises(TaskNotFoundError) as excinfo:
            store.remove_task("zzz")
        assert excinfo.value.name == "zzz"
        assert store.path.read_text(encoding="utf-8") == before


# ---------------------------------------------------------------------------
# record_tracked_sample()
# ---------------------------------------------------------------------------


class TestRecordTrackedSample:
    """record_tracked_sample() folds sessions into a running average."""

    def test_first_sample_replaces_target(self, store: TaskStore) -> None:
        store.set_target("t", "5m")
        store.record_tracked_sample("t", 1200.0)
        assert _read_tasks(store.path)["t"] == {"trackedAverage": 1200.0, "sampleCount": 1}

    def test_unknown_task_starts_tracking(self, store: TaskStore) -> None:
        record = store.record_tracked_sample("new", 500)
        assert record == TaskRecord(tracked_average=500.0, sample_count=1)

    def test_second_sample_uses_incremental_formula(self, store: TaskStore) -> None:
        """average = old_average + elapsed / new_count, not the arithmetic mean."""
        store.record_tracked_sample("t", 1000)
        record = store.record_tracked_sample("t", 3000)
        assert record.sample_count == 2
        assert record.tracked_average == pytest.approx(1000 + 3000 / 2)
        # A true mean would be 2000.
        assert record.tracked_average != pytest.approx(2000)

    def test_third_sample(self, store: TaskStore) -> None:
        for elapsed in (1000, 3000, 600):
            record = store.record_tracked_sample("t", elapsed)
        assert record.sample_count == 3
        assert record.tracked_average == pytest.approx(2500 + 600 / 3)
        assert _read_tasks(store.path)["t"]["sampleCount"] == 3

    def test_is_reproducible(self, tmp_path: Path) -> None:
        results = []
        for run in range(2):
            run_store = TaskStore(tmp_path / f"run{run}.json")
            run_store.initialize()
            run_store.record_tracked_sample("t", 1234.5)
            results.append(run_store.record_tracked_sample("t", 987.25))
        assert results[0] == results[1]

    def test_other_tasks_untouched(self, store: TaskStore) -> None:
        store.set_target("other", "3s")
        store.record_tracked_sample("t", 10)
        assert _read_tasks(store.path)["other"] == {"targetMillis": 3000}


# ---------------------------------------------------------------------------
# list_tasks()
# ---------------------------------------------------------------------------


class TestListTasks:
    """list_tasks() returns all tasks or exactly the requested ones."""

    @pytest.fixture()
    def abc_store(self, store: TaskStore) -> TaskStore:
        store.set_target("a", "2h")
        store.set_target("b", "3s")
        store.set_target("c", "5ms")
        return store

    def test_no_names_returns_everything(self, abc_store: TaskStore) -> None:
        assert set(abc_store.list_tasks([])) == {"a", "b", "c"}

    def test_selects_requested_names(self, abc_store: TaskStore) -> None:
        tasks = abc_store.list_tasks(["a", "c"])
        assert set(tasks) == {"a", "c"}
        assert tasks["c"] == TaskRecord(target_millis=5)

    def test_reports_first_missing_name(self, abc_store: TaskStore) -> None:
        with pytest.raises(TaskNotFoundError) as excinfo:
            abc_store.list_tasks(["a", "x", "y"])
        assert excinfo.value.name == "x"

    def test_empty_store(self, store: TaskStore) -> None:
        assert store.list_tasks() == {}


# ---------------------------------------------------------------------------
# load() / transaction()
# ---------------------------------------------------------------------------


class TestLoadAndTransaction:
    """The load / mutate / store cycle and its failure modes."""

    def test_transaction_writes_on_success(self, store: TaskStore) -> None:
        with store.transaction() as document:
            document.set_target("t", 42)
        assert _read_tasks(store.path) == {"t": {"targetMillis": 42}}

    def test_transaction_skips_write_on_error(self, store: TaskStore) -> None:
        before = store.path.read_text(encoding="utf-8")
        with pytest.raises(RuntimeError):
            with store.transaction() as document:
                document.set_target("t", 42)
                raise RuntimeError("boom")
        assert store.path.read_text(encoding="utf-8") == before

    def test_directory_path(self, tmp_path: Path) -> None:
        with pytest.raises(TaskFileIsDirectoryError) as excinfo:
            TaskStore(tmp_path).load()
        assert str(excinfo.value) == f"{tmp_path} is a directory."

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "tasks.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(TaskFileFormatError):
            TaskStore(path).load()

    def test_missing_tasks_object(self, tmp_path: Path) -> None:
        path = tmp_path / "tasks.json"
        path.write_text("{}", encoding="utf-8")
        with pytest.raises(TaskFileFormatError):
            TaskStore(path).load()

    def test_average_without_count_is_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "tasks.json"
        path.write_text('{"tasks": {"t": {"trackedAverage": 1.0}}}', encoding="utf-8")
        with pytest.raises(TaskFileFormatError):
            TaskStore(path).load()

    def test_missing_file_message(self, tmp_path: Path) -> None:
        path = tmp_path / "missing.json"
        with pytest.raises(TaskFileMissingError) as excinfo:
            TaskStore(path).load()
        assert 'Run "hourglass init"' in str(excinfo.value)

    @pytest.mark.skipif(
        sys.platform == "win32" or os.geteuid() == 0,
        reason="file modes are not enforced for root or on Windows",
    )
    def test_permission_denied(self, store: TaskStore) -> None:
        store.set_target("t", "10s")
        store.path.chmod(0o000)
        try:
            with pytest.raises(TaskFilePermissionError) as excinfo:
                store.load()
            assert excinfo.value.path == store.path
            assert str(excinfo.value) == f"{store.path}: Permission denied."
            with pytest.raises(TaskFilePermissionError):
                store.set_target("t", "1m")
        finally:
            store.path.chmod(0o644)
        assert _read_tasks(store.path) == {"t": {"targetMillis": 10000}}


class TestTaskDocument:
    """TaskDocument serialises to the persisted JSON layout."""

    def test_round_trips_both_modes(self) -> None:
        document = TaskDocument()
        document.set_target("fixed", 1000)
        document.record_sample("tracked", 250.5)
        parsed = TaskDocument.from_json(document.to_json())
        assert parsed == document

    def test_select_preserves_requested_order(self) -> None:
        document = TaskDocument()
        for name in ("a", "b", "c"):
            document.set_target(name, 1)
        assert list(document.select(["c", "a"])) == ["c", "a"]
