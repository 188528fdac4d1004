"""Tests for the move coordinator (board/coordinator.py)."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from taskboard.board.coordinator import ColumnLocks, MoveCoordinator
from taskboard.board.errors import (
    InvalidColumn,
    InvalidIndex,
    ProjectNotFound,
    StaleMove,
    StorageFailure,
    TaskNotFound,
    VersionConflict,
)
from taskboard.board.model import MoveRequest, Project, Task
from taskboard.board.store import BoardStore


@pytest.fixture
def store(tmp_path: Path) -> BoardStore:
    s = BoardStore(tmp_path / ".taskboard")
    with s.transaction() as tx:
        tx.add_project(Project(id="p1", name="Board"))
        tx.add_project(Project(id="p2", name="Other"))
        for i, task_id in enumerate(["T1", "T2"]):
            tx.add_task(Task(id=task_id, project_id="p1", column="todo", title=task_id, order=i))
        tx.add_task(Task(id="T3", project_id="p1", column="done", title="T3", order=0))
        tx.add_task(Task(id="X1", project_id="p2", column="todo", title="X1", order=0))
    return s


@pytest.fixture
def coordinator(store: BoardStore) -> MoveCoordinator:
    return MoveCoordinator(store, locks=ColumnLocks())


def _layout(store: BoardStore, column: str, project_id: str = "p1") -> list[tuple[str, int]]:
    return [(t.id, t.order) for t in store.load_ordered(project_id, column)]


class TestApplyMove:
    def test_cross_column_move(self, coordinator: MoveCoordinator, store: BoardStore) -> None:
        result = coordinator.apply_move("p1", MoveRequest("T1", "todo", "done", 0))
        assert result.task.id == "T1"
        assert result.task.column == "done"
        assert result.changed == 3
        assert [(t.id, t.order) for t in result.columns["todo"]] == [("T2", 0)]
        assert [(t.id, t.order) for t in result.columns["done"]] == [("T1", 0), ("T3", 1)]
        assert _layout(store, "done") == [("T1", 0), ("T3", 1)]

    def test_in_column_move_returns_single_column(self, coordinator: MoveCoordinator) -> None:
        result = coordinator.apply_move("p1", MoveRequest("T1", "todo", "todo", 1))
        assert list(result.columns) == ["todo"]
        assert [(t.id, t.order) for t in result.columns["todo"]] == [("T2", 0), ("T1", 1)]

    def test_noop_skips_write(self, coordinator: MoveCoordinator, store: BoardStore) -> None:
        version = store.column_version("p1", "todo")
        result = coordinator.apply_move("p1", MoveRequest("T2", "todo", "todo", 1))
        assert result.changed == 0
        assert store.column_version("p1", "todo") == version

    def test_result_serializes(self, coordinator: MoveCoordinator) -> None:
        data = coordinator.apply_move("p1", MoveRequest("T2", "todo", "inprogress", 3)).to_dict()
        assert data["task"]["column"] == "inprogress"
        assert data["task"]["order"] == 0
        assert set(data["columns"]) == {"todo", "inprogress"}


class TestErrors:
    def test_negative_index_before_any_read(self, coordinator: MoveCoordinator, monkeypatch: pytest.MonkeyPatch) -> None:
        def _no_reads(*args, **kwargs):
            raise AssertionError("store was read")

        monkeypatch.setattr(coordinator.store, "get_project", _no_reads)
        with pytest.raises(InvalidIndex):
            coordinator.apply_move("p1", MoveRequest("T1", "todo", "todo", -1))

    def test_unknown_project(self, coordinator: MoveCoordinator) -> None:
        with pytest.raises(ProjectNotFound):
            coordinator.apply_move("nope", MoveRequest("T1", "todo", "done", 0))

    def test_unknown_destination_column(self, coordinator: MoveCoordinator) -> None:
        with pytest.raises(InvalidColumn, match="Destination"):
            coordinator.apply_move("p1", MoveRequest("T1", "todo", "archive", 0))

    def test_unknown_task(self, coordinator: MoveCoordinator) -> None:
        with pytest.raises(TaskNotFound):
            coordinator.apply_move("p1", MoveRequest("ghost", "todo", "done", 0))

    def test_task_of_another_project(self, coordinator: MoveCoordinator) -> None:
        with pytest.raises(TaskNotFound):
            coordinator.apply_move("p1", MoveRequest("X1", "todo", "done", 0))

    def test_stale_source_column(self, coordinator: MoveCoordinator, store: BoardStore) -> None:
        version = store.column_version("p1", "done")
        with pytest.raises(StaleMove) as excinfo:
            coordinator.apply_move("p1", MoveRequest("T3", "todo", "inprogress", 0))
        assert excinfo.value.actual_column == "done"
        assert store.column_version("p1", "done") == version

    def test_storage_failure_leaves_state_untouched(
        self, coordinator: MoveCoordinator, store: BoardStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def _fail(path: Path, data: dict) -> None:
            raise OSError("device unplugged")

        monkeypatch.setattr("taskboard.board.store._atomic_write_yaml", _fail)
        with pytest.raises(StorageFailure):
            coordinator.apply_move("p1", MoveRequest("T1", "todo", "done", 0))
        monkeypatch.undo()
        assert _layout(store, "todo") == [("T1", 0), ("T2", 1)]
        assert _layout(store, "done") == [("T3", 0)]


class TestConcurrency:
    def test_version_conflict_is_retried(self, store: BoardStore, monkeypatch: pytest.MonkeyPatch) -> None:
        coordinator = MoveCoordinator(store, max_retries=2, locks=ColumnLocks())
        real = store.batch_set_order
        calls = {"n": 0}

        def _flaky(assignments, expected_versions=None):
            calls["n"] += 1
            if calls["n"] == 1:
                raise VersionConflict("p1:todo", 1, 2)
            return real(assignments, expected_versions=expected_versions)

        monkeypatch.setattr(store, "batch_set_order", _flaky)
        result = coordinator.apply_move("p1", MoveRequest("T1", "todo", "todo", 1))
        assert calls["n"] == 2
        assert [t.id for t in result.columns["todo"]] == ["T2", "T1"]

    def test_persistent_conflict_becomes_storage_failure(self, store: BoardStore, monkeypatch: pytest.MonkeyPatch) -> None:
        coordinator = MoveCoordinator(store, max_retries=1, locks=ColumnLocks())

        def _always(assignments, expected_versions=None):
            raise VersionConflict("p1:todo", 1, 2)

        monkeypatch.setattr(store, "batch_set_order", _always)
        with pytest.raises(StorageFailure, match="re-fetch"):
            coordinator.apply_move("p1", MoveRequest("T1", "todo", "todo", 1))

    def test_conflict_from_other_writer_is_detected(self, tmp_path: Path) -> None:
        state_dir = tmp_path / ".taskboard"
        store = BoardStore(state_dir)
        with store.transaction() as tx:
            tx.add_project(Project(id="p1", name="Board"))
            for i in range(3):
                tx.add_task(Task(id=f"T{i}", project_id="p1", title=f"T{i}", order=i))

        # Another process appends a task between our read and our write.
        other = BoardStore(state_dir)
        real = store.read_snapshot
        reads = {"n": 0}

        def _read_then_race():
            snap = real()
            reads["n"] += 1
            # Second read is the coordinator's planning snapshot.
            if reads["n"] == 2:
                with other.transaction() as tx:
                    tx.add_task(Task(id="T9", project_id="p1", title="T9", order=3))
            return snap

        store.read_snapshot = _read_then_race  # type: ignore[method-assign]
        coordinator = MoveCoordinator(store, max_retries=3, locks=ColumnLocks())
        result = coordinator.apply_move("p1", MoveRequest("T0", "todo", "todo", 2))
        assert reads["n"] >= 4
        assert [(t.id, t.order) for t in result.columns["todo"]] == [("T1", 0), ("T2", 1), ("T0", 2), ("T9", 3)]

    def test_parallel_moves_keep_column_dense(self, tmp_path: Path) -> None:
        store = BoardStore(tmp_path / ".taskboard")
        ids = [f"T{i}" for i in range(8)]
        with store.transaction() as tx:
            tx.add_project(Project(id="p1", name="Board"))
            for i, task_id in enumerate(ids):
                tx.add_task(Task(id=task_id, project_id="p1", title=task_id, order=i))

        coordinator = MoveCoordinator(store, locks=ColumnLocks())
        errors: list[BaseException] = []

        def _worker(task_id: str, index: int) -> None:
            try:
                for step in range(5):
                    coordinator.apply_move("p1", MoveRequest(task_id, "todo", "todo", (index + step) % len(ids)))
            except BaseException as exc:
                errors.append(exc)

        threads = [threading.Thread(target=_worker, args=(task_id, n * 3)) for n, task_id in enumerate(ids)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        todo = store.load_ordered("p1", "todo")
        assert sorted(t.order for t in todo) == list(range(len(ids)))
        assert {t.id for t in todo} == set(ids)
