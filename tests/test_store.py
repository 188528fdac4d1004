"""Tests for the file-backed board store (board/store.py)."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest
import yaml

from taskboard.board.errors import StorageFailure, TaskNotFound, VersionConflict
from taskboard.board.model import OrderAssignment, Project, Task, column_key
from taskboard.board.store import BoardStore


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    d = tmp_path / ".taskboard"
    d.mkdir()
    return d


@pytest.fixture
def store(state_dir: Path) -> BoardStore:
    s = BoardStore(state_dir)
    with s.transaction() as tx:
        tx.add_project(Project(id="p1", name="Board"))
        for i, task_id in enumerate(["t1", "t2", "t3"]):
            tx.add_task(Task(id=task_id, project_id="p1", column="todo", title=task_id, order=i))
        tx.add_task(Task(id="t4", project_id="p1", column="done", title="t4", order=0))
    return s


def _orders(store: BoardStore, column: str) -> list[tuple[str, int]]:
    return [(t.id, t.order) for t in store.load_ordered("p1", column)]


class TestBoardStore:
    def test_empty_snapshot(self, state_dir: Path) -> None:
        snap = BoardStore(state_dir).read_snapshot()
        assert snap.projects == []
        assert snap.tasks == []

    def test_load_ordered_sorts_by_order(self, store: BoardStore) -> None:
        with store.transaction() as tx:
            tx.get_task("t1").order = 5
            tx.dirty = True
        assert _orders(store, "todo") == [("t2", 1), ("t3", 2), ("t1", 5)]

    def test_persisted_as_yaml(self, store: BoardStore, state_dir: Path) -> None:
        data = yaml.safe_load((state_dir / "board.yaml").read_text())
        assert data["version"] == 1
        assert {t["id"] for t in data["tasks"]} == {"t1", "t2", "t3", "t4"}
        assert data["column_versions"][column_key("p1", "todo")] == 3

    def test_failed_block_writes_nothing(self, store: BoardStore) -> None:
        with pytest.raises(RuntimeError):
            with store.transaction() as tx:
                tx.get_task("t1").title = "changed"
                tx.dirty = True
                raise RuntimeError("boom")
        assert store.get_task("t1").title == "t1"

    def test_unreadable_state_is_never_overwritten(self, state_dir: Path) -> None:
        path = state_dir / "board.yaml"
        path.write_text("tasks: [unclosed\n")
        store = BoardStore(state_dir)
        with pytest.raises(StorageFailure, match="unreadable"):
            with store.transaction():
                pass
        assert path.read_text() == "tasks: [unclosed\n"

    def test_remove_project_cascades(self, store: BoardStore) -> None:
        with store.transaction() as tx:
            tx.add_project(Project(id="p2", name="Other"))
            tx.add_task(Task(id="x1", project_id="p2", title="x1"))
        with store.transaction() as tx:
            assert tx.remove_project("p1") == 4
        snap = store.read_snapshot()
        assert [t.id for t in snap.tasks] == ["x1"]
        assert all(not k.startswith("p1:") for k in snap.versions)

    def test_renumber_closes_gaps(self, store: BoardStore) -> None:
        with store.transaction() as tx:
            tx.remove_task("t2")
            assert tx.renumber("p1", "todo") == 1
        assert _orders(store, "todo") == [("t1", 0), ("t3", 1)]


class TestBatchSetOrder:
    def test_applies_all_and_bumps_versions(self, store: BoardStore) -> None:
        before_todo = store.column_version("p1", "todo")
        before_done = store.column_version("p1", "done")
        updated = store.batch_set_order([
            OrderAssignment("t2", "todo", 0),
            OrderAssignment("t3", "todo", 1),
            OrderAssignment("t1", "done", 0),
            OrderAssignment("t4", "done", 1),
        ])
        assert {t.id for t in updated} == {"t1", "t2", "t3", "t4"}
        assert _orders(store, "todo") == [("t2", 0), ("t3", 1)]
        assert _orders(store, "done") == [("t1", 0), ("t4", 1)]
        assert store.column_version("p1", "todo") == before_todo + 1
        assert store.column_version("p1", "done") == before_done + 1

    def test_unknown_task_writes_nothing(self, store: BoardStore) -> None:
        with pytest.raises(TaskNotFound):
            store.batch_set_order([OrderAssignment("t1", "todo", 2), OrderAssignment("ghost", "todo", 0)])
        assert _orders(store, "todo") == [("t1", 0), ("t2", 1), ("t3", 2)]

    def test_version_mismatch_writes_nothing(self, store: BoardStore) -> None:
        key = column_key("p1", "todo")
        current = store.column_version("p1", "todo")
        with pytest.raises(VersionConflict) as excinfo:
            store.batch_set_order([OrderAssignment("t1", "todo", 2)], expected_versions={key: current - 1})
        assert excinfo.value.actual == current
        assert _orders(store, "todo") == [("t1", 0), ("t2", 1), ("t3", 2)]

    def test_matching_versions_write(self, store: BoardStore) -> None:
        key = column_key("p1", "todo")
        versions = {key: store.column_version("p1", "todo")}
        store.batch_set_order([OrderAssignment("t3", "todo", 0), OrderAssignment("t1", "todo", 2)], expected_versions=versions)
        assert store.get_task("t3").order == 0

    def test_write_failure_is_storage_failure(self, store: BoardStore, monkeypatch: pytest.MonkeyPatch) -> None:
        def _fail(path: Path, data: dict) -> None:
            raise OSError("disk full")

        monkeypatch.setattr("taskboard.board.store._atomic_write_yaml", _fail)
        with pytest.raises(StorageFailure, match="not confirmed"):
            store.batch_set_order([OrderAssignment("t1", "todo", 2)])
        monkeypatch.undo()
        assert _orders(store, "todo") == [("t1", 0), ("t2", 1), ("t3", 2)]

    def test_concurrent_transactions_do_not_lose_updates(self, state_dir: Path) -> None:
        store = BoardStore(state_dir)
        with store.transaction() as tx:
            tx.add_project(Project(id="p1", name="Board"))

        def _add(n: int) -> None:
            with store.transaction() as tx:
                tx.add_task(Task(id=f"c{n}", project_id="p1", title=f"c{n}", order=n))

        threads = [threading.Thread(target=_add, args=(n,)) for n in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(store.read_snapshot().tasks) == 10
        assert store.column_version("p1", "todo") == 10
