"""File-based board store with locking and per-column version counters.

Projects, tasks and the version counter of every ``(project, column)`` pair
live in a single YAML document (``board.yaml``) inside the state directory.
All reads and writes go through :meth:`BoardStore.transaction`, which holds an
exclusive file lock and replaces the document atomically, so a batch of order
changes is either fully visible or not at all.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional

from loguru import logger

from ..constants import BOARD_FILE, LOCK_FILE, STATE_SCHEMA_VERSION
from ..io_utils import FileLock, _atomic_write_yaml, _load_yaml_with_error
from .errors import StorageFailure, TaskNotFound, VersionConflict
from .model import OrderAssignment, Project, Task, column_key, sort_key


# ---------------------------------------------------------------------------
# BoardStore
# ---------------------------------------------------------------------------

class BoardStore:
    """Thread- and process-safe, file-backed store for projects and tasks.

    Parameters
    ----------
    state_dir:
        Path to the ``.taskboard/`` directory.
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir
        self._store_path = state_dir / BOARD_FILE
        self._lock = FileLock(state_dir / LOCK_FILE)
        self._thread_lock = threading.RLock()

    @property
    def state_dir(self) -> Path:
        return self._state_dir

    # -- internal helpers ---------------------------------------------------

    def _load(self) -> "_BoardTx":
        data, err = _load_yaml_with_error(self._store_path, {})
        if err:
            # Never overwrite a document we could not read.
            raise StorageFailure(f"Board state is unreadable: {err}")
        projects = [Project.from_dict(p) for p in list(data.get("projects") or []) if isinstance(p, dict)]
        tasks = [Task.from_dict(t) for t in list(data.get("tasks") or []) if isinstance(t, dict)]
        raw_versions = data.get("column_versions") or {}
        versions = {str(k): int(v or 0) for k, v in raw_versions.items()} if isinstance(raw_versions, dict) else {}
        return _BoardTx(projects, tasks, versions)

    def _save(self, tx: "_BoardTx") -> None:
        payload: dict[str, Any] = {
            "version": STATE_SCHEMA_VERSION,
            "projects": [p.to_dict() for p in tx.projects],
            "tasks": [t.to_dict() for t in tx.tasks],
            "column_versions": dict(sorted(tx.versions.items())),
        }
        try:
            _atomic_write_yaml(self._store_path, payload)
        except OSError as exc:
            logger.error("Board write to {} failed: {}", self._store_path, exc)
            raise StorageFailure(f"Board write was not confirmed: {exc}") from exc

    # -- public API ---------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator["_BoardTx"]:
        """Acquire the lock, load the board, yield a transaction, and save on exit.

        Nothing is written if the block raises.

        Usage::

            with store.transaction() as tx:
                task = tx.get_task("task-abc12345")
                task.title = "Renamed"
                tx.dirty = True
        """
        with self._thread_lock:
            with self._lock:
                tx = self._load()
                yield tx
                if tx.dirty:
                    self._save(tx)

    def read_snapshot(self) -> "_BoardTx":
        """Return a detached copy of the whole board (no lock held after return)."""
        with self._thread_lock:
            with self._lock:
                return self._load()

    def get_project(self, project_id: str) -> Optional[Project]:
        return self.read_snapshot().get_project(project_id)

    def get_task(self, task_id: str) -> Optional[Task]:
        return self.read_snapshot().get_task(task_id)

    def load_ordered(self, project_id: str, column_id: str) -> list[Task]:
        """Tasks of one ``(project, column)`` pair sorted by ``order``."""
        return self.read_snapshot().tasks_in(project_id, column_id)

    def load_columns(self, project_id: str, column_ids: Iterable[str]) -> tuple[dict[str, list[Task]], dict[str, int]]:
        """Load several columns and their versions from one consistent snapshot."""
        snap = self.read_snapshot()
        columns: dict[str, list[Task]] = {}
        versions: dict[str, int] = {}
        for column_id in column_ids:
            columns[column_id] = snap.tasks_in(project_id, column_id)
            versions[column_key(project_id, column_id)] = snap.version(project_id, column_id)
        return columns, versions

    def column_version(self, project_id: str, column_id: str) -> int:
        return self.read_snapshot().version(project_id, column_id)

    def batch_set_order(
        self,
        assignments: list[OrderAssignment],
        expected_versions: Optional[dict[str, int]] = None,
    ) -> list[Task]:
        """Apply every ``{task_id, column, order}`` as one all-or-nothing write.

        Parameters
        ----------
        assignments:
            The records to place.
        expected_versions:
            Optional ``{column_key: version}``; if any column has moved on
            since it was read, :class:`VersionConflict` is raised and nothing
            is written.

        Returns the tasks whose column or order actually changed.
        """
        with self.transaction() as tx:
            for key, expected in (expected_versions or {}).items():
                actual = tx.versions.get(key, 0)
                if actual != expected:
                    raise VersionConflict(key, expected, actual)

            touched: set[tuple[str, str]] = set()
            updated: list[Task] = []
            for assignment in assignments:
                task = tx.get_task(assignment.task_id)
                if task is None:
                    raise TaskNotFound(assignment.task_id)
                touched.add((task.project_id, task.column))
                touched.add((task.project_id, assignment.column))
                if task.place(assignment.column, assignment.order):
                    updated.append(task)

            for project_id, column_id in touched:
                tx.bump(project_id, column_id)
            tx.dirty = bool(touched)
            return updated


class _BoardTx:
    """In-memory transaction over the whole board.

    Mutations are collected and flushed back to disk when the ``transaction``
    context-manager exits.
    """

    def __init__(self, projects: list[Project], tasks: list[Task], versions: dict[str, int]) -> None:
        self.projects = projects
        self.tasks = tasks
        self.versions = versions
        self.dirty = False

    # -- lookups ------------------------------------------------------------

    def get_project(self, project_id: str) -> Optional[Project]:
        for project in self.projects:
            if project.id == project_id:
                return project
        return None

    def get_task(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def tasks_in(self, project_id: str, column_id: str) -> list[Task]:
        selected = [t for t in self.tasks if t.project_id == project_id and t.column == column_id]
        selected.sort(key=sort_key)
        return selected

    def version(self, project_id: str, column_id: str) -> int:
        return self.versions.get(column_key(project_id, column_id), 0)

    # -- mutations ----------------------------------------------------------

    def bump(self, project_id: str, column_id: str) -> int:
        key = column_key(project_id, column_id)
        self.versions[key] = self.versions.get(key, 0) + 1
        self.dirty = True
        return self.versions[key]

    def add_project(self, project: Project) -> Project:
        if self.get_project(project.id) is not None:
            raise ValueError(f"Project {project.id} already exists")
        self.projects.append(project)
        self.dirty = True
        return project

    def remove_project(self, project_id: str) -> int:
        """Delete a project and cascade to its tasks; returns the task count removed."""
        before = len(self.tasks)
        self.tasks = [t for t in self.tasks if t.project_id != project_id]
        self.projects = [p for p in self.projects if p.id != project_id]
        prefix = column_key(project_id, "")
        self.versions = {k: v for k, v in self.versions.items() if not k.startswith(prefix)}
        self.dirty = True
        return before - len(self.tasks)

    def add_task(self, task: Task) -> Task:
        if self.get_task(task.id) is not None:
            raise ValueError(f"Task {task.id} already exists")
        self.tasks.append(task)
        self.bump(task.project_id, task.column)
        return task

    def remove_task(self, task_id: str) -> Optional[Task]:
        task = self.get_task(task_id)
        if task is None:
            return None
        self.tasks = [t for t in self.tasks if t.id != task_id]
        self.bump(task.project_id, task.column)
        return task

    def renumber(self, project_id: str, column_id: str) -> int:
        """Re-densify one column to ``0..n-1``; returns how many tasks moved."""
        changed = 0
        for position, task in enumerate(self.tasks_in(project_id, column_id)):
            if task.place(column_id, position):
                changed += 1
        if changed:
            self.bump(project_id, column_id)
        return changed
