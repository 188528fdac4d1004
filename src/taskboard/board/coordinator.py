"""Move coordinator: validate, plan and persist a move against the store.

The read-plan-write sequence for a move runs inside a per-(project, column)
mutual-exclusion section, and the final batch write is conditional on the
column versions read at the start.  The locks serialize moves inside one
process; the version check catches writers in other processes sharing the
same state directory, in which case the whole sequence is retried.
"""

from __future__ import annotations

import threading
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator

from loguru import logger

from ..logging_utils import pretty
from .errors import (
    InvalidColumn,
    InvalidIndex,
    ProjectNotFound,
    StaleMove,
    StorageFailure,
    TaskNotFound,
    VersionConflict,
)
from .model import MoveRequest, Project, Task, column_key
from .planner import plan_move
from .store import BoardStore


# ---------------------------------------------------------------------------
# Column locks
# ---------------------------------------------------------------------------

class ColumnLocks:
    """Registry of one lock per ``(project, column)`` pair."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _get(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, project_id: str, column_ids: list[str]) -> Iterator[None]:
        """Hold the locks of every listed column, acquired in sorted order."""
        keys = sorted({column_key(project_id, column_id) for column_id in column_ids})
        with ExitStack() as stack:
            for key in keys:
                stack.enter_context(self._get(key))
            yield


_COLUMN_LOCKS = ColumnLocks()


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------

@dataclass
class MoveResult:
    """Authoritative state after a move: the moved task and every touched column."""

    task: Task
    columns: dict[str, list[Task]] = field(default_factory=dict)
    changed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "task": self.task.to_dict(),
            "columns": {column_id: [t.to_dict() for t in tasks] for column_id, tasks in self.columns.items()},
            "changed": self.changed,
        }


class MoveCoordinator:
    """Apply moves for any project in one store.

    Parameters
    ----------
    store:
        The board store (Order Store Adapter).
    max_retries:
        How many times a version conflict re-runs the read-plan-write
        sequence before it is reported as :class:`StorageFailure`.
    locks:
        Column lock registry; defaults to the process-wide one so every
        coordinator in the process shares it.
    """

    def __init__(self, store: BoardStore, max_retries: int = 3, locks: ColumnLocks | None = None) -> None:
        self.store = store
        self.max_retries = max(0, int(max_retries))
        self._locks = locks or _COLUMN_LOCKS

    def _validate(self, project_id: str, request: MoveRequest) -> Project:
        if request.destination_index < 0:
            raise InvalidIndex(f"Destination index must be non-negative, got {request.destination_index}")
        project = self.store.get_project(project_id)
        if project is None:
            raise ProjectNotFound(project_id)
        valid = project.column_ids()
        for label, column_id in (("Source", request.source_column), ("Destination", request.destination_column)):
            if column_id not in valid:
                raise InvalidColumn(f"{label} column '{column_id}' is not defined for project {project_id}. Valid columns: {valid}")
        return project

    def apply_move(self, project_id: str, request: MoveRequest) -> MoveResult:
        """Move ``request.task_id`` and return the fresh state of the touched columns.

        Raises a :class:`~taskboard.board.errors.BoardError` subclass on
        failure; on :class:`StorageFailure` the column state is unknown and
        the caller must re-fetch it.
        """
        project = self._validate(project_id, request)
        columns = [request.source_column]
        if not request.is_in_column:
            columns.append(request.destination_column)

        attempts = 0
        while True:
            attempts += 1
            try:
                with self._locks.hold(project_id, columns):
                    return self._attempt(project, request, columns)
            except VersionConflict as exc:
                if attempts > self.max_retries:
                    logger.error("Move of {} gave up after {} conflicting attempts: {}", request.task_id, attempts, exc)
                    raise StorageFailure(
                        f"Move of {request.task_id} could not be committed after {attempts} attempts; re-fetch the board"
                    ) from exc
                logger.warning("Move of {} hit a version conflict (attempt {}), retrying: {}", request.task_id, attempts, exc)

    def _attempt(self, project: Project, request: MoveRequest, columns: list[str]) -> MoveResult:
        snap = self.store.read_snapshot()
        loaded = {column_id: snap.tasks_in(project.id, column_id) for column_id in columns}
        versions = {column_key(project.id, column_id): snap.version(project.id, column_id) for column_id in columns}

        task = snap.get_task(request.task_id)
        if task is None or task.project_id != project.id:
            raise TaskNotFound(request.task_id, project.id)
        if task.column != request.source_column:
            raise StaleMove(task.id, request.source_column, task.column)
        plan = plan_move(
            loaded[request.source_column],
            loaded.get(request.destination_column),
            request,
            project.column_ids(),
        )
        if plan.is_noop:
            logger.debug("Move of {} in {} is a no-op", request.task_id, request.source_column)
            return MoveResult(task=task, columns=loaded, changed=0)

        logger.debug("Plan for {}: {}", task.id, pretty(plan.changes))
        updated = self.store.batch_set_order(plan.assignments(), expected_versions=versions)
        fresh, _ = self.store.load_columns(project.id, columns)
        moved = next((t for t in fresh[plan.column] if t.id == task.id), task)
        logger.info(
            "Moved {} {} -> {}[{}] ({} records changed)",
            task.id,
            request.source_column,
            plan.column,
            moved.order,
            len(updated),
        )
        return MoveResult(task=moved, columns=fresh, changed=len(updated))
