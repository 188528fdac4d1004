"""Optimistic drag-and-drop state for one board view.

A drag captures immutable snapshots of the columns it may touch, the drop
applies the planner's result locally straight away, and the server's answer
then either replaces the touched columns with the authoritative lists or
restores the snapshots exactly.  Only one move may be in flight at a time.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Protocol

from loguru import logger

from ..board.errors import InvalidRequest
from ..board.model import MoveRequest, Task
from ..board.planner import plan_move
from ..constants import DEFAULT_MOVE_TIMEOUT_SECONDS
from .api_client import MoveFailure, MoveResponse


class MoveState(str, Enum):
    IDLE = "idle"
    DRAG_IN_PROGRESS = "drag_in_progress"
    PENDING_CONFIRMATION = "pending_confirmation"
    RECONCILED = "reconciled"
    ROLLED_BACK = "rolled_back"
    CLOSED = "closed"


_ALLOWED: dict[MoveState, set[MoveState]] = {
    MoveState.IDLE: {MoveState.DRAG_IN_PROGRESS, MoveState.CLOSED},
    MoveState.DRAG_IN_PROGRESS: {MoveState.IDLE, MoveState.PENDING_CONFIRMATION, MoveState.CLOSED},
    MoveState.PENDING_CONFIRMATION: {MoveState.RECONCILED, MoveState.ROLLED_BACK, MoveState.CLOSED},
    MoveState.RECONCILED: {MoveState.IDLE},
    MoveState.ROLLED_BACK: {MoveState.IDLE},
    MoveState.CLOSED: set(),
}


class MoveInProgress(RuntimeError):
    """A drag was started while another move is still being dragged or confirmed."""


class MoveApi(Protocol):
    async def move_task(self, project_id: str, request: MoveRequest) -> MoveResponse: ...


@dataclass(frozen=True)
class ColumnSnapshot:
    """Pre-move copy of one column, used verbatim on rollback."""

    column_id: str
    tasks: tuple[Task, ...] = field(default_factory=tuple)


class OptimisticBoard:
    """Local column view plus the move state machine.

    Args:
        project_id: Project the board shows.
        columns: Ordered task lists per column, as loaded from the server.
        api: Anything with an async ``move_task(project_id, request)``.
        timeout: Seconds to wait for the server before rolling back.
        notify: Called with a user-facing message whenever a move is rolled back.
    """

    def __init__(
        self,
        project_id: str,
        columns: dict[str, list[Task]],
        api: MoveApi,
        *,
        timeout: float = DEFAULT_MOVE_TIMEOUT_SECONDS,
        notify: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.project_id = project_id
        self.api = api
        self.timeout = timeout
        self.notify = notify
        self.state = MoveState.IDLE
        self.transitions: list[tuple[MoveState, MoveState]] = []
        self.last_outcome: Optional[MoveState] = None
        self.last_error: Optional[MoveFailure] = None
        self._columns: dict[str, list[Task]] = {k: list(v) for k, v in columns.items()}
        self._dragged: Optional[str] = None
        self._source: Optional[str] = None
        self._snapshots: dict[str, ColumnSnapshot] = {}
        self._closed = False

    # -- view ---------------------------------------------------------------

    @property
    def columns(self) -> dict[str, list[Task]]:
        return {k: list(v) for k, v in self._columns.items()}

    def column(self, column_id: str) -> list[Task]:
        return list(self._columns.get(column_id, []))

    def task_ids(self, column_id: str) -> list[str]:
        return [t.id for t in self._columns.get(column_id, [])]

    def _column_of(self, task_id: str) -> Optional[str]:
        for column_id, tasks in self._columns.items():
            if any(t.id == task_id for t in tasks):
                return column_id
        return None

    def _snapshot(self, column_id: str) -> None:
        if column_id not in self._snapshots:
            self._snapshots[column_id] = ColumnSnapshot(column_id, tuple(self._columns.get(column_id, [])))

    def _move_to(self, new_state: MoveState) -> None:
        if new_state not in _ALLOWED[self.state]:
            raise RuntimeError(f"Illegal move state transition {self.state.value} -> {new_state.value}")
        self.transitions.append((self.state, new_state))
        self.state = new_state

    def _reset(self) -> None:
        self._dragged = None
        self._source = None
        self._snapshots = {}

    # -- drag lifecycle -----------------------------------------------------

    def start_drag(self, task_id: str) -> None:
        """Pick up ``task_id`` and snapshot its column."""
        if self._closed:
            raise RuntimeError("Board view is closed")
        if self.state != MoveState.IDLE:
            raise MoveInProgress(f"Cannot drag {task_id}: a move is already {self.state.value}")
        source = self._column_of(task_id)
        if source is None:
            raise KeyError(f"Task {task_id} is not on this board")
        self._dragged = task_id
        self._source = source
        self._snapshot(source)
        self._move_to(MoveState.DRAG_IN_PROGRESS)

    def cancel_drag(self) -> None:
        """Drop outside any column: nothing changes."""
        if self.state != MoveState.DRAG_IN_PROGRESS:
            return
        self._reset()
        self._move_to(MoveState.IDLE)

    async def drop(self, destination_column: str, destination_index: int) -> MoveState:
        """Drop the dragged task and wait for the server's verdict.

        Returns the outcome: ``RECONCILED``, ``ROLLED_BACK``, or ``IDLE`` for a
        drop that changed nothing (no request is sent then).
        """
        if self.state != MoveState.DRAG_IN_PROGRESS or self._dragged is None or self._source is None:
            raise RuntimeError("No drag in progress")
        if destination_column not in self._columns:
            self.cancel_drag()
            return self.state

        task_id = self._dragged
        source_column = self._source
        self._snapshot(destination_column)
        request = MoveRequest(
            task_id=task_id,
            source_column=source_column,
            destination_column=destination_column,
            destination_index=destination_index,
        )
        try:
            plan = plan_move(
                self._columns[source_column],
                self._columns[destination_column],
                request,
                self._columns.keys(),
            )
        except InvalidRequest:
            self.cancel_drag()
            raise
        if plan.is_noop:
            self.cancel_drag()
            return self.state

        touched = {column_id: self._columns[column_id] for column_id in plan.touched_columns}
        self._columns.update(plan.apply(touched))
        self._move_to(MoveState.PENDING_CONFIRMATION)

        try:
            response = await asyncio.wait_for(self.api.move_task(self.project_id, request), timeout=self.timeout)
        except asyncio.TimeoutError:
            return self._settle(None, MoveFailure("TIMEOUT", f"No confirmation within {self.timeout}s"))
        except MoveFailure as exc:
            return self._settle(None, exc)
        except asyncio.CancelledError:
            self._settle(None, MoveFailure("CANCELLED", "Move was cancelled before the server confirmed it"))
            raise
        except Exception as exc:
            self._settle(None, MoveFailure("CLIENT_ERROR", str(exc) or exc.__class__.__name__))
            raise
        return self._settle(response, None)

    def _settle(self, response: Optional[MoveResponse], failure: Optional[MoveFailure]) -> MoveState:
        if self._closed:
            logger.debug("Ignoring move result for {}: board view closed", self._dragged)
            self._reset()
            return self.state

        if failure is None and response is not None:
            for column_id, tasks in response.columns.items():
                if column_id in self._columns:
                    self._columns[column_id] = list(tasks)
            self.last_error = None
            outcome = MoveState.RECONCILED
        else:
            for column_id, snapshot in self._snapshots.items():
                self._columns[column_id] = list(snapshot.tasks)
            self.last_error = failure
            outcome = MoveState.ROLLED_BACK
            logger.warning("Move of {} rolled back: {}", self._dragged, failure)
            if self.notify is not None and failure is not None:
                self.notify(f"Could not move task: {failure.message}")

        self._move_to(outcome)
        self.last_outcome = outcome
        self._reset()
        self._move_to(MoveState.IDLE)
        return outcome

    def close(self) -> None:
        """Tear the view down; a response still in flight is ignored."""
        if self._closed:
            return
        self._closed = True
        self._move_to(MoveState.CLOSED)
