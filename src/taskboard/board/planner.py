"""Move planner: compute the order changes a drag-and-drop move requires.

This module is pure.  The server runs it against authoritative storage and
the client runs the very same function against its local view to render the
optimistic result, so both sides agree on what a move does.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Optional, Protocol, Sequence, TypeVar

from .errors import InvalidColumn, InvalidIndex, InvalidRequest
from .model import MoveRequest, OrderAssignment


class Ordered(Protocol):
    id: str
    order: int


T = TypeVar("T", bound=Ordered)


@dataclass(frozen=True)
class MovePlan:
    """The outcome of planning one move.

    ``changes`` maps task id to its new ``order`` for every task whose order
    changed; the moved task additionally lands in ``column``.  A cross-column
    move always lists the moved task, even if its numeric order is unchanged.
    """

    task_id: str
    column: str
    source_column: str
    changes: dict[str, int] = field(default_factory=dict)
    columns: dict[str, list[str]] = field(default_factory=dict)

    @property
    def is_noop(self) -> bool:
        return not self.changes

    @property
    def touched_columns(self) -> list[str]:
        return list(self.columns)

    def assignments(self) -> list[OrderAssignment]:
        """Flatten the plan into batch-write records."""
        out: list[OrderAssignment] = []
        for column_id, ids in self.columns.items():
            for task_id in ids:
                if task_id in self.changes:
                    out.append(OrderAssignment(task_id=task_id, column=column_id, order=self.changes[task_id]))
        return out

    def apply(self, columns: dict[str, list[T]]) -> dict[str, list[T]]:
        return apply_plan(self, columns)


def _ids(items: Iterable[Ordered]) -> list[str]:
    return [item.id for item in items]


def _validate(request: MoveRequest, valid_columns: Optional[Iterable[str]]) -> None:
    if request.destination_index < 0:
        raise InvalidIndex(f"Destination index must be non-negative, got {request.destination_index}")
    if valid_columns is None:
        return
    allowed = set(valid_columns)
    for label, column_id in (("Source", request.source_column), ("Destination", request.destination_column)):
        if column_id not in allowed:
            raise InvalidColumn(
                f"{label} column '{column_id}' is not defined for this project. "
                f"Valid columns: {sorted(allowed)}"
            )


def _diff(ordered: list[str], before: dict[str, int], always: frozenset[str] = frozenset()) -> dict[str, int]:
    changes: dict[str, int] = {}
    for position, task_id in enumerate(ordered):
        if task_id in always or before.get(task_id) != position:
            changes[task_id] = position
    return changes


def plan_move(
    source: Sequence[Ordered],
    destination: Optional[Sequence[Ordered]],
    request: MoveRequest,
    valid_columns: Optional[Iterable[str]] = None,
) -> MovePlan:
    """Plan a move of ``request.task_id``.

    Parameters
    ----------
    source:
        Tasks currently in the source column, sorted by order.
    destination:
        Tasks currently in the destination column, sorted by order.  Ignored
        for an in-column move.
    request:
        The move.  ``destination_index`` beyond the end of the destination
        means "append".
    valid_columns:
        The project's column identifiers; when given, both columns of the
        request must be among them.

    Raises :class:`InvalidRequest` (or a subclass) if the request does not fit
    the supplied columns.
    """
    _validate(request, valid_columns)

    source_ids = _ids(source)
    if request.task_id not in source_ids:
        raise InvalidRequest(
            f"Task {request.task_id} is not in source column '{request.source_column}'"
        )
    before = {item.id: item.order for item in source}
    current_index = source_ids.index(request.task_id)

    if request.is_in_column:
        # Remove, re-insert at the clamped index, renumber the whole column.
        target = min(request.destination_index, len(source_ids) - 1)
        if target == current_index:
            return MovePlan(task_id=request.task_id, column=request.source_column, source_column=request.source_column)
        reordered = list(source_ids)
        reordered.pop(current_index)
        reordered.insert(target, request.task_id)
        changes = _diff(reordered, before)
        return MovePlan(
            task_id=request.task_id,
            column=request.source_column,
            source_column=request.source_column,
            changes=changes,
            columns={request.source_column: reordered},
        )

    destination = list(destination or [])
    destination_ids = _ids(destination)
    if request.task_id in destination_ids:
        raise InvalidRequest(
            f"Task {request.task_id} is already in destination column '{request.destination_column}'"
        )
    before.update({item.id: item.order for item in destination})

    # Close the gap in the source, open space in the destination.
    remaining = [task_id for task_id in source_ids if task_id != request.task_id]
    target = min(request.destination_index, len(destination_ids))
    inserted = list(destination_ids)
    inserted.insert(target, request.task_id)

    changes = _diff(remaining, before)
    changes.update(_diff(inserted, before, always=frozenset({request.task_id})))
    return MovePlan(
        task_id=request.task_id,
        column=request.destination_column,
        source_column=request.source_column,
        changes=changes,
        columns={request.source_column: remaining, request.destination_column: inserted},
    )


def apply_plan(plan: MovePlan, columns: dict[str, list[T]]) -> dict[str, list[T]]:
    """Return new column lists with ``plan`` applied; inputs are not mutated.

    Items are copied with their new ``order`` (and ``column``, where the item
    has one) via :func:`dataclasses.replace`.
    """
    if plan.is_noop:
        return {column_id: list(items) for column_id, items in columns.items()}
    by_id: dict[str, Any] = {}
    for items in columns.values():
        for item in items:
            by_id[item.id] = item
    result = {column_id: list(items) for column_id, items in columns.items()}
    for column_id, ids in plan.columns.items():
        rebuilt = []
        for position, task_id in enumerate(ids):
            item = by_id[task_id]
            updates: dict[str, Any] = {"order": position}
            if hasattr(item, "column"):
                updates["column"] = column_id
            rebuilt.append(replace(item, **updates))
        result[column_id] = rebuilt
    return result
