"""Board data model: projects, their columns, and the tasks ordered inside them.

Everything here is a plain dataclass that serializes to YAML / JSON for
file-based persistence.  Column identifiers are scoped to their project and
validated against ``Project.columns``; they are never trusted from input.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from ..constants import (
    DEFAULT_COLUMNS,
    PROJECT_DESCRIPTION_MAX,
    PROJECT_NAME_MAX,
    TASK_DESCRIPTION_MAX,
    TASK_TITLE_MAX,
)
from ..utils import _now_iso, _short_id


def column_key(project_id: str, column_id: str) -> str:
    """Key of the (project, column) pair used for locks and version counters."""
    return f"{project_id}:{column_id}"


# ---------------------------------------------------------------------------
# Columns & projects
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Column:
    id: str
    title: str
    order: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Column":
        return cls(
            id=str(data.get("id") or ""),
            title=str(data.get("title") or data.get("id") or ""),
            order=int(data.get("order") or 0),
        )


def default_columns() -> list[Column]:
    return [Column(id=cid, title=title, order=idx) for idx, (cid, title) in enumerate(DEFAULT_COLUMNS)]


@dataclass
class Project:
    id: str = field(default_factory=lambda: _short_id("proj"))
    name: str = ""
    description: str = ""
    columns: list[Column] = field(default_factory=default_columns)
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)

    def ordered_columns(self) -> list[Column]:
        return sorted(self.columns, key=lambda c: (c.order, c.id))

    def column_ids(self) -> list[str]:
        """The closed set of column identifiers, in display order."""
        return [c.id for c in self.ordered_columns()]

    def has_column(self, column_id: str) -> bool:
        return column_id in self.column_ids()

    def touch(self) -> None:
        self.updated_at = _now_iso()

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["columns"] = [c.to_dict() for c in self.ordered_columns()]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        raw_columns = [c for c in list(data.get("columns") or []) if isinstance(c, dict)]
        columns = [Column.from_dict(c) for c in raw_columns] or default_columns()
        return cls(
            id=str(data.get("id") or _short_id("proj")),
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            columns=columns,
            created_at=str(data.get("created_at") or _now_iso()),
            updated_at=str(data.get("updated_at") or _now_iso()),
        )

    @classmethod
    def validate_dict(cls, data: dict[str, Any]) -> list[str]:
        """Check user-supplied project fields; returns error strings (empty = valid)."""
        errors: list[str] = []
        name = str(data.get("name") or "").strip()
        if not name:
            errors.append("Project name is required")
        elif len(name) > PROJECT_NAME_MAX:
            errors.append(f"Project name must be between 1 and {PROJECT_NAME_MAX} characters")
        description = data.get("description")
        if description is not None and len(str(description).strip()) > PROJECT_DESCRIPTION_MAX:
            errors.append(f"Project description cannot exceed {PROJECT_DESCRIPTION_MAX} characters")
        columns = data.get("columns")
        if columns is not None:
            ids = [str((c or {}).get("id") or "").strip() for c in columns if isinstance(c, dict)]
            if len(ids) != len(columns) or not all(ids):
                errors.append("Every column needs a non-empty id")
            elif len(set(ids)) != len(ids):
                errors.append("Column ids must be unique within a project")
            orders = [c.get("order") for c in columns if isinstance(c, dict)]
            if any(o is not None and (not isinstance(o, int) or isinstance(o, bool) or o < 0) for o in orders):
                errors.append("Column order must be a non-negative integer")
        return errors


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

@dataclass
class Task:
    """A card on the board.

    ``order`` is the task's position inside ``(project_id, column)``; after
    any move the orders of a column are exactly ``0..n-1``.
    """

    id: str = field(default_factory=lambda: _short_id("task"))
    project_id: str = ""
    column: str = "todo"
    title: str = ""
    description: str = ""
    order: int = 0
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)

    def touch(self) -> None:
        """Bump ``updated_at`` to now."""
        self.updated_at = _now_iso()

    def place(self, column: str, order: int) -> bool:
        """Set column and order; returns True if either changed."""
        if self.column == column and self.order == order:
            return False
        self.column = column
        self.order = order
        self.touch()
        return True

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        return cls(
            id=str(data.get("id") or _short_id("task")),
            project_id=str(data.get("project_id") or ""),
            column=str(data.get("column") or "todo"),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            order=max(0, int(data.get("order") or 0)),
            created_at=str(data.get("created_at") or _now_iso()),
            updated_at=str(data.get("updated_at") or _now_iso()),
        )

    @classmethod
    def validate_dict(cls, data: dict[str, Any], *, partial: bool = False) -> list[str]:
        """Lightweight validation of user-supplied task fields.

        With ``partial=True`` the title may be absent (PATCH-style updates) but
        must still be non-empty when present.
        """
        errors: list[str] = []
        if "title" in data or not partial:
            title = str(data.get("title") or "").strip()
            if not title:
                errors.append("Task title is required")
            elif len(title) > TASK_TITLE_MAX:
                errors.append(f"Task title must be between 1 and {TASK_TITLE_MAX} characters")
        description = data.get("description")
        if description is not None and len(str(description).strip()) > TASK_DESCRIPTION_MAX:
            errors.append(f"Task description cannot exceed {TASK_DESCRIPTION_MAX} characters")
        order = data.get("order")
        if order is not None and (not isinstance(order, int) or order < 0):
            errors.append("Order must be a non-negative integer")
        return errors


def sort_key(task: Task) -> tuple[int, str, str]:
    return (task.order, task.created_at, task.id)


# ---------------------------------------------------------------------------
# Move requests
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MoveRequest:
    task_id: str
    source_column: str
    destination_column: str
    destination_index: int

    @property
    def is_in_column(self) -> bool:
        return self.source_column == self.destination_column

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class OrderAssignment:
    """One record of a batch order write."""

    task_id: str
    column: str
    order: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
