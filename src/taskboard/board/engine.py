"""Board engine: project / task CRUD, board view, and moves.

This is the primary entry-point for board manipulation.  It wraps
:class:`BoardStore` with the business rules around ordering: new tasks are
appended to their column, a task whose column is edited directly goes to the
end of the new column, and deleting a task renumbers its column so every
column stays densely ordered.  Drag-and-drop moves are delegated to the
:class:`MoveCoordinator`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from loguru import logger

from ..constants import DEFAULT_MOVE_MAX_RETRIES
from .coordinator import MoveCoordinator, MoveResult
from .errors import InvalidColumn, ProjectNotFound, TaskNotFound, ValidationError
from .model import Column, MoveRequest, Project, Task
from .store import BoardStore


class BoardEngine:
    """Manage projects and their boards.

    Parameters
    ----------
    state_dir:
        Path to the ``.taskboard/`` directory.
    max_retries:
        Conditional-write retries handed to the move coordinator.
    """

    def __init__(self, state_dir: Path, max_retries: int = DEFAULT_MOVE_MAX_RETRIES) -> None:
        self.store = BoardStore(state_dir)
        self.coordinator = MoveCoordinator(self.store, max_retries=max_retries)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def create_project(
        self,
        name: str,
        description: str = "",
        columns: Optional[list[dict[str, Any]]] = None,
    ) -> Project:
        """Create and persist a project; default columns when none are given."""
        errors = Project.validate_dict({"name": name, "description": description, "columns": columns})
        if errors:
            raise ValidationError("Validation Error", details=errors)
        project = Project(name=name.strip(), description=(description or "").strip())
        if columns:
            project.columns = [
                Column(id=str(c["id"]).strip(), title=str(c.get("title") or c["id"]).strip(), order=idx if c.get("order") is None else int(c["order"]))
                for idx, c in enumerate(columns)
            ]
        with self.store.transaction() as tx:
            tx.add_project(project)
        logger.info("Created project {}: {}", project.id, project.name)
        return project

    def list_projects(self) -> list[Project]:
        projects = self.store.read_snapshot().projects
        projects.sort(key=lambda p: p.created_at, reverse=True)
        return projects

    def get_project(self, project_id: str) -> Project:
        project = self.store.get_project(project_id)
        if project is None:
            raise ProjectNotFound(project_id)
        return project

    def update_project(self, project_id: str, changes: dict[str, Any]) -> Project:
        """Apply name / description edits; columns are fixed once created."""
        allowed = {k: v for k, v in changes.items() if k in {"name", "description"} and v is not None}
        with self.store.transaction() as tx:
            project = tx.get_project(project_id)
            if project is None:
                raise ProjectNotFound(project_id)
            merged = {"name": project.name, "description": project.description, **allowed}
            errors = Project.validate_dict(merged)
            if errors:
                raise ValidationError("Validation Error", details=errors)
            project.name = str(merged["name"]).strip()
            project.description = str(merged["description"] or "").strip()
            project.touch()
            tx.dirty = True
            return project

    def delete_project(self, project_id: str) -> int:
        """Delete a project and all of its tasks; returns the deleted task count."""
        with self.store.transaction() as tx:
            if tx.get_project(project_id) is None:
                raise ProjectNotFound(project_id)
            removed = tx.remove_project(project_id)
        logger.info("Deleted project {} and {} task(s)", project_id, removed)
        return removed

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def create_task(self, project_id: str, title: str, description: str = "", column: Optional[str] = None) -> Task:
        """Create a task at the end of ``column`` (the project's first column by default)."""
        errors = Task.validate_dict({"title": title, "description": description})
        if errors:
            raise ValidationError("Validation Error", details=errors)
        with self.store.transaction() as tx:
            project = tx.get_project(project_id)
            if project is None:
                raise ProjectNotFound(project_id)
            column_id = column or project.column_ids()[0]
            if not project.has_column(column_id):
                raise InvalidColumn(f"Column '{column_id}' is not defined for project {project_id}")
            task = Task(
                project_id=project_id,
                column=column_id,
                title=title.strip(),
                description=(description or "").strip(),
                order=len(tx.tasks_in(project_id, column_id)),
            )
            tx.add_task(task)
        logger.info("Created task {} in {}/{} at {}", task.id, project_id, task.column, task.order)
        return task

    def list_tasks(self, project_id: str, column: Optional[str] = None) -> list[Task]:
        """Tasks of a project, by column display order then task order."""
        snap = self.store.read_snapshot()
        project = snap.get_project(project_id)
        if project is None:
            raise ProjectNotFound(project_id)
        column_ids = project.column_ids()
        if column is not None:
            if column not in column_ids:
                raise InvalidColumn(f"Column '{column}' is not defined for project {project_id}")
            column_ids = [column]
        out: list[Task] = []
        for column_id in column_ids:
            out.extend(snap.tasks_in(project_id, column_id))
        return out

    def get_task(self, task_id: str) -> Task:
        task = self.store.get_task(task_id)
        if task is None:
            raise TaskNotFound(task_id)
        return task

    def update_task(self, task_id: str, changes: dict[str, Any]) -> Task:
        """Apply partial edits to title, description or column.

        A column change appends the task to its new column and closes the gap
        it leaves behind.  Ordering inside a column only changes through
        :meth:`move_task`.
        """
        allowed = {k: v for k, v in changes.items() if k in {"title", "description", "column"} and v is not None}
        errors = Task.validate_dict(allowed, partial=True)
        if errors:
            raise ValidationError("Validation Error", details=errors)
        with self.store.transaction() as tx:
            task = tx.get_task(task_id)
            if task is None:
                raise TaskNotFound(task_id)
            if "title" in allowed:
                task.title = str(allowed["title"]).strip()
            if "description" in allowed:
                task.description = str(allowed["description"]).strip()
            new_column = allowed.get("column")
            if new_column and new_column != task.column:
                project = tx.get_project(task.project_id)
                if project is None or not project.has_column(new_column):
                    raise InvalidColumn(f"Column '{new_column}' is not defined for project {task.project_id}")
                old_column = task.column
                task.place(new_column, len(tx.tasks_in(task.project_id, new_column)))
                tx.bump(task.project_id, new_column)
                tx.renumber(task.project_id, old_column)
                tx.bump(task.project_id, old_column)
            task.touch()
            tx.dirty = True
            return task

    def delete_task(self, task_id: str) -> Task:
        """Delete a task and renumber the rest of its column to ``0..n-1``."""
        with self.store.transaction() as tx:
            task = tx.remove_task(task_id)
            if task is None:
                raise TaskNotFound(task_id)
            shifted = tx.renumber(task.project_id, task.column)
        logger.info("Deleted task {} from {}/{} ({} renumbered)", task_id, task.project_id, task.column, shifted)
        return task

    # ------------------------------------------------------------------
    # Board view & moves
    # ------------------------------------------------------------------

    def get_board(self, project_id: str) -> dict[str, list[Task]]:
        """Return the project's tasks grouped by column, each column in order."""
        snap = self.store.read_snapshot()
        project = snap.get_project(project_id)
        if project is None:
            raise ProjectNotFound(project_id)
        return {column_id: snap.tasks_in(project_id, column_id) for column_id in project.column_ids()}

    def move_task(self, project_id: str, request: MoveRequest) -> MoveResult:
        return self.coordinator.apply_move(project_id, request)
