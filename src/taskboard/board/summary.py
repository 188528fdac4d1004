"""Project summarization and question-answering collaborator.

The board hands a read-only snapshot of a project to a :class:`Summarizer`
and returns whatever text it produces.  Only the interface and an offline
digest ship here; model-backed implementations plug in through the same
``summarize`` and ``answer`` calls.
"""

from __future__ import annotations

import abc
import re
from typing import Any

from .model import Project, Task

_WORD = re.compile(r"[a-z0-9]+")
_STOPWORDS = frozenset({"the", "and", "for", "are", "what", "which", "who", "with", "about", "task", "tasks", "there"})


def project_snapshot(project: Project, columns: dict[str, list[Task]]) -> dict[str, Any]:
    """Build the summarizer input: the project plus its tasks in board order."""
    titles = {c.id: c.title for c in project.columns}
    return {
        "project": {"id": project.id, "name": project.name, "description": project.description},
        "columns": [
            {
                "id": column_id,
                "title": titles.get(column_id, column_id),
                "tasks": [
                    {"id": t.id, "title": t.title, "description": t.description, "order": t.order}
                    for t in tasks
                ],
            }
            for column_id, tasks in columns.items()
        ],
    }


class Summarizer(abc.ABC):
    """Turns a project snapshot into a summary, or answers questions about it."""

    name: str = "base"

    @abc.abstractmethod
    def summarize(self, snapshot: dict[str, Any]) -> str:
        """Return a summary of *snapshot* (as built by :func:`project_snapshot`)."""
        ...

    @abc.abstractmethod
    def answer(self, snapshot: dict[str, Any], question: str) -> str:
        """Answer *question* using only what *snapshot* contains."""
        ...


class ColumnDigestSummarizer(Summarizer):
    """Offline summarizer: task counts per column and the next items up."""

    name = "digest"

    def __init__(self, preview: int = 3) -> None:
        self.preview = max(0, preview)

    def summarize(self, snapshot: dict[str, Any]) -> str:
        project = snapshot.get("project") or {}
        columns = list(snapshot.get("columns") or [])
        total = sum(len(c.get("tasks") or []) for c in columns)
        lines = [f"{project.get('name') or 'Project'}: {total} task(s)"]
        if not columns:
            return lines[0]

        done = len(columns[-1].get("tasks") or []) if len(columns) > 1 else 0
        if total and len(columns) > 1:
            lines.append(f"Progress: {done}/{total} in '{columns[-1].get('title')}' ({done * 100 // total}%)")

        for column in columns:
            tasks = list(column.get("tasks") or [])
            lines.append(f"- {column.get('title')}: {len(tasks)}")
            for task in tasks[: self.preview]:
                lines.append(f"    {task.get('order')}. {task.get('title')}")
            if len(tasks) > self.preview:
                lines.append(f"    ... {len(tasks) - self.preview} more")
        return "\n".join(lines)

    def answer(self, snapshot: dict[str, Any], question: str) -> str:
        """Keyword answers: a named column, a count, or tasks whose titles match."""
        project = snapshot.get("project") or {}
        name = project.get("name") or "Project"
        columns = list(snapshot.get("columns") or [])
        text = question.lower()
        words = set(_WORD.findall(text))
        total = sum(len(c.get("tasks") or []) for c in columns)

        for column in columns:
            labels = {str(column.get("id") or "").lower(), str(column.get("title") or "").lower()}
            if any(label and label in text for label in labels):
                titles = [t.get("title") for t in column.get("tasks") or []]
                listing = ", ".join(titles) if titles else "nothing"
                return f"'{column.get('title')}' has {len(titles)} task(s): {listing}"

        if {"how", "many"} <= words or "count" in words:
            return f"{name} has {total} task(s) across {len(columns)} column(s)."

        keywords = {w for w in words if len(w) > 2 and w not in _STOPWORDS}
        matches = []
        for column in columns:
            for task in column.get("tasks") or []:
                if keywords & set(_WORD.findall(str(task.get("title") or "").lower())):
                    matches.append(f"'{task.get('title')}' in '{column.get('title')}' (position {task.get('order')})")
        if matches:
            return "Matching tasks: " + "; ".join(matches)
        return f"No tasks in {name} match the question; {total} task(s) on the board."
