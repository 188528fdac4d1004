"""Tests for the summarization collaborator (board/summary.py)."""

from __future__ import annotations

from taskboard.board.model import Project, Task
from taskboard.board.summary import ColumnDigestSummarizer, project_snapshot


def _board() -> tuple[Project, dict[str, list[Task]]]:
    project = Project(id="p1", name="Launch", description="Q3")
    columns = {
        "todo": [Task(id=f"t{i}", project_id="p1", title=f"Todo {i}", order=i) for i in range(5)],
        "inprogress": [],
        "done": [Task(id="d0", project_id="p1", column="done", title="Kickoff", order=0)],
    }
    return project, columns


def test_snapshot_keeps_column_and_task_order() -> None:
    project, columns = _board()
    snap = project_snapshot(project, columns)
    assert snap["project"] == {"id": "p1", "name": "Launch", "description": "Q3"}
    assert [c["title"] for c in snap["columns"]] == ["To Do", "In Progress", "Done"]
    assert [t["order"] for t in snap["columns"][0]["tasks"]] == [0, 1, 2, 3, 4]


def test_digest_reports_progress_and_preview() -> None:
    project, columns = _board()
    text = ColumnDigestSummarizer(preview=2).summarize(project_snapshot(project, columns))
    lines = text.splitlines()
    assert lines[0] == "Launch: 6 task(s)"
    assert "Progress: 1/6 in 'Done' (16%)" in lines
    assert "    0. Todo 0" in lines
    assert "    ... 3 more" in lines
    assert "- In Progress: 0" in lines


def test_digest_of_empty_snapshot() -> None:
    assert ColumnDigestSummarizer().summarize({}) == "Project: 0 task(s)"


class TestDigestAnswers:
    def _snapshot(self) -> dict:
        project, columns = _board()
        columns["inprogress"] = [Task(id="w1", project_id="p1", column="inprogress", title="Write release notes", order=0)]
        return project_snapshot(project, columns)

    def test_names_a_column(self) -> None:
        answer = ColumnDigestSummarizer().answer(self._snapshot(), "What is in progress right now?")
        assert answer == "'In Progress' has 1 task(s): Write release notes"

    def test_counts(self) -> None:
        answer = ColumnDigestSummarizer().answer(self._snapshot(), "How many things are left?")
        assert answer == "Launch has 7 task(s) across 3 column(s)."

    def test_matches_task_titles(self) -> None:
        answer = ColumnDigestSummarizer().answer(self._snapshot(), "Where are the release notes?")
        assert answer == "Matching tasks: 'Write release notes' in 'In Progress' (position 0)"

    def test_no_match(self) -> None:
        answer = ColumnDigestSummarizer().answer(self._snapshot(), "Any budget items?")
        assert answer == "No tasks in Launch match the question; 7 task(s) on the board."
