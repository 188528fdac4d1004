"""FastAPI application for the task board.

Routes are grouped into a projects router and a tasks router, both mounted
by :func:`create_app`.  Every :class:`BoardError` raised by the engine is
answered with the ``{"success": false, "error": {...}}`` envelope and the
error's own HTTP status.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from .. import __version__
from ..board.engine import BoardEngine
from ..board.errors import BoardError, TaskNotFound
from ..board.summary import ColumnDigestSummarizer, Summarizer, project_snapshot
from ..config import get_move_config, load_board_config, resolve_state_dir
from .models import (
    CreateProjectRequest,
    CreateTaskRequest,
    MoveRequestBody,
    QuestionRequest,
    UpdateProjectRequest,
    UpdateTaskRequest,
    failure,
    ok,
)


def _tasks_payload(columns: dict[str, list[Any]]) -> dict[str, list[dict[str, Any]]]:
    return {column_id: [t.to_dict() for t in tasks] for column_id, tasks in columns.items()}


# ---------------------------------------------------------------------------
# Router factories
# ---------------------------------------------------------------------------

def create_project_router(get_engine: Callable[[], BoardEngine], get_summarizer: Callable[[], Summarizer]) -> APIRouter:
    """Create the ``/api/projects`` router.

    Parameters
    ----------
    get_engine:
        Callable returning the :class:`BoardEngine` for the app's state dir.
    get_summarizer:
        Callable returning the summarization and question-answering collaborator.
    """
    router = APIRouter(prefix="/api/projects", tags=["projects"])

    @router.get("")
    async def list_projects() -> dict[str, Any]:
        projects = get_engine().list_projects()
        return ok([p.to_dict() for p in projects], count=len(projects))

    @router.post("", status_code=201)
    async def create_project(body: CreateProjectRequest) -> dict[str, Any]:
        columns = [c.model_dump(exclude_none=True) for c in body.columns] if body.columns else None
        project = get_engine().create_project(body.name, body.description, columns)
        return ok(project.to_dict(), message="Project created successfully")

    @router.get("/{project_id}")
    async def get_project(project_id: str) -> dict[str, Any]:
        return ok(get_engine().get_project(project_id).to_dict())

    @router.put("/{project_id}")
    async def update_project(project_id: str, body: UpdateProjectRequest) -> dict[str, Any]:
        project = get_engine().update_project(project_id, body.model_dump(exclude_none=True))
        return ok(project.to_dict(), message="Project updated successfully")

    @router.delete("/{project_id}")
    async def delete_project(project_id: str) -> dict[str, Any]:
        removed = get_engine().delete_project(project_id)
        return ok({"id": project_id, "deleted_tasks": removed}, message="Project and associated tasks deleted successfully")

    @router.get("/{project_id}/tasks")
    async def list_tasks(project_id: str, column: Optional[str] = Query(None)) -> dict[str, Any]:
        tasks = get_engine().list_tasks(project_id, column=column)
        return ok([t.to_dict() for t in tasks], count=len(tasks))

    @router.post("/{project_id}/tasks", status_code=201)
    async def create_task(project_id: str, body: CreateTaskRequest) -> dict[str, Any]:
        task = get_engine().create_task(project_id, body.title, body.description, column=body.column)
        return ok(task.to_dict(), message="Task created successfully")

    @router.get("/{project_id}/board")
    async def get_board(project_id: str) -> dict[str, Any]:
        engine = get_engine()
        project = engine.get_project(project_id)
        columns = engine.get_board(project_id)
        return ok({"project": project.to_dict(), "columns": _tasks_payload(columns)})

    @router.patch("/{project_id}/tasks/reorder")
    async def reorder_task(project_id: str, body: MoveRequestBody) -> dict[str, Any]:
        result = get_engine().move_task(project_id, body.to_request())
        message = "Task reordered successfully" if result.changed else "Task already at requested position"
        return ok(result.to_dict(), message=message)

    @router.post("/{project_id}/summary")
    async def summarize_project(project_id: str) -> dict[str, Any]:
        engine = get_engine()
        project = engine.get_project(project_id)
        snapshot = project_snapshot(project, engine.get_board(project_id))
        summarizer = get_summarizer()
        summary = summarizer.summarize(snapshot)
        logger.info("Summarized project {} with {}", project_id, summarizer.name)
        return ok({"project_id": project_id, "summary": summary, "summarizer": summarizer.name})

    @router.post("/{project_id}/question")
    async def ask_question(project_id: str, body: QuestionRequest) -> dict[str, Any]:
        engine = get_engine()
        project = engine.get_project(project_id)
        columns = engine.get_board(project_id)
        if body.task_ids:
            wanted = set(body.task_ids)
            for task_id in wanted:
                if engine.get_task(task_id).project_id != project_id:
                    raise TaskNotFound(task_id, project_id)
            columns = {column_id: [t for t in tasks if t.id in wanted] for column_id, tasks in columns.items()}
        summarizer = get_summarizer()
        answer = summarizer.answer(project_snapshot(project, columns), body.question)
        logger.info("Answered question on project {} with {}", project_id, summarizer.name)
        return ok({"project_id": project_id, "question": body.question, "answer": answer, "summarizer": summarizer.name})

    return router


def create_task_router(get_engine: Callable[[], BoardEngine]) -> APIRouter:
    router = APIRouter(prefix="/api/tasks", tags=["tasks"])

    @router.get("/{task_id}")
    async def get_task(task_id: str) -> dict[str, Any]:
        return ok(get_engine().get_task(task_id).to_dict())

    @router.put("/{task_id}")
    async def update_task(task_id: str, body: UpdateTaskRequest) -> dict[str, Any]:
        task = get_engine().update_task(task_id, body.model_dump(exclude_none=True))
        return ok(task.to_dict(), message="Task updated successfully")

    @router.delete("/{task_id}")
    async def delete_task(task_id: str) -> dict[str, Any]:
        task = get_engine().delete_task(task_id)
        return ok({"id": task.id}, message="Task deleted successfully")

    return router


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(
    state_dir: Optional[Path] = None,
    enable_cors: bool = True,
    summarizer: Optional[Summarizer] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        state_dir: Board state directory; resolved from the environment or
            the working directory when omitted.
        enable_cors: Whether to enable CORS.
        summarizer: Summarization collaborator; the offline digest by default.

    Returns:
        Configured FastAPI app.
    """
    app = FastAPI(
        title="Task Board",
        description="Kanban board with ordered columns and drag-and-drop moves",
        version=__version__,
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    resolved = resolve_state_dir(state_dir)
    config, err = load_board_config(resolved)
    if err:
        logger.warning("Ignoring unreadable board config in {}: {}", resolved, err)
    app.state.state_dir = resolved
    move_cfg = get_move_config(config)
    app.state.engine = BoardEngine(resolved, max_retries=move_cfg["max_retries"])
    app.state.summarizer = summarizer or ColumnDigestSummarizer()

    def _get_engine() -> BoardEngine:
        return app.state.engine

    def _get_summarizer() -> Summarizer:
        return app.state.summarizer

    @app.exception_handler(BoardError)
    async def _board_error(request: Request, exc: BoardError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("{} {} failed: {}", request.method, request.url.path, exc.message)
        else:
            logger.debug("{} {} rejected ({}): {}", request.method, request.url.path, exc.code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=failure(exc.code, exc.message, exc.details))

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = []
        for item in exc.errors():
            where = ".".join(str(part) for part in item.get("loc", ()) if part != "body")
            details.append(f"{where}: {item.get('msg')}" if where else str(item.get("msg")))
        return JSONResponse(status_code=400, content=failure("VALIDATION_ERROR", "Validation Error", details))

    @app.get("/api/health")
    async def health() -> dict[str, Any]:
        # Clients read the move timeout from here.
        return {
            "success": True,
            "status": "ok",
            "version": __version__,
            "move_timeout_seconds": move_cfg["timeout_seconds"],
        }

    app.include_router(create_project_router(_get_engine, _get_summarizer))
    app.include_router(create_task_router(_get_engine))

    return app
