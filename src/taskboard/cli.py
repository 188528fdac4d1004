from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Optional

from rich.console import Console
from rich.table import Table

from .board.engine import BoardEngine
from .board.errors import BoardError
from .board.model import MoveRequest
from .config import get_logging_config, get_move_config, get_server_config, load_board_config, resolve_state_dir
from .logging_utils import configure_logging


def _engine(args: argparse.Namespace) -> BoardEngine:
    state_dir = resolve_state_dir(args.state_dir)
    config, _ = load_board_config(state_dir)
    return BoardEngine(state_dir, max_retries=get_move_config(config)["max_retries"])


def _emit(payload: Any) -> int:
    sys.stdout.write(json.dumps(payload, indent=2) + "\n")
    return 0


def _project_create(args: argparse.Namespace) -> int:
    project = _engine(args).create_project(args.name, args.description)
    return _emit(project.to_dict())


def _project_list(args: argparse.Namespace) -> int:
    projects = _engine(args).list_projects()
    return _emit({"projects": [p.to_dict() for p in projects]})


def _project_delete(args: argparse.Namespace) -> int:
    removed = _engine(args).delete_project(args.project_id)
    return _emit({"deleted": args.project_id, "deleted_tasks": removed})


def _task_create(args: argparse.Namespace) -> int:
    task = _engine(args).create_task(args.project_id, args.title, args.description, column=args.column)
    return _emit(task.to_dict())


def _task_list(args: argparse.Namespace) -> int:
    tasks = _engine(args).list_tasks(args.project_id, column=args.column)
    return _emit({"tasks": [t.to_dict() for t in tasks]})


def _task_delete(args: argparse.Namespace) -> int:
    task = _engine(args).delete_task(args.task_id)
    return _emit({"deleted": task.id})


def _board_show(args: argparse.Namespace) -> int:
    engine = _engine(args)
    project = engine.get_project(args.project_id)
    columns = engine.get_board(args.project_id)
    titles = {c.id: c.title for c in project.columns}

    table = Table(title=project.name)
    for column_id, tasks in columns.items():
        table.add_column(f"{titles.get(column_id, column_id)} ({len(tasks)})")
    depth = max((len(tasks) for tasks in columns.values()), default=0)
    for row in range(depth):
        cells = []
        for tasks in columns.values():
            cells.append(f"{tasks[row].order}. {tasks[row].title}" if row < len(tasks) else "")
        table.add_row(*cells)
    Console().print(table)
    return 0


def _move(args: argparse.Namespace) -> int:
    request = MoveRequest(
        task_id=args.task_id,
        source_column=args.source,
        destination_column=args.destination,
        destination_index=args.index,
    )
    result = _engine(args).move_task(args.project_id, request)
    return _emit(result.to_dict())


def _server(args: argparse.Namespace) -> int:
    try:
        import uvicorn
    except ImportError:
        sys.stderr.write("Install server extras: pip install 'taskboard[server]'\n")
        return 1

    from .server import create_app

    state_dir = resolve_state_dir(args.state_dir)
    config, _ = load_board_config(state_dir)
    server_cfg = get_server_config(config)
    app = create_app(state_dir=state_dir, enable_cors=server_cfg["cors"])
    uvicorn.run(app, host=args.host or server_cfg["host"], port=args.port or server_cfg["port"])
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Task board CLI")
    parser.add_argument("--state-dir", default=None, help="Board state directory (default: $TASKBOARD_STATE_DIR or ./.taskboard)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    server = subparsers.add_parser("server", help="Start the web server")
    server.add_argument("--host", default=None)
    server.add_argument("--port", default=None, type=int)
    server.set_defaults(func=_server)

    project = subparsers.add_parser("project", help="Manage projects")
    project_sub = project.add_subparsers(dest="project_cmd", required=True)
    pcreate = project_sub.add_parser("create", help="Create a project with the default columns")
    pcreate.add_argument("name")
    pcreate.add_argument("--description", default="")
    pcreate.set_defaults(func=_project_create)
    plist = project_sub.add_parser("list", help="List projects")
    plist.set_defaults(func=_project_list)
    pdelete = project_sub.add_parser("delete", help="Delete a project and its tasks")
    pdelete.add_argument("project_id")
    pdelete.set_defaults(func=_project_delete)

    task = subparsers.add_parser("task", help="Manage tasks")
    task_sub = task.add_subparsers(dest="task_cmd", required=True)
    tcreate = task_sub.add_parser("create", help="Append a task to a column")
    tcreate.add_argument("project_id")
    tcreate.add_argument("title")
    tcreate.add_argument("--description", default="")
    tcreate.add_argument("--column", default=None)
    tcreate.set_defaults(func=_task_create)
    tlist = task_sub.add_parser("list", help="List tasks in board order")
    tlist.add_argument("project_id")
    tlist.add_argument("--column", default=None)
    tlist.set_defaults(func=_task_list)
    tdelete = task_sub.add_parser("delete", help="Delete a task")
    tdelete.add_argument("task_id")
    tdelete.set_defaults(func=_task_delete)

    board = subparsers.add_parser("board", help="Inspect boards")
    board_sub = board.add_subparsers(dest="board_cmd", required=True)
    bshow = board_sub.add_parser("show", help="Render a project's board")
    bshow.add_argument("project_id")
    bshow.set_defaults(func=_board_show)

    move = subparsers.add_parser("move", help="Move a task to a column position")
    move.add_argument("project_id")
    move.add_argument("task_id")
    move.add_argument("--source", required=True, help="Column the task is in now")
    move.add_argument("--destination", required=True)
    move.add_argument("--index", required=True, type=int)
    move.set_defaults(func=_move)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    state_dir = resolve_state_dir(args.state_dir)
    config, err = load_board_config(state_dir)
    configure_logging(get_logging_config(config)["level"])
    if err:
        sys.stderr.write(f"Ignoring board config: {err}\n")
    handler = getattr(args, "func", None)
    if handler is None:
        parser.print_help()
        return 1
    try:
        return int(handler(args) or 0)
    except BoardError as exc:
        sys.stderr.write(json.dumps({"success": False, "error": exc.to_dict()}) + "\n")
        return 1
