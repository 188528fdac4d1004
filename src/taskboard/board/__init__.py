"""Board domain: model, ordering, persistence and moves."""

from .coordinator import MoveCoordinator, MoveResult
from .engine import BoardEngine
from .errors import (
    BoardError,
    InvalidColumn,
    InvalidIndex,
    InvalidRequest,
    NotFoundError,
    ProjectNotFound,
    StaleMove,
    StorageFailure,
    TaskNotFound,
    ValidationError,
    VersionConflict,
)
from .model import Column, MoveRequest, OrderAssignment, Project, Task
from .planner import MovePlan, apply_plan, plan_move
from .store import BoardStore

__all__ = [
    "BoardEngine",
    "BoardError",
    "BoardStore",
    "Column",
    "InvalidColumn",
    "InvalidIndex",
    "InvalidRequest",
    "MoveCoordinator",
    "MovePlan",
    "MoveRequest",
    "MoveResult",
    "NotFoundError",
    "OrderAssignment",
    "Project",
    "ProjectNotFound",
    "StaleMove",
    "StorageFailure",
    "Task",
    "TaskNotFound",
    "ValidationError",
    "VersionConflict",
    "apply_plan",
    "plan_move",
]
