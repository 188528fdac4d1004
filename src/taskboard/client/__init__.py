"""Client side of the board: HTTP client and optimistic move state."""

from .api_client import BoardApiClient, MoveFailure, MoveResponse
from .state_machine import ColumnSnapshot, MoveInProgress, MoveState, OptimisticBoard

__all__ = [
    "BoardApiClient",
    "ColumnSnapshot",
    "MoveFailure",
    "MoveInProgress",
    "MoveResponse",
    "MoveState",
    "OptimisticBoard",
]
