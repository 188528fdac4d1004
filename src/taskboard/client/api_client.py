"""Async HTTP client for the board API.

Every call either returns a typed result or raises :class:`MoveFailure`;
transport errors and error envelopes are folded into the same exception so
callers only ever handle one failure type.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
from loguru import logger

from ..board.model import MoveRequest, Task
from ..constants import DEFAULT_MOVE_TIMEOUT_SECONDS


class MoveFailure(Exception):
    """A request the server rejected or that never got an answer."""

    def __init__(self, code: str, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
        self.status_code = status_code


@dataclass
class MoveResponse:
    """Authoritative result of a move: the task and every column it touched."""

    task: Task
    columns: dict[str, list[Task]] = field(default_factory=dict)
    changed: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MoveResponse":
        columns = {
            str(column_id): [Task.from_dict(t) for t in tasks or []]
            for column_id, tasks in (data.get("columns") or {}).items()
        }
        return cls(task=Task.from_dict(data.get("task") or {}), columns=columns, changed=int(data.get("changed") or 0))


class BoardApiClient:
    """Client for the board's HTTP interface.

    Args:
        base_url: Server root, e.g. ``http://127.0.0.1:8000``.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (``ASGITransport`` in tests).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_MOVE_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def _request(self, method: str, path: str, json_data: Optional[dict[str, Any]] = None) -> Any:
        try:
            response = await self.client.request(method, path, json=json_data)
        except httpx.TimeoutException as exc:
            logger.warning("{} {} timed out: {}", method, path, exc)
            raise MoveFailure("TIMEOUT", f"No response from server within {self.timeout}s") from exc
        except httpx.RequestError as exc:
            logger.warning("{} {} failed: {}", method, path, exc)
            raise MoveFailure("NETWORK_ERROR", str(exc) or exc.__class__.__name__) from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}
        if response.status_code >= 400 or not payload.get("success", False):
            error = payload.get("error")
            error = error if isinstance(error, dict) else {}
            raise MoveFailure(
                str(error.get("code") or f"HTTP_{response.status_code}"),
                str(error.get("message") or response.reason_phrase or "Request failed"),
                status_code=response.status_code,
            )
        return payload.get("data")

    async def move_task(self, project_id: str, request: MoveRequest) -> MoveResponse:
        """Submit a move to ``PATCH /api/projects/{id}/tasks/reorder``."""
        body = {
            "taskId": request.task_id,
            "sourceColumn": request.source_column,
            "destinationColumn": request.destination_column,
            "destinationIndex": request.destination_index,
        }
        data = await self._request("PATCH", f"/api/projects/{project_id}/tasks/reorder", body)
        return MoveResponse.from_dict(data or {})

    async def fetch_board(self, project_id: str) -> dict[str, list[Task]]:
        """Ordered task lists of every column of a project."""
        data = await self._request("GET", f"/api/projects/{project_id}/board")
        columns = (data or {}).get("columns") or {}
        return {str(column_id): [Task.from_dict(t) for t in tasks or []] for column_id, tasks in columns.items()}

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "BoardApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
