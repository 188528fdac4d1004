"""Pydantic request / response models for the board API."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..board.model import MoveRequest


class ColumnSpec(BaseModel):
    id: str
    title: Optional[str] = None
    order: Optional[int] = None


class CreateProjectRequest(BaseModel):
    name: str
    description: str = ""
    columns: Optional[list[ColumnSpec]] = None


class UpdateProjectRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class CreateTaskRequest(BaseModel):
    title: str
    description: str = ""
    column: Optional[str] = None


class UpdateTaskRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    column: Optional[str] = None


class MoveRequestBody(BaseModel):
    """Body of the reorder endpoint; camelCase and snake_case are both accepted."""

    model_config = ConfigDict(populate_by_name=True)

    task_id: str = Field(alias="taskId", min_length=1)
    source_column: str = Field(alias="sourceColumn", min_length=1)
    destination_column: str = Field(alias="destinationColumn", min_length=1)
    destination_index: int = Field(alias="destinationIndex")

    def to_request(self) -> MoveRequest:
        return MoveRequest(
            task_id=self.task_id,
            source_column=self.source_column,
            destination_column=self.destination_column,
            destination_index=self.destination_index,
        )


class QuestionRequest(BaseModel):
    """Body of the question endpoint; ``taskIds`` narrows the context to those tasks."""

    model_config = ConfigDict(populate_by_name=True)

    question: str = Field(max_length=500)
    task_ids: Optional[list[str]] = Field(default=None, alias="taskIds")

    @field_validator("question")
    @classmethod
    def _strip_question(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Question must be between 1 and 500 characters")
        return value


def ok(data: Any = None, *, message: Optional[str] = None, count: Optional[int] = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"success": True, "data": data}
    if count is not None:
        payload["count"] = count
    if message:
        payload["message"] = message
    return payload


def failure(code: str, message: str, details: Optional[list[str]] = None) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return {"success": False, "error": error}
