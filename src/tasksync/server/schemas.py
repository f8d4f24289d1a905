"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from tasksync.core.types import format_timestamp
from tasksync.server.models import ServerTask

# === Batch schemas ===


class BatchItem(BaseModel):
    """One queued client operation inside a batch request."""

    id: str | None = None  # Queue entry id on the client
    task_id: str | None = None
    client_id: str | None = None
    operation: str
    data: dict[str, Any] = Field(default_factory=dict)
    created_at: str | None = None
    retry_count: int = 0


class BatchRequest(BaseModel):
    """Request body for /api/batch."""

    items: list[BatchItem] = Field(default_factory=list)
    client_timestamp: str | None = None


class ProcessedItem(BaseModel):
    """Verdict for one batch item."""

    client_id: str | None
    server_id: str | None
    status: str  # success, error
    resolved_data: dict[str, Any] = Field(default_factory=dict)
    operation: str
    conflict: bool = False
    error: str | None = None


class BatchResponse(BaseModel):
    """Response for /api/batch."""

    processed_items: list[ProcessedItem]


# === Task schemas ===


class TaskRecordResponse(BaseModel):
    """Server task record in responses."""

    id: str
    client_id: str
    title: str
    description: str | None
    completed: bool
    is_deleted: bool
    created_at: str
    updated_at: str


# === Health schema ===


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: str


# === Converters ===


def resolved_data(task: ServerTask) -> dict[str, Any]:
    """Get the server's current view of a task for a verdict."""
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "completed": task.completed,
        "is_deleted": task.is_deleted,
        "created_at": format_timestamp(task.created_at),
        "updated_at": format_timestamp(task.updated_at),
    }


def task_to_response(task: ServerTask) -> TaskRecordResponse:
    """Convert ServerTask to response model."""
    return TaskRecordResponse(
        id=task.id,
        client_id=task.client_id,
        title=task.title,
        description=task.description,
        completed=task.completed,
        is_deleted=task.is_deleted,
        created_at=format_timestamp(task.created_at),
        updated_at=format_timestamp(task.updated_at),
    )
