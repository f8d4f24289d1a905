"""Task record API routes (read-only inspection of server state)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from tasksync.server.api.deps import get_db
from tasksync.server.database import Database
from tasksync.server.schemas import TaskRecordResponse, task_to_response

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@router.get("", response_model=list[TaskRecordResponse])
def list_tasks(
    include_deleted: bool = Query(default=False, description="Include tombstones."),
    db: Database = Depends(get_db),
) -> list[TaskRecordResponse]:
    """List server task records."""
    return [task_to_response(t) for t in db.list_tasks(include_deleted=include_deleted)]


@router.get("/{client_id}", response_model=TaskRecordResponse)
def get_task(
    client_id: str,
    db: Database = Depends(get_db),
) -> TaskRecordResponse:
    """Get the record of a client task, tombstones included."""
    task = db.get_task_by_client_id(client_id)
    if task is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Task not found",
        )
    return task_to_response(task)
