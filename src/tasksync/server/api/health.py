"""Health check API route."""

from __future__ import annotations

from fastapi import APIRouter

from tasksync.core.types import format_timestamp, utc_now
from tasksync.server.schemas import HealthResponse

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Check server health."""
    return HealthResponse(status="ok", timestamp=format_timestamp(utc_now()))
