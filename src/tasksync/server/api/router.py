"""Main API router that includes all sub-routers."""

from __future__ import annotations

from fastapi import APIRouter

from tasksync.server.api import batch, health, tasks

router = APIRouter()

# Include all API routers
router.include_router(health.router)
router.include_router(batch.router)
router.include_router(tasks.router)
