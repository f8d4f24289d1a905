"""FastAPI dependencies for API routes."""

from __future__ import annotations

from fastapi import Request

from tasksync.server.authority import RemoteAuthority
from tasksync.server.database import Database


def get_db(request: Request) -> Database:
    """Get database from app state."""
    db: Database = request.app.state.db
    return db


def get_authority(request: Request) -> RemoteAuthority:
    """Get remote authority from app state."""
    authority: RemoteAuthority = request.app.state.authority
    return authority
