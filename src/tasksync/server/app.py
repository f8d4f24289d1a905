"""FastAPI application for the tasksync server.

This module creates and configures the FastAPI application with:
- Batch sync endpoint resolving client operations with last-write-wins
- Health endpoint used by clients as a connectivity probe
- Read-only task record endpoints

Usage:
    uvicorn tasksync.server.app:app_factory --factory --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from tasksync import __version__
from tasksync.server.api.router import router as api_router
from tasksync.server.authority import RemoteAuthority
from tasksync.server.database import Database

# Configuration from environment variables with defaults
DB_PATH = Path(os.environ.get("TASKSYNC_DB_PATH", "tasksync-server.db"))
LOG_PATH = Path(os.environ.get("TASKSYNC_LOG_PATH", "tasksync-server.log"))

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def setup_logging(log_path: Path | None) -> None:
    """Configure logging to output to stdout and, optionally, a file.

    Args:
        log_path: Path to the log file (None for stdout only).
    """
    formatter = logging.Formatter(LOG_FORMAT)

    # Root logger for tasksync
    root_logger = logging.getLogger("tasksync")
    root_logger.setLevel(logging.INFO)

    # Stdout handler
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_path is None:
        return

    # File handler
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # Also capture uvicorn logs to file
    for uvicorn_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(uvicorn_name)
        uvicorn_logger.addHandler(file_handler)


def create_app(db: Database) -> FastAPI:
    """Create FastAPI application with a custom database.

    This is primarily used for testing with isolated databases.

    Args:
        db: Database instance.

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        logger.info("=" * 60)
        logger.info("tasksync server starting")
        logger.info("=" * 60)
        logger.info("  Database: %s", db.path)
        logger.info("  Records:  %d", db.count_tasks())
        logger.info("=" * 60)

        yield

        logger.info("tasksync server shutting down")

    application = FastAPI(
        title="tasksync server",
        description="Remote authority for offline-first task sync",
        version=__version__,
        lifespan=lifespan,
    )

    application.state.db = db
    application.state.authority = RemoteAuthority(db)

    application.include_router(api_router)

    return application


def app_factory() -> FastAPI:
    """Factory function for uvicorn --factory mode."""
    setup_logging(LOG_PATH)
    return create_app(db=Database(DB_PATH))
