"""Server commands for the tasksync CLI.

Commands:
- server run: Run the remote authority with uvicorn
- server show: List records stored by a server database
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import click


@click.group()
def server() -> None:
    """Server management commands."""


@server.command("run")
@click.option("--host", default="127.0.0.1", show_default=True, help="Interface to bind.")
@click.option("--port", "-p", type=int, default=8000, show_default=True, help="Port to bind.")
@click.option(
    "--db-path",
    type=click.Path(),
    default=None,
    help="Path to database file (default: TASKSYNC_DB_PATH or ./tasksync-server.db).",
)
def run_cmd(host: str, port: int, db_path: str | None) -> None:
    """Run the tasksync server."""
    import uvicorn

    if db_path:
        os.environ["TASKSYNC_DB_PATH"] = db_path

    uvicorn.run(
        "tasksync.server.app:app_factory",
        factory=True,
        host=host,
        port=port,
    )


@server.command("show")
@click.option(
    "--db-path",
    type=click.Path(),
    default=None,
    help="Path to database file (default: TASKSYNC_DB_PATH or ./tasksync-server.db).",
)
@click.option("--include-deleted", is_flag=True, help="Include tombstones.")
def show_cmd(db_path: str | None, include_deleted: bool) -> None:
    """List the task records held by a server database."""
    from tasksync.core.types import format_timestamp
    from tasksync.server.database import Database

    resolved_db_path = Path(db_path or os.environ.get("TASKSYNC_DB_PATH", "tasksync-server.db"))
    if not resolved_db_path.exists():
        click.echo(f"Error: Database not found: {resolved_db_path}", err=True)
        sys.exit(1)

    db = Database(resolved_db_path)
    try:
        tasks = db.list_tasks(include_deleted=include_deleted)
    finally:
        db.close()

    if not tasks:
        click.echo("No records.")
        return
    for task in tasks:
        mark = "x" if task.completed else " "
        line = f"{task.id}  {task.client_id}  [{mark}] {task.title}  {format_timestamp(task.updated_at)}"
        if task.is_deleted:
            line += "  deleted"
        click.echo(line)
