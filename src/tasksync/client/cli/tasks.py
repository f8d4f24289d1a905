"""Task commands for the tasksync CLI.

Commands:
- add: Create a task
- list: List tasks
- show: Show one task
- edit: Change a task
- delete: Soft-delete a task
"""

from __future__ import annotations

import json
import sys

import click

from tasksync.client.cli.config import open_database
from tasksync.client.tasks import NotFoundError, Task, TaskStore, ValidationError


def format_task(task: Task) -> str:
    """Format a task as a single line."""
    mark = "x" if task.completed else " "
    line = f"{task.id}  [{mark}] {task.title}  ({task.sync_status.value})"
    if task.is_deleted:
        line += "  deleted"
    return line


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@click.command()
@click.argument("title")
@click.option("--description", "-d", default=None, help="Task description.")
def add(title: str, description: str | None) -> None:
    """Create a task."""
    with open_database() as db:
        try:
            task = TaskStore(db).create_task(title, description=description)
        except ValidationError as e:
            _fail(str(e))
            return
    click.echo(f"Created task {task.id}")


@click.command("list")
@click.option(
    "--needing-sync",
    is_flag=True,
    help="Only list tasks that are pending or in error, deleted ones included.",
)
@click.option("--json", "as_json", is_flag=True, help="Output JSON.")
def list_cmd(needing_sync: bool, as_json: bool) -> None:
    """List tasks that are not deleted."""
    with open_database() as db:
        store = TaskStore(db)
        tasks = store.list_tasks_needing_sync() if needing_sync else store.list_tasks()

    if as_json:
        click.echo(json.dumps([t.to_dict() for t in tasks], indent=2))
        return
    if not tasks:
        click.echo("No tasks.")
        return
    for task in tasks:
        click.echo(format_task(task))


@click.command()
@click.argument("task_id")
def show(task_id: str) -> None:
    """Show one task, deleted or not."""
    with open_database() as db:
        task = TaskStore(db).get_task(task_id)
    if task is None:
        _fail(f"Task not found: {task_id}")
        return
    click.echo(json.dumps(task.to_dict(), indent=2))


@click.command()
@click.argument("task_id")
@click.option("--title", "-t", default=None, help="New title.")
@click.option("--description", "-d", default=None, help="New description.")
@click.option("--clear-description", is_flag=True, help="Remove the description.")
@click.option("--completed/--not-completed", default=None, help="Set completion.")
def edit(
    task_id: str,
    title: str | None,
    description: str | None,
    clear_description: bool,
    completed: bool | None,
) -> None:
    """Change a task."""
    changes: dict[str, object] = {}
    if title is not None:
        changes["title"] = title
    if clear_description:
        changes["description"] = None
    elif description is not None:
        changes["description"] = description
    if completed is not None:
        changes["completed"] = completed

    with open_database() as db:
        try:
            task = TaskStore(db).update_task(task_id, **changes)  # type: ignore[arg-type]
        except (NotFoundError, ValidationError) as e:
            _fail(str(e))
            return
    click.echo(format_task(task))


@click.command()
@click.argument("task_id")
def delete(task_id: str) -> None:
    """Delete a task (kept locally until synced)."""
    with open_database() as db:
        try:
            TaskStore(db).delete_task(task_id)
        except NotFoundError as e:
            _fail(str(e))
            return
    click.echo(f"Deleted task {task_id}")
