"""Sync commands for the tasksync CLI.

Commands:
- sync: Reconcile queued operations with the server
- status: Show sync status
- queue: Show queued operations
- retry: Re-enable operations that exhausted their retries
"""

from __future__ import annotations

import json
import sys

import click

from tasksync.client.api import HTTPClient
from tasksync.client.cli.config import get_sync_config, open_database
from tasksync.client.queue import SyncQueue
from tasksync.client.reconciler import ConflictEvent, Reconciler
from tasksync.core.config import SyncConfig


def _load_sync_config() -> SyncConfig:
    try:
        return get_sync_config()
    except ValueError as e:
        click.echo(f"Error: Invalid sync settings: {e}", err=True)
        sys.exit(1)


def _print_conflict(event: ConflictEvent) -> None:
    click.echo(f"Conflict on {event.task_id}: {event.message}")


@click.command()
@click.option("--force", "-f", is_flag=True, help="Skip the connectivity check.")
@click.option("--json", "as_json", is_flag=True, help="Output the result as JSON.")
def sync(force: bool, as_json: bool) -> None:
    """Send queued operations to the server and apply its verdicts."""
    config = _load_sync_config()

    with open_database() as db, HTTPClient(config) as client:
        reconciler = Reconciler(db, client, config, on_conflict=_print_conflict)

        if not force and not reconciler.check_connectivity():
            click.echo(f"Server {config.server_url} is unreachable, nothing sent.", err=True)
            sys.exit(1)

        result = reconciler.reconcile()

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        click.echo(f"Synced: {result.synced_items}, failed: {result.failed_items}")
        for error in result.errors:
            target = error.task_id or "batch"
            click.echo(f"  {target} ({error.operation}): {error.error}", err=True)

    if not result.success:
        sys.exit(1)


@click.command()
@click.option("--offline", is_flag=True, help="Do not probe the server.")
@click.option("--json", "as_json", is_flag=True, help="Output JSON.")
def status(offline: bool, as_json: bool) -> None:
    """Show pending operations and the last sync time."""
    config = _load_sync_config()

    with open_database() as db, HTTPClient(config) as client:
        report = Reconciler(db, client, config).get_status(check_online=not offline)

    data = report.to_dict()
    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(f"Server:       {config.server_url}")
    if not offline:
        click.echo(f"Online:       {'yes' if report.is_online else 'no'}")
    click.echo(f"Pending:      {report.pending_sync_count}")
    click.echo(f"Last sync:    {data['last_sync_timestamp'] or 'never'}")


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output JSON.")
def queue(as_json: bool) -> None:
    """Show queued operations, oldest first."""
    config = _load_sync_config()

    with open_database() as db:
        entries = SyncQueue(db).list_entries()

    if as_json:
        click.echo(json.dumps([e.to_dict() for e in entries], indent=2))
        return
    if not entries:
        click.echo("Queue is empty.")
        return
    for entry in entries:
        line = f"{entry.task_id}  {entry.operation.value:<6}  retries={entry.retry_count}"
        if entry.retry_count >= config.max_retries:
            line += "  (gave up)"
        if entry.error_message:
            line += f"  last error: {entry.error_message}"
        click.echo(line)


@click.command()
def retry() -> None:
    """Retry operations that exhausted their retries on the next sync."""
    config = _load_sync_config()

    with open_database() as db, HTTPClient(config) as client:
        count = Reconciler(db, client, config).retry_failed()

    click.echo(f"Re-queued {count} task(s).")
