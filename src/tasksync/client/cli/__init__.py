"""Command-line interface for tasksync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- add, list, show, edit, delete: Manage local tasks
- sync: Reconcile queued operations with the server
- status: Show sync status
- queue: Show queued operations
- retry: Re-enable operations that exhausted their retries
- configure: Save sync settings
- server: Server commands
"""

from __future__ import annotations

import logging
import sys

import click

from tasksync import __version__
from tasksync.client.cli.config import (
    get_config_dir,
    get_config_file,
    get_sync_config,
    load_config,
    open_database,
    save_config,
)
from tasksync.client.cli.server import server
from tasksync.client.cli.sync import queue, retry, status, sync
from tasksync.client.cli.tasks import add, delete, edit, list_cmd, show
from tasksync.core.config import SyncConfig

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Log sync activity to stderr.")
def cli(verbose: bool) -> None:
    """tasksync - offline-first tasks with last-write-wins sync."""
    if verbose:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, stream=sys.stderr)


@cli.command()
@click.option("--server-url", default=None, help="Base URL of the tasksync server.")
@click.option("--batch-size", type=int, default=None, help="Operations sent per sync.")
@click.option("--max-retries", type=int, default=None, help="Failed syncs before giving up.")
def configure(server_url: str | None, batch_size: int | None, max_retries: int | None) -> None:
    """Save sync settings (environment variables still take precedence)."""
    config = load_config()
    if server_url is not None:
        config["server_url"] = server_url
    if batch_size is not None:
        config["batch_size"] = batch_size
    if max_retries is not None:
        config["max_retries"] = max_retries

    try:
        effective = SyncConfig.from_env(environ={}, defaults=config)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    save_config(config)
    for key, value in effective.to_dict().items():
        click.echo(f"{key} = {value}")


# Task commands
cli.add_command(add)
cli.add_command(list_cmd)
cli.add_command(show)
cli.add_command(edit)
cli.add_command(delete)

# Sync commands
cli.add_command(sync)
cli.add_command(status)
cli.add_command(queue)
cli.add_command(retry)

# Server commands
cli.add_command(server)

__all__ = [
    "cli",
    "get_config_dir",
    "get_config_file",
    "get_sync_config",
    "load_config",
    "open_database",
    "save_config",
]
