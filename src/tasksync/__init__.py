"""tasksync - offline-first task manager with last-write-wins sync."""

__version__ = "0.1.0"
