"""Shared configuration classes for tasksync.

The sync configuration is an explicit value handed to the reconciler and the
HTTP transport at construction time.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any

DEFAULT_SERVER_URL = "http://localhost:8000"
DEFAULT_BATCH_SIZE = 50
DEFAULT_MAX_RETRIES = 3
DEFAULT_TIMEOUT = 5.0
DEFAULT_PROBE_TIMEOUT = 2.0

# Environment variable -> SyncConfig field
ENV_VARS = {
    "TASKSYNC_SERVER_URL": "server_url",
    "TASKSYNC_BATCH_SIZE": "batch_size",
    "TASKSYNC_MAX_RETRIES": "max_retries",
    "TASKSYNC_TIMEOUT": "timeout",
    "TASKSYNC_PROBE_TIMEOUT": "probe_timeout",
}


@dataclass
class SyncConfig:
    """Configuration for reconciling with a tasksync server.

    Attributes:
        server_url: Base URL of the remote authority (e.g., "http://localhost:8000").
        batch_size: Maximum number of queue entries sent per reconciliation.
        max_retries: Failed batch deliveries after which a task is marked as error.
        timeout: Timeout in seconds for the batch request.
        probe_timeout: Timeout in seconds for the liveness probe.
    """

    server_url: str = DEFAULT_SERVER_URL
    batch_size: int = DEFAULT_BATCH_SIZE
    max_retries: int = DEFAULT_MAX_RETRIES
    timeout: float = DEFAULT_TIMEOUT
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT

    def __post_init__(self) -> None:
        """Normalize server URL and validate limits."""
        self.server_url = self.server_url.rstrip("/")
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {self.batch_size}")
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {self.max_retries}")
        if self.timeout <= 0 or self.probe_timeout <= 0:
            raise ValueError("timeouts must be positive")

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        defaults: Mapping[str, Any] | None = None,
    ) -> SyncConfig:
        """Build a config from environment variables.

        Args:
            environ: Environment mapping (defaults to ``os.environ``).
            defaults: Values used when a variable is not set, typically
                loaded from the CLI config file.

        Returns:
            SyncConfig instance.

        Raises:
            ValueError: If a numeric variable cannot be parsed.
        """
        if environ is None:
            environ = os.environ

        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {
            key: value for key, value in (defaults or {}).items() if key in known
        }
        for env_name, field_name in ENV_VARS.items():
            raw = environ.get(env_name)
            if raw is not None and raw != "":
                values[field_name] = raw

        return cls(
            server_url=str(values.get("server_url", DEFAULT_SERVER_URL)),
            batch_size=int(values.get("batch_size", DEFAULT_BATCH_SIZE)),
            max_retries=int(values.get("max_retries", DEFAULT_MAX_RETRIES)),
            timeout=float(values.get("timeout", DEFAULT_TIMEOUT)),
            probe_timeout=float(values.get("probe_timeout", DEFAULT_PROBE_TIMEOUT)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Get the config as a JSON-serializable dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}
