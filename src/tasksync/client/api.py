"""HTTP client for the tasksync remote authority.

This module provides:
- HTTPClient: httpx-based transport for the batch and health endpoints
- Verdict: Per-item result returned by the authority
- TransportError: The batch call could not be completed (defined in tasksync.core.types)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from tasksync.core.config import SyncConfig
from tasksync.core.types import ItemStatus, Operation, TransportError

logger = logging.getLogger(__name__)

BATCH_PATH = "/api/batch"
HEALTH_PATH = "/api/health"


@dataclass
class Verdict:
    """Resolution of one batch item by the remote authority."""

    client_id: str | None
    server_id: str | None
    status: ItemStatus
    operation: Operation | None = None
    resolved_data: dict[str, Any] = field(default_factory=dict)
    conflict: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the authority accepted the item."""
        return self.status == ItemStatus.SUCCESS

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Verdict:
        """Create from API response dictionary.

        Raises:
            ValueError: If the status or operation is not recognized.
        """
        operation = data.get("operation")
        return cls(
            client_id=data.get("client_id"),
            server_id=data.get("server_id"),
            status=ItemStatus(data["status"]),
            operation=Operation(operation) if operation else None,
            resolved_data=dict(data.get("resolved_data") or {}),
            conflict=bool(data.get("conflict", False)),
            error=data.get("error"),
        )


def parse_batch_response(payload: Any) -> list[Verdict]:
    """Parse a batch response body into verdicts.

    Raises:
        TransportError: If the body does not follow the batch protocol.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("processed_items"), list):
        raise TransportError("Malformed batch response: missing processed_items")
    try:
        return [Verdict.from_dict(item) for item in payload["processed_items"]]
    except (KeyError, TypeError, ValueError) as e:
        raise TransportError(f"Malformed batch response: {e}") from e


class HTTPClient:
    """HTTP transport for the tasksync server API."""

    def __init__(
        self,
        config: SyncConfig,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the HTTP client.

        Args:
            config: Sync configuration (server URL and timeouts).
            client: Optional preconfigured httpx client (e.g., a test client).
        """
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.Client(
            base_url=config.server_url,
            timeout=config.timeout,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HTTPClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    # === Health check ===

    def health_check(self) -> bool:
        """Check if the server is alive.

        Any non-2xx answer or transport error counts as not alive.

        Returns:
            True if server is healthy.
        """
        try:
            response = self._client.get(HEALTH_PATH, timeout=self._config.probe_timeout)
        except httpx.HTTPError as e:
            logger.debug("Health check failed: %s", e)
            return False
        return response.is_success

    # === Batch sync ===

    def send_batch(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Send a batch of queued operations.

        Args:
            payload: Batch request body (``items`` and ``client_timestamp``).

        Returns:
            Decoded response body.

        Raises:
            TransportError: On network errors, timeouts, non-2xx responses or
                an undecodable body.
        """
        try:
            response = self._client.post(BATCH_PATH, json=payload, timeout=self._config.timeout)
        except httpx.TimeoutException as e:
            raise TransportError(f"Batch request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Batch request failed: {e}") from e

        if not response.is_success:
            raise TransportError(
                f"Batch request rejected with HTTP {response.status_code}",
                response.status_code,
            )

        try:
            body: dict[str, Any] = response.json()
        except ValueError as e:
            raise TransportError("Batch response is not valid JSON", response.status_code) from e
        return body
