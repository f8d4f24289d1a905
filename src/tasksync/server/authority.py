"""Batch resolution on the server with last-write-wins.

This module provides:
- RemoteAuthority: Resolves batches of client operations against server records
- AuthorityTransport: In-process transport with the same contract as HTTPClient
- ItemResolutionError: One batch item could not be resolved

Resolution rules, per item:
- delete: mark the existing record deleted, or insert a tombstone
- create/update without a record: insert a live record
- create/update with a record: apply if the incoming ``updated_at`` is
  greater than or equal to the stored one, otherwise keep the stored record
  and flag a conflict

Each item runs in its own transaction; a failing item is reported with
``status=error`` and the rest of the batch goes on.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from tasksync.core.types import (
    ItemStatus,
    Operation,
    TransportError,
    ensure_utc,
    parse_timestamp,
    utc_now,
)
from tasksync.server.database import Database
from tasksync.server.models import ServerTask
from tasksync.server.schemas import (
    BatchItem,
    BatchRequest,
    BatchResponse,
    ProcessedItem,
    resolved_data,
)

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled"


class ItemResolutionError(Exception):
    """Raised when a single batch item cannot be resolved."""


def generate_server_id() -> str:
    """Generate a new server-side task identifier."""
    return f"srv_{uuid.uuid4().hex[:12]}"


@dataclass
class NormalizedItem:
    """Batch item with defaults applied."""

    client_id: str
    operation: Operation
    title: str
    description: str | None
    completed: bool
    created_at: datetime
    updated_at: datetime


def _parse_optional_timestamp(value: Any, name: str) -> datetime:
    if value is None or value == "":
        return utc_now()
    try:
        return parse_timestamp(value)
    except (TypeError, ValueError) as e:
        raise ItemResolutionError(f"Invalid {name}: {value!r}") from e


def _parse_completed(value: Any) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ItemResolutionError(f"Invalid completed: {value!r}")
    return value


def normalize_item(item: BatchItem) -> NormalizedItem:
    """Apply defaults to an incoming batch item.

    Raises:
        ItemResolutionError: If the item has no client id, an unknown
            operation, a non-boolean completed flag or unparseable
            timestamps.
    """
    data = item.data
    client_id = item.task_id or item.client_id or data.get("id")
    if not client_id:
        raise ItemResolutionError("Item has no client id")

    try:
        operation = Operation(item.operation)
    except ValueError as e:
        raise ItemResolutionError(f"Unknown operation: {item.operation!r}") from e

    return NormalizedItem(
        client_id=str(client_id),
        operation=operation,
        title=data.get("title") or DEFAULT_TITLE,
        description=data.get("description"),
        completed=_parse_completed(data.get("completed")),
        created_at=_parse_optional_timestamp(data.get("created_at"), "created_at"),
        updated_at=_parse_optional_timestamp(data.get("updated_at"), "updated_at"),
    )


class RemoteAuthority:
    """Server side of the batch sync protocol."""

    def __init__(self, db: Database) -> None:
        """Initialize the authority.

        Args:
            db: Server database.
        """
        self._db = db

    def process_batch(self, request: BatchRequest) -> BatchResponse:
        """Resolve every item of a batch.

        Args:
            request: Incoming batch.

        Returns:
            One verdict per item, in request order.
        """
        processed = [self.process_item(item) for item in request.items]
        conflicts = sum(1 for p in processed if p.conflict)
        errors = sum(1 for p in processed if p.status == ItemStatus.ERROR.value)
        logger.info(
            "Processed batch of %d items (%d conflicts, %d errors)",
            len(processed),
            conflicts,
            errors,
        )
        return BatchResponse(processed_items=processed)

    def process_item(self, item: BatchItem) -> ProcessedItem:
        """Resolve one item, turning any failure into an error verdict."""
        client_id = item.task_id or item.client_id or item.data.get("id")
        try:
            return self._resolve(normalize_item(item))
        except ItemResolutionError as e:
            logger.warning("Rejected %s for %s: %s", item.operation, client_id, e)
            error = str(e)
        except Exception as e:
            logger.exception("Failed to resolve %s for %s", item.operation, client_id)
            error = f"{type(e).__name__}: {e}"

        return ProcessedItem(
            client_id=client_id,
            server_id=None,
            status=ItemStatus.ERROR.value,
            resolved_data={},
            operation=item.operation,
            conflict=False,
            error=error,
        )

    def _resolve(self, item: NormalizedItem) -> ProcessedItem:
        with self._db.transaction() as session:
            existing = Database.find_by_client_id(session, item.client_id)

            if existing is None:
                record = ServerTask(
                    id=generate_server_id(),
                    client_id=item.client_id,
                    title=item.title,
                    description=item.description,
                    completed=item.completed,
                    is_deleted=item.operation == Operation.DELETE,
                    created_at=item.created_at,
                    updated_at=item.updated_at,
                )
                session.add(record)
                logger.debug("Inserted %s for %s", record.id, item.client_id)
            elif item.operation == Operation.DELETE:
                record = existing
                record.is_deleted = True
                record.updated_at = item.updated_at
            else:
                record = existing
                if item.updated_at >= ensure_utc(record.updated_at):
                    record.title = item.title
                    record.description = item.description
                    record.completed = item.completed
                    record.updated_at = item.updated_at

            session.flush()
            conflict = existing is not None and ensure_utc(record.updated_at) > item.updated_at
            if conflict:
                logger.info(
                    "Kept newer record %s for %s over %s",
                    record.id,
                    item.client_id,
                    item.operation.value,
                )

            return ProcessedItem(
                client_id=item.client_id,
                server_id=record.id,
                status=ItemStatus.SUCCESS.value,
                resolved_data=resolved_data(record),
                operation=item.operation.value,
                conflict=conflict,
            )


class AuthorityTransport:
    """Deliver batches to a RemoteAuthority in the same process.

    Speaks the same dictionaries as the HTTP endpoint, so the reconciler can
    be exercised without network I/O.
    """

    def __init__(self, authority: RemoteAuthority) -> None:
        self._authority = authority

    def send_batch(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Resolve a batch request body and return the response body.

        Raises:
            TransportError: If the payload is not a valid batch request.
        """
        try:
            request = BatchRequest.model_validate(payload)
        except PydanticValidationError as e:
            raise TransportError(f"Invalid batch request: {e}", 422) from e
        return self._authority.process_batch(request).model_dump()

    def health_check(self) -> bool:
        """The in-process authority is always reachable."""
        return True
