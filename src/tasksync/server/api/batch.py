"""Batch sync API route.

Clients send their queued operations here; every item gets a verdict, even
when resolving it failed.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from tasksync.server.api.deps import get_authority
from tasksync.server.authority import RemoteAuthority
from tasksync.server.schemas import BatchRequest, BatchResponse

router = APIRouter(prefix="/api", tags=["sync"])


@router.post("/batch", response_model=BatchResponse)
def process_batch(
    request: BatchRequest,
    authority: RemoteAuthority = Depends(get_authority),
) -> BatchResponse:
    """Resolve a batch of client operations with last-write-wins."""
    return authority.process_batch(request)
