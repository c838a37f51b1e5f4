"""REST API endpoints for org metadata reads and sync triggers.

Read endpoints never fail because of sync problems: they return the cached
record, or the standard-object fallback with needs_sync=true. Sync triggers
and the cache reset are guarded by the X-Admin-Key header.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from src.orgmeta.api.deps import get_sync_service, require_admin_key
from src.orgmeta.metadata.context import build_custom_objects_context
from src.orgmeta.metadata.schemas import AvailableObjects, CrawlResult, FanOutResult
from src.orgmeta.metadata.sync import MetadataSyncService

router = APIRouter(prefix="/metadata", tags=["metadata"])


# ── Request / Response Schemas ───────────────────────────────────────────────


class SyncOrgRequest(BaseModel):
    """Request body for crawling one org."""

    access_token: str
    instance_url: str


class ContextResponse(BaseModel):
    """Rendered custom-object context for the agent prompt."""

    context: str
    needs_sync: bool = False


class ClearResponse(BaseModel):
    deleted: int


# ── Reads ────────────────────────────────────────────────────────────────────


@router.get("/objects", response_model=AvailableObjects, response_model_exclude_none=True)
async def get_available_objects(
    instance_url: str = Query(..., description="Org base URL, any form"),
    service: MetadataSyncService = Depends(get_sync_service),
) -> AvailableObjects:
    """Cached objects for an org, or the fallback list with needs_sync."""
    return await service.get_available_objects(instance_url)


@router.get("/objects/context", response_model=ContextResponse)
async def get_objects_context(
    instance_url: str = Query(..., description="Org base URL, any form"),
    service: MetadataSyncService = Depends(get_sync_service),
) -> ContextResponse:
    """Custom-object section of the agent prompt for an org."""
    available = await service.get_available_objects(instance_url)
    return ContextResponse(
        context=build_custom_objects_context(available),
        needs_sync=available.needs_sync,
    )


@router.get(
    "/users/{user_id}/objects",
    response_model=AvailableObjects,
    response_model_exclude_none=True,
)
async def get_user_objects(
    user_id: str,
    service: MetadataSyncService = Depends(get_sync_service),
) -> AvailableObjects:
    """Cached objects for the org a user is connected to."""
    return await service.get_available_objects_for_user(user_id)


# ── Triggers ─────────────────────────────────────────────────────────────────


@router.post(
    "/sync",
    response_model=CrawlResult,
    response_model_exclude_none=True,
    dependencies=[Depends(require_admin_key)],
)
async def sync_org(
    body: SyncOrgRequest,
    service: MetadataSyncService = Depends(get_sync_service),
) -> CrawlResult:
    """Crawl one org now. Runs to completion before responding."""
    return await service.sync_organization(body.access_token, body.instance_url)


@router.post(
    "/sync-all",
    response_model=FanOutResult,
    response_model_exclude_none=True,
    dependencies=[Depends(require_admin_key)],
)
async def sync_all_orgs(
    service: MetadataSyncService = Depends(get_sync_service),
) -> FanOutResult:
    """Crawl every connected org now (same job the weekly scheduler runs)."""
    return await service.sync_all_orgs()


@router.delete(
    "",
    response_model=ClearResponse,
    dependencies=[Depends(require_admin_key)],
)
async def clear_metadata(
    service: MetadataSyncService = Depends(get_sync_service),
) -> ClearResponse:
    """Delete every cached record (administrative reset)."""
    return ClearResponse(deleted=await service.clear_cache())
