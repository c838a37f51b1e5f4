"""V1 API router -- aggregates all v1 endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from src.orgmeta.api.v1 import health, metadata

router = APIRouter(prefix="/api/v1")

router.include_router(health.router)
router.include_router(metadata.router)
