"""FastAPI dependency injection for the metadata service and admin checks.

These dependencies are used in endpoint function signatures to inject the
sync service built at startup and to guard mutating endpoints.
"""

from __future__ import annotations

import hmac

from fastapi import Header, HTTPException, Request, status

from src.orgmeta.config import get_settings
from src.orgmeta.metadata.sync import MetadataSyncService


async def get_sync_service(request: Request) -> MetadataSyncService:
    """Get the MetadataSyncService created in the app lifespan."""
    service = getattr(request.app.state, "sync_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Metadata sync service not initialized",
        )
    return service


async def require_admin_key(x_admin_key: str | None = Header(default=None)) -> None:
    """Reject the request unless X-Admin-Key matches ADMIN_API_KEY.

    No-op when ADMIN_API_KEY is empty (local development).

    Raises:
        HTTPException(401): If the key is missing or wrong.
    """
    expected = get_settings().ADMIN_API_KEY
    if not expected:
        return
    if x_admin_key is None or not hmac.compare_digest(
        x_admin_key.encode(), expected.encode()
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing X-Admin-Key",
        )
