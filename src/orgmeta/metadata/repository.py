"""Metadata cache store -- the only writer of org metadata records and sync status.

Provides MetadataCacheStore with session_factory callable pattern. Records are
keyed by canonical instance key; reads also try the legacy key form so rows
written before normalization are still served.

Sync status state machine:
    pending -> syncing -> {complete, error}
    complete / error -> syncing   (next begin_sync)

begin_sync bumps a per-record generation counter and returns it. commit and
fail accept that generation and are discarded when a newer crawl has since
started, so a slow crawl cannot overwrite the result of a newer one.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.orgmeta.metadata.heuristics import (
    DEFAULT_HEURISTICS,
    CatalogHeuristics,
    fallback_standard_objects,
)
from src.orgmeta.metadata.identity import canonical_instance_key, lookup_keys
from src.orgmeta.metadata.models import OrgMetadataModel
from src.orgmeta.metadata.schemas import (
    AvailableObjects,
    CustomObjectDescriptor,
    ObjectSummary,
    OrganizationMetadata,
    SyncStatus,
)

logger = structlog.get_logger(__name__)


# ── Serialization Helpers ───────────────────────────────────────────────────


def _dump(objects: list[ObjectSummary] | list[CustomObjectDescriptor]) -> list[dict]:
    return [obj.model_dump(mode="json", exclude_none=True) for obj in objects]


def _model_to_metadata(model: OrgMetadataModel) -> OrganizationMetadata:
    """Convert OrgMetadataModel to OrganizationMetadata schema."""
    return OrganizationMetadata(
        instance_key=model.instance_key,
        standard_objects=model.standard_objects or [],
        custom_objects=model.custom_objects or [],
        last_synced_at=model.last_synced_at,
        sync_status=SyncStatus(model.sync_status),
        sync_error=model.sync_error,
        sync_generation=model.sync_generation or 0,
    )


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ── Store ───────────────────────────────────────────────────────────────────


class MetadataCacheStore:
    """Upserts, keys and reads per-org metadata records.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
        heuristics: Supplies the standard-object fallback list.
    """

    def __init__(
        self,
        session_factory: Callable[..., AsyncGenerator[AsyncSession, None]],
        heuristics: CatalogHeuristics = DEFAULT_HEURISTICS,
    ) -> None:
        self._session_factory = session_factory
        self._heuristics = heuristics

    async def _find(self, session: AsyncSession, key: str) -> OrgMetadataModel | None:
        stmt = select(OrgMetadataModel).where(OrgMetadataModel.instance_key == key)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    # ── Writes ──────────────────────────────────────────────────────────────

    async def begin_sync(self, instance_url: str) -> int:
        """Mark a crawl as started.

        Creates a placeholder record (empty arrays, status syncing) if none
        exists; otherwise flips the status to syncing and leaves the arrays
        untouched until the crawl completes.

        Returns:
            The record's new sync generation, to pass to commit/fail.
        """
        key = canonical_instance_key(instance_url)
        generation = 1

        async for session in self._session_factory():
            model = await self._find(session, key)
            if model is None:
                session.add(
                    OrgMetadataModel(
                        instance_key=key,
                        standard_objects=[],
                        custom_objects=[],
                        last_synced_at=_now(),
                        sync_status=SyncStatus.SYNCING.value,
                        sync_generation=generation,
                    )
                )
            else:
                await session.execute(
                    update(OrgMetadataModel)
                    .where(OrgMetadataModel.id == model.id)
                    .values(
                        sync_status=SyncStatus.SYNCING.value,
                        sync_generation=OrgMetadataModel.sync_generation + 1,
                    )
                )
                await session.refresh(model)
                generation = model.sync_generation
            await session.commit()

        logger.info("metadata_cache.sync_started", instance_key=key, generation=generation)
        return generation

    async def _write(
        self,
        key: str,
        values: dict,
        generation: int | None,
    ) -> bool:
        """Conditionally replace a record's content; insert if it doesn't exist.

        Returns False when the generation no longer matches (stale crawl).
        """
        applied = True

        async for session in self._session_factory():
            stmt = update(OrgMetadataModel).where(OrgMetadataModel.instance_key == key)
            if generation is not None:
                stmt = stmt.where(OrgMetadataModel.sync_generation == generation)
            result = await session.execute(stmt.values(**values))

            if result.rowcount == 0:
                if await self._find(session, key) is not None:
                    applied = False
                else:
                    session.add(
                        OrgMetadataModel(
                            instance_key=key,
                            sync_generation=generation or 0,
                            **values,
                        )
                    )
            await session.commit()

        if not applied:
            logger.warning(
                "metadata_cache.stale_write_discarded",
                instance_key=key,
                generation=generation,
                status=values["sync_status"],
            )
        return applied

    async def commit(
        self,
        instance_url: str,
        standard_objects: list[ObjectSummary],
        custom_objects: list[CustomObjectDescriptor],
        generation: int | None = None,
    ) -> bool:
        """Replace the record with a completed crawl. Idempotent.

        Returns:
            True if written, False if discarded as stale.
        """
        key = canonical_instance_key(instance_url)
        applied = await self._write(
            key,
            {
                "standard_objects": _dump(standard_objects),
                "custom_objects": _dump(custom_objects),
                "last_synced_at": _now(),
                "sync_status": SyncStatus.COMPLETE.value,
                "sync_error": None,
            },
            generation,
        )
        if applied:
            logger.info(
                "metadata_cache.sync_committed",
                instance_key=key,
                standard_objects=len(standard_objects),
                custom_objects=len(custom_objects),
            )
        return applied

    async def fail(
        self,
        instance_url: str,
        message: str,
        generation: int | None = None,
    ) -> bool:
        """Record a failed crawl and degrade the content to safe defaults.

        Custom objects are cleared and standard objects reset to the static
        allow-list, so fields that may no longer exist are never served as
        current.

        Returns:
            True if written, False if discarded as stale.
        """
        key = canonical_instance_key(instance_url)
        applied = await self._write(
            key,
            {
                "standard_objects": _dump(fallback_standard_objects(self._heuristics)),
                "custom_objects": [],
                "last_synced_at": _now(),
                "sync_status": SyncStatus.ERROR.value,
                "sync_error": message,
            },
            generation,
        )
        if applied:
            logger.warning("metadata_cache.sync_failed", instance_key=key, error=message)
        return applied

    async def clear_all(self) -> int:
        """Delete every record (administrative reset). Returns the count deleted."""
        deleted = 0
        async for session in self._session_factory():
            result = await session.execute(delete(OrgMetadataModel))
            await session.commit()
            deleted = result.rowcount or 0

        logger.info("metadata_cache.cleared", deleted=deleted)
        return deleted

    # ── Reads ───────────────────────────────────────────────────────────────

    async def get(self, instance_url: str) -> OrganizationMetadata | None:
        """Stored record for an org, trying the canonical then the legacy key."""
        metadata = None
        async for session in self._session_factory():
            for key in lookup_keys(instance_url):
                model = await self._find(session, key)
                if model is not None:
                    metadata = _model_to_metadata(model)
                    break
        return metadata

    async def read(self, instance_url: str) -> AvailableObjects:
        """Objects available in an org, never raising.

        Falls back to the static standard-object list with needs_sync=True
        when no record exists or the store cannot be reached. Never waits on
        an in-flight crawl.
        """
        try:
            metadata = await self.get(instance_url)
        except Exception:
            logger.error("metadata_cache.read_failed", instance_url=instance_url, exc_info=True)
            metadata = None

        if metadata is None:
            return AvailableObjects(
                standard_objects=fallback_standard_objects(self._heuristics),
                custom_objects=[],
                needs_sync=True,
            )

        return AvailableObjects(
            standard_objects=metadata.standard_objects,
            custom_objects=metadata.custom_objects,
            last_synced_at=metadata.last_synced_at,
            sync_status=metadata.sync_status,
            sync_error=metadata.sync_error,
        )
