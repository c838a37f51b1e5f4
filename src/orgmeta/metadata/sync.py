"""Metadata sync orchestration -- crawl one org, or every connected org.

MetadataSyncService drives the pipeline for a single org:

    begin_sync -> catalog crawl -> priority sort -> field enrichment
               -> sampling -> commit (or fail)

and fans it out across every stored credential, crawling each canonical org
exactly once per run. Organizations are crawled one at a time; a failure in
one never stops the others.
"""

from __future__ import annotations

from collections.abc import Callable

import structlog

from src.orgmeta.metadata.client import SalesforceClient
from src.orgmeta.metadata.credentials import CredentialSource
from src.orgmeta.metadata.crawler import CatalogCrawler
from src.orgmeta.metadata.enrichment import FieldEnricher
from src.orgmeta.metadata.heuristics import DEFAULT_HEURISTICS, CatalogHeuristics
from src.orgmeta.metadata.identity import canonical_instance_key
from src.orgmeta.metadata.repository import MetadataCacheStore
from src.orgmeta.metadata.schemas import (
    AvailableObjects,
    CrawlResult,
    FanOutResult,
    OrgSyncResult,
)

logger = structlog.get_logger(__name__)

ClientFactory = Callable[[str, str], SalesforceClient]

SUPERSEDED_ERROR = "Discarded: a newer sync of this org has started"


class MetadataSyncService:
    """Runs metadata crawls and exposes the cache read operations.

    Args:
        cache_store: MetadataCacheStore, the only writer of sync status.
        credential_source: Where the fan-out finds connected orgs.
        heuristics: Classification and field selection tables.
        client_factory: Builds a SalesforceClient from (instance_url, access_token).
    """

    def __init__(
        self,
        cache_store: MetadataCacheStore,
        credential_source: CredentialSource,
        heuristics: CatalogHeuristics = DEFAULT_HEURISTICS,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._store = cache_store
        self._credentials = credential_source
        self._heuristics = heuristics
        self._client_factory = client_factory or (
            lambda instance_url, access_token: SalesforceClient(instance_url, access_token)
        )

    async def sync_organization(self, access_token: str, instance_url: str) -> CrawlResult:
        """Crawl one org and store the result.

        Any failure (discovery errors and store errors included) is returned as
        an unsuccessful CrawlResult; failures after begin_sync are also recorded
        via the store's fail(), which degrades the record to the standard-object
        fallback. A commit discarded because a newer crawl of the same org has
        started is reported as unsuccessful too.
        """
        instance_key = canonical_instance_key(instance_url)
        logger.info("metadata_sync.org_started", instance_key=instance_key)

        try:
            generation = await self._store.begin_sync(instance_url)
        except Exception as exc:
            logger.error(
                "metadata_sync.begin_failed",
                instance_key=instance_key,
                error=str(exc),
            )
            return CrawlResult(success=False, instance_key=instance_key, error=str(exc))

        try:
            client = self._client_factory(instance_url, access_token)
            snapshot = await CatalogCrawler(client, self._heuristics).crawl()

            enricher = FieldEnricher(client, snapshot.api_version, self._heuristics)
            custom_objects = await enricher.enrich_all(snapshot.custom_candidates)

            applied = await self._store.commit(
                instance_url,
                snapshot.standard_objects,
                custom_objects,
                generation=generation,
            )
        except Exception as exc:
            logger.error(
                "metadata_sync.org_failed",
                instance_key=instance_key,
                error=str(exc),
            )
            await self._record_failure(instance_url, instance_key, str(exc), generation)
            return CrawlResult(success=False, instance_key=instance_key, error=str(exc))

        if not applied:
            logger.warning(
                "metadata_sync.org_superseded",
                instance_key=instance_key,
                generation=generation,
            )
            return CrawlResult(
                success=False,
                instance_key=instance_key,
                standard_object_count=len(snapshot.standard_objects),
                custom_object_count=len(custom_objects),
                custom_objects=[obj.name for obj in custom_objects],
                error=SUPERSEDED_ERROR,
            )

        logger.info(
            "metadata_sync.org_complete",
            instance_key=instance_key,
            standard_objects=len(snapshot.standard_objects),
            custom_objects=len(custom_objects),
        )

        return CrawlResult(
            success=True,
            instance_key=instance_key,
            standard_object_count=len(snapshot.standard_objects),
            custom_object_count=len(custom_objects),
            custom_objects=[obj.name for obj in custom_objects],
        )

    async def _record_failure(
        self, instance_url: str, instance_key: str, error: str, generation: int
    ) -> None:
        """Degrade the cached record; a store error here is logged, not raised."""
        try:
            await self._store.fail(instance_url, error, generation=generation)
        except Exception as exc:
            logger.error(
                "metadata_sync.fail_record_error",
                instance_key=instance_key,
                error=str(exc),
            )

    async def sync_all_orgs(self) -> FanOutResult:
        """Crawl every org with a stored credential, once per canonical key."""
        credentials = await self._credentials.list_credentials()
        logger.info("metadata_sync.fan_out_started", credentials=len(credentials))

        seen: set[str] = set()
        results: list[OrgSyncResult] = []

        for credential in credentials:
            instance_key = canonical_instance_key(credential.instance_url)
            if instance_key in seen:
                continue
            seen.add(instance_key)

            try:
                crawl = await self.sync_organization(
                    credential.access_token, credential.instance_url
                )
                results.append(
                    OrgSyncResult(
                        instance_key=instance_key,
                        success=crawl.success,
                        error=crawl.error,
                    )
                )
            except Exception as exc:
                logger.error(
                    "metadata_sync.fan_out_org_error",
                    instance_key=instance_key,
                    error=str(exc),
                )
                results.append(
                    OrgSyncResult(instance_key=instance_key, success=False, error=str(exc))
                )

        logger.info(
            "metadata_sync.fan_out_complete",
            synced_orgs=len(results),
            failed=sum(1 for r in results if not r.success),
        )
        return FanOutResult(synced_orgs=len(results), results=results)

    async def get_available_objects(self, instance_url: str) -> AvailableObjects:
        """Cached objects for an org, or the fallback list with needs_sync."""
        return await self._store.read(instance_url)

    async def get_available_objects_for_user(self, user_id: str) -> AvailableObjects:
        """Cached objects for the org a user is connected to."""
        credential = await self._credentials.get_for_user(user_id)
        if credential is None:
            return AvailableObjects(error="No Salesforce connection")
        return await self._store.read(credential.instance_url)

    async def clear_cache(self) -> int:
        """Drop every cached org record; the next read of any org needs a sync."""
        return await self._store.clear_all()
