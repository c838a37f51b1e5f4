"""Object catalog crawl and custom-object prioritization.

CatalogCrawler resolves the org's newest API version, lists every object via
the global describe, and partitions the queryable ones into the standard
allow-list and custom candidates. Either discovery call failing raises
CatalogDiscoveryError, which aborts the crawl for that org.

prioritize_custom_objects orders custom candidates so transactional and
communication objects (messages, invoices, payments, ...) come first. Every
candidate is still enriched; the order only shows up in the stored array.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx
import structlog
from pydantic import ValidationError

from src.orgmeta.metadata.client import SalesforceAPIError, SalesforceClient
from src.orgmeta.metadata.heuristics import DEFAULT_HEURISTICS, CatalogHeuristics
from src.orgmeta.metadata.schemas import ApiVersion, ObjectSummary, SObjectSummary

logger = structlog.get_logger(__name__)


class CatalogDiscoveryError(Exception):
    """Raised when API-version discovery or the global describe fails.

    Attributes:
        step: "api_versions" or "global_describe".
        original_error: The underlying exception, if any.
    """

    def __init__(
        self, step: str, message: str, original_error: Exception | None = None
    ) -> None:
        self.step = step
        self.original_error = original_error
        super().__init__(message)


@dataclass
class CatalogSnapshot:
    """Result of the catalog crawl for one org."""

    api_version: str
    standard_objects: list[ObjectSummary] = field(default_factory=list)
    custom_candidates: list[ObjectSummary] = field(default_factory=list)
    total_objects: int = 0


# ── Classification ──────────────────────────────────────────────────────────


def select_latest_version(versions: list[ApiVersion]) -> str:
    """Pick the highest API version by numeric comparison."""
    if not versions:
        raise CatalogDiscoveryError("api_versions", "Failed to get API versions: empty list")
    return max(versions, key=lambda v: v.sort_key()).version


def partition_objects(
    sobjects: list[SObjectSummary],
    heuristics: CatalogHeuristics = DEFAULT_HEURISTICS,
) -> tuple[list[ObjectSummary], list[ObjectSummary]]:
    """Split global-describe entries into standard objects and custom candidates.

    Non-queryable objects and system objects (sharing, history, feed,
    change-event, custom metadata types) are dropped entirely. Non-custom
    objects outside the standard allow-list are dropped as well.

    Returns:
        (standard_objects, custom_candidates), both in catalog order.
    """
    standard: list[ObjectSummary] = []
    custom: list[ObjectSummary] = []

    for obj in sobjects:
        if not obj.queryable:
            continue
        if heuristics.is_system_object(obj.name):
            continue

        summary = ObjectSummary(name=obj.name, label=obj.label, queryable=obj.queryable)
        if obj.custom:
            custom.append(summary)
        elif heuristics.is_standard_object(obj.name):
            standard.append(summary)

    return standard, custom


def is_priority_object(
    obj: ObjectSummary, heuristics: CatalogHeuristics = DEFAULT_HEURISTICS
) -> bool:
    """True if name or label contains a priority keyword (case-sensitive)."""
    return any(
        keyword in obj.name or keyword in obj.label
        for keyword in heuristics.priority_keywords
    )


def collation_key(name: str) -> tuple[list[tuple[int, str]], str]:
    """Sort key approximating root-locale collation of API names.

    Compares case-insensitively, with punctuation ("_") before digits and
    letters; names equal at that level order lowercase before uppercase.

    >>> sorted(["Zebra__c", "acme__Widget__c", "AB__c", "A_B__c"], key=collation_key)
    ['A_B__c', 'AB__c', 'acme__Widget__c', 'Zebra__c']
    """
    primary = [(1 if char.isalnum() else 0, char.casefold()) for char in name]
    return primary, name.swapcase()


def prioritize_custom_objects(
    candidates: list[ObjectSummary],
    heuristics: CatalogHeuristics = DEFAULT_HEURISTICS,
) -> list[ObjectSummary]:
    """Priority objects first, then the rest; collated by name within each group."""
    return sorted(
        candidates,
        key=lambda obj: (not is_priority_object(obj, heuristics), collation_key(obj.name)),
    )


# ── Crawler ─────────────────────────────────────────────────────────────────


class CatalogCrawler:
    """Lists and classifies every queryable object of one org.

    Args:
        client: SalesforceClient bound to the org.
        heuristics: Allow-lists and denylists for classification.
    """

    def __init__(
        self,
        client: SalesforceClient,
        heuristics: CatalogHeuristics = DEFAULT_HEURISTICS,
    ) -> None:
        self._client = client
        self._heuristics = heuristics

    async def resolve_api_version(self) -> str:
        """Return the newest API version the org supports."""
        try:
            versions = await self._client.get_api_versions()
        except SalesforceAPIError as exc:
            raise CatalogDiscoveryError(
                "api_versions", f"Failed to get API versions: {exc.status_code}", exc
            ) from exc
        except (httpx.HTTPError, ValidationError) as exc:
            raise CatalogDiscoveryError(
                "api_versions", f"Failed to get API versions: {exc}", exc
            ) from exc
        return select_latest_version(versions)

    async def crawl(self) -> CatalogSnapshot:
        """Run both discovery calls and partition the catalog.

        Raises:
            CatalogDiscoveryError: If either discovery call fails.
        """
        version = await self.resolve_api_version()
        logger.info("catalog.api_version_resolved", base_url=self._client.base_url, version=version)

        try:
            catalog = await self._client.describe_global(version)
        except SalesforceAPIError as exc:
            raise CatalogDiscoveryError(
                "global_describe", f"Failed to describe objects: {exc.status_code}", exc
            ) from exc
        except (httpx.HTTPError, ValidationError) as exc:
            raise CatalogDiscoveryError(
                "global_describe", f"Failed to describe objects: {exc}", exc
            ) from exc

        standard, custom = partition_objects(catalog.sobjects, self._heuristics)

        logger.info(
            "catalog.objects_parsed",
            base_url=self._client.base_url,
            total=len(catalog.sobjects),
            standard=len(standard),
            custom=len(custom),
        )

        return CatalogSnapshot(
            api_version=version,
            standard_objects=standard,
            custom_candidates=prioritize_custom_objects(custom, self._heuristics),
            total_objects=len(catalog.sobjects),
        )
