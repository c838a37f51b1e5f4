"""Field enrichment and record sampling for custom objects.

FieldEnricher describes each custom object and keeps the fields an agent
needs to write valid SOQL:
- Skips rarely useful system fields (IsDeleted, SystemModstamp, ...)
- Skips audit-actor references (CreatedById, LastModifiedById, ...)
- Skips compound fields (address/geolocation parents)
- Keeps Id, Name, CreatedDate and the object's designated name field
- Keeps every custom field (__c), whatever its type
- Keeps OwnerId, RecordTypeId, CurrencyIsoCode, Description when present

No cap on the number of retained fields: a field missing here is a query the
agent cannot write.

SampleFetcher counts rows and reads the newest record to learn which fields
are actually populated. Both steps are best effort: a failed describe yields a
bare descriptor and a failed sample yields no sample; neither stops the batch.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from src.orgmeta.metadata.client import SalesforceClient
from src.orgmeta.metadata.heuristics import DEFAULT_HEURISTICS, CatalogHeuristics
from src.orgmeta.metadata.schemas import (
    CustomObjectDescriptor,
    FieldDescribe,
    FieldDescriptor,
    ObjectSummary,
)

logger = structlog.get_logger(__name__)


# ── Field Selection ─────────────────────────────────────────────────────────


def _keep_field(f: FieldDescribe, heuristics: CatalogHeuristics) -> bool:
    """Decide whether a described field is retained. Order of checks matters."""
    if f.name in heuristics.skipped_fields:
        return False
    if f.name.endswith(heuristics.audit_field_suffix) and f.type in heuristics.reference_types:
        return False
    if f.compound:
        return False

    if f.name in heuristics.always_included_fields:
        return True
    if f.name_field:
        return True
    if f.name.endswith(heuristics.custom_field_suffix):
        return True
    return f.name in heuristics.common_standard_fields


def select_key_fields(
    fields: list[FieldDescribe],
    heuristics: CatalogHeuristics = DEFAULT_HEURISTICS,
) -> list[FieldDescribe]:
    """Filter a describe's field list down to the retained fields (describe order)."""
    return [f for f in fields if _keep_field(f, heuristics)]


def to_field_descriptor(
    f: FieldDescribe,
    heuristics: CatalogHeuristics = DEFAULT_HEURISTICS,
) -> FieldDescriptor:
    """Project a described field into the cached FieldDescriptor."""
    picklist_values = None
    if f.type in heuristics.picklist_types:
        active = [entry.value for entry in f.picklist_values if entry.active]
        picklist_values = active[: heuristics.max_picklist_values]

    reference_to = None
    relationship_name = None
    if f.type in heuristics.reference_types:
        reference_to = f.reference_to[0] if f.reference_to else None
        relationship_name = f.relationship_name or None

    return FieldDescriptor(
        name=f.name,
        label=f.label,
        type=f.type,
        help_text=f.inline_help_text or None,
        picklist_values=picklist_values,
        reference_to=reference_to,
        relationship_name=relationship_name,
    )


# ── Sampling ────────────────────────────────────────────────────────────────


@dataclass
class SampleInfo:
    """Row count and populated field names for one object."""

    record_count: int | None = None
    sample_fields: list[str] = field(default_factory=list)


def populated_field_names(record: dict, limit: int = 8) -> list[str]:
    """Names of fields with a non-null, non-empty value, in record order."""
    names = [
        key
        for key, value in record.items()
        if key != "attributes" and value is not None and value != ""
    ]
    return names[:limit]


class SampleFetcher:
    """Counts an object's rows and inspects its most recent record.

    Args:
        client: SalesforceClient bound to the org.
        api_version: API version resolved by the catalog crawl.
        heuristics: Supplies the sample-field cap.
    """

    def __init__(
        self,
        client: SalesforceClient,
        api_version: str,
        heuristics: CatalogHeuristics = DEFAULT_HEURISTICS,
    ) -> None:
        self._client = client
        self._version = api_version
        self._heuristics = heuristics

    async def fetch(self, object_name: str, field_names: list[str]) -> SampleInfo:
        """Count rows and, if any, read the newest record's populated fields.

        Never raises: any failure is logged and whatever was learned before
        it is returned.
        """
        info = SampleInfo()
        try:
            count = await self._client.query(self._version, f"SELECT COUNT() FROM {object_name}")
            info.record_count = count.total_size

            if not info.record_count or not field_names:
                return info

            soql = (
                f"SELECT {', '.join(field_names)} FROM {object_name} "
                "ORDER BY CreatedDate DESC LIMIT 1"
            )
            sample = await self._client.query(self._version, soql)
            if sample.records:
                info.sample_fields = populated_field_names(
                    sample.records[0], self._heuristics.max_sample_fields
                )
        except Exception as exc:
            logger.warning(
                "enrichment.sample_failed",
                object_name=object_name,
                error=str(exc),
            )
        return info


# ── Enrichment ──────────────────────────────────────────────────────────────


class FieldEnricher:
    """Builds CustomObjectDescriptors from per-object describes and samples.

    Objects are processed strictly one at a time, which keeps the crawl under
    the org's per-second API budget without an explicit rate limiter.

    Args:
        client: SalesforceClient bound to the org.
        api_version: API version resolved by the catalog crawl.
        heuristics: Field selection tables.
        sampler: SampleFetcher; one is built from the client if omitted.
    """

    def __init__(
        self,
        client: SalesforceClient,
        api_version: str,
        heuristics: CatalogHeuristics = DEFAULT_HEURISTICS,
        sampler: SampleFetcher | None = None,
    ) -> None:
        self._client = client
        self._version = api_version
        self._heuristics = heuristics
        self._sampler = sampler or SampleFetcher(client, api_version, heuristics)

    async def enrich(self, obj: ObjectSummary) -> CustomObjectDescriptor:
        """Describe and sample one custom object.

        Returns a bare descriptor (name, label, queryable) when the describe
        call fails or returns an unexpected shape.
        """
        try:
            described = await self._client.describe_sobject(self._version, obj.name)
        except Exception as exc:
            logger.warning(
                "enrichment.describe_failed",
                object_name=obj.name,
                error=str(exc),
            )
            return CustomObjectDescriptor(name=obj.name, label=obj.label, queryable=obj.queryable)

        key_fields = [
            to_field_descriptor(f, self._heuristics)
            for f in select_key_fields(described.fields, self._heuristics)
        ]
        sample = await self._sampler.fetch(obj.name, [f.name for f in key_fields])

        logger.info(
            "enrichment.object_described",
            object_name=obj.name,
            fields=len(key_fields),
            records=sample.record_count or 0,
        )

        return CustomObjectDescriptor(
            name=obj.name,
            label=obj.label,
            queryable=obj.queryable,
            description=described.description or described.label_plural or None,
            key_fields=key_fields,
            sample_fields=sample.sample_fields or None,
            record_count=sample.record_count,
        )

    async def enrich_all(self, objects: list[ObjectSummary]) -> list[CustomObjectDescriptor]:
        """Enrich every object in the given order, sequentially."""
        descriptors: list[CustomObjectDescriptor] = []
        for obj in objects:
            descriptors.append(await self.enrich(obj))
        return descriptors
