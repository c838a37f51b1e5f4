"""Org metadata discovery -- crawl a Salesforce org's schema and cache it per org.

Pipeline (sequential, one org at a time):
- CatalogCrawler: API version discovery + global describe, standard/custom split
- prioritize_custom_objects: transactional/communication objects first
- FieldEnricher: per-object describe, filtered field list with picklists/references
- SampleFetcher: row count + newest record to learn populated fields
- MetadataCacheStore: per-org record keyed by canonical instance URL, owns sync status
- MetadataSyncService: single-org crawl and fan-out across all stored credentials
"""

from src.orgmeta.metadata.context import build_custom_objects_context
from src.orgmeta.metadata.crawler import (
    CatalogCrawler,
    CatalogDiscoveryError,
    prioritize_custom_objects,
)
from src.orgmeta.metadata.enrichment import FieldEnricher, SampleFetcher
from src.orgmeta.metadata.heuristics import DEFAULT_HEURISTICS, CatalogHeuristics
from src.orgmeta.metadata.identity import canonical_instance_key
from src.orgmeta.metadata.repository import MetadataCacheStore
from src.orgmeta.metadata.sync import MetadataSyncService

__all__ = [
    "CatalogCrawler",
    "CatalogDiscoveryError",
    "CatalogHeuristics",
    "DEFAULT_HEURISTICS",
    "FieldEnricher",
    "MetadataCacheStore",
    "MetadataSyncService",
    "SampleFetcher",
    "build_custom_objects_context",
    "canonical_instance_key",
    "prioritize_custom_objects",
]
