"""Catalog heuristics -- allow-lists, keyword lists and denylists for the crawl.

Defines:
- CatalogHeuristics: every catalog-shaped literal the crawler, priority sorter
  and field enricher consult, grouped in one tunable table.
- DEFAULT_HEURISTICS: the built-in table.
- load_heuristics(): reads an override JSON file; keys that are missing keep
  their defaults.
- fallback_standard_objects(): the static standard-object list served when
  an org has never synced or its last sync failed.
"""

from __future__ import annotations

from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict, Field

from src.orgmeta.metadata.schemas import ObjectSummary

logger = structlog.get_logger(__name__)


# ── Built-in Tables ─────────────────────────────────────────────────────────

STANDARD_OBJECTS: list[str] = [
    "Account",
    "Contact",
    "Opportunity",
    "Lead",
    "Case",
    "Task",
    "Event",
    "Campaign",
    "User",
    "Product2",
    "Pricebook2",
    "PricebookEntry",
    "Quote",
    "Order",
    "Contract",
    "Asset",
    "Note",
    "Attachment",
]

# Sharing rows, field history, chatter feeds, CDC events, custom metadata types
SYSTEM_OBJECT_SUFFIXES: list[str] = [
    "__Share",
    "__History",
    "__Feed",
    "__ChangeEvent",
    "__mdt",
]

PRIORITY_KEYWORDS: list[str] = [
    "Message",
    "Invoice",
    "Payment",
    "Order",
    "Quote",
    "Estimate",
    "Conversation",
    "Text",
    "Log",
]

SKIPPED_FIELDS: list[str] = [
    "IsDeleted",
    "SystemModstamp",
    "LastViewedDate",
    "LastReferencedDate",
    "LastActivityDate",
]

COMMON_STANDARD_FIELDS: list[str] = [
    "OwnerId",
    "RecordTypeId",
    "CurrencyIsoCode",
    "Description",
]


class CatalogHeuristics(BaseModel):
    """Tunable tables for object classification and field selection."""

    model_config = ConfigDict(frozen=True)

    standard_objects: list[str] = Field(default_factory=lambda: list(STANDARD_OBJECTS))
    system_object_suffixes: list[str] = Field(
        default_factory=lambda: list(SYSTEM_OBJECT_SUFFIXES)
    )
    priority_keywords: list[str] = Field(default_factory=lambda: list(PRIORITY_KEYWORDS))

    skipped_fields: list[str] = Field(default_factory=lambda: list(SKIPPED_FIELDS))
    audit_field_suffix: str = "ById"
    always_included_fields: list[str] = Field(
        default_factory=lambda: ["Id", "Name", "CreatedDate"]
    )
    custom_field_suffix: str = "__c"
    common_standard_fields: list[str] = Field(
        default_factory=lambda: list(COMMON_STANDARD_FIELDS)
    )

    picklist_types: list[str] = Field(default_factory=lambda: ["picklist"])
    reference_types: list[str] = Field(default_factory=lambda: ["reference"])

    max_picklist_values: int = Field(default=10, ge=0, le=10)
    max_sample_fields: int = Field(default=8, ge=0, le=8)

    def is_system_object(self, name: str) -> bool:
        return any(name.endswith(suffix) for suffix in self.system_object_suffixes)

    def is_standard_object(self, name: str) -> bool:
        return name in self.standard_objects


DEFAULT_HEURISTICS = CatalogHeuristics()


def load_heuristics(path: str | Path | None) -> CatalogHeuristics:
    """Load heuristics from a JSON override file.

    Args:
        path: JSON file path. Empty or None returns DEFAULT_HEURISTICS.

    Returns:
        CatalogHeuristics with file values layered over the defaults.

    Raises:
        FileNotFoundError: If the path is set but does not exist.
        pydantic.ValidationError: If the file content is not a valid table.
    """
    if not path:
        return DEFAULT_HEURISTICS

    heuristics = CatalogHeuristics.model_validate_json(Path(path).read_text(encoding="utf-8"))
    logger.info(
        "heuristics.loaded",
        path=str(path),
        standard_objects=len(heuristics.standard_objects),
        priority_keywords=len(heuristics.priority_keywords),
    )
    return heuristics


def fallback_standard_objects(
    heuristics: CatalogHeuristics = DEFAULT_HEURISTICS,
) -> list[ObjectSummary]:
    """Static standard-object list (label = name) used when no sync data applies."""
    return [
        ObjectSummary(name=name, label=name, queryable=True)
        for name in heuristics.standard_objects
    ]
