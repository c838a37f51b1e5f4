"""Pydantic schemas for org metadata discovery -- remote payloads and cache records.

Defines all structured types for the schema crawl:
- Enums: SyncStatus
- Salesforce REST payloads: ApiVersion, SObjectSummary, GlobalDescribe,
  PicklistEntry, FieldDescribe, SObjectDescribe, QueryResult
- Cache records: ObjectSummary, FieldDescriptor, CustomObjectDescriptor,
  OrganizationMetadata, AvailableObjects
- Sync results: CrawlResult, OrgSyncResult, FanOutResult
- Credentials: SalesforceCredential

Remote payload schemas ignore unknown keys and accept the camelCase names the
Salesforce API returns. Cache records are snake_case and serialized with
model_dump(mode="json", exclude_none=True).
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ── Enums ───────────────────────────────────────────────────────────────────


class SyncStatus(str, Enum):
    """Lifecycle of a cached org metadata record."""

    PENDING = "pending"
    SYNCING = "syncing"
    COMPLETE = "complete"
    ERROR = "error"


# ── Salesforce REST Payloads ────────────────────────────────────────────────


class _RemotePayload(BaseModel):
    """Base for Salesforce response shapes: tolerant of extra keys."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ApiVersion(_RemotePayload):
    """One entry of GET /services/data/."""

    version: str
    label: str | None = None
    url: str | None = None

    def sort_key(self) -> tuple[int, ...]:
        """Numeric ordering key, so "59.0" sorts after "9.0"."""
        parts: list[int] = []
        for part in self.version.split("."):
            try:
                parts.append(int(part))
            except ValueError:
                parts.append(0)
        return tuple(parts)


class SObjectSummary(_RemotePayload):
    """One object from the global describe."""

    name: str
    label: str
    custom: bool = False
    queryable: bool = False


class GlobalDescribe(_RemotePayload):
    """GET /services/data/v{N}/sobjects/."""

    sobjects: list[SObjectSummary] = Field(default_factory=list)


class PicklistEntry(_RemotePayload):
    value: str
    active: bool = False


class FieldDescribe(_RemotePayload):
    """One field from a per-object describe."""

    name: str
    label: str
    type: str
    inline_help_text: str | None = Field(default=None, alias="inlineHelpText")
    compound: bool = False
    name_field: bool = Field(default=False, alias="nameField")
    picklist_values: list[PicklistEntry] = Field(default_factory=list, alias="picklistValues")
    reference_to: list[str] = Field(default_factory=list, alias="referenceTo")
    relationship_name: str | None = Field(default=None, alias="relationshipName")


class SObjectDescribe(_RemotePayload):
    """GET /services/data/v{N}/sobjects/{name}/describe/."""

    description: str | None = None
    label_plural: str | None = Field(default=None, alias="labelPlural")
    fields: list[FieldDescribe] = Field(default_factory=list)


class QueryResult(_RemotePayload):
    """GET /services/data/v{N}/query/?q=..."""

    total_size: int = Field(alias="totalSize")
    records: list[dict[str, Any]] = Field(default_factory=list)


# ── Cache Records ───────────────────────────────────────────────────────────


class ObjectSummary(BaseModel):
    """Standard object entry (name, label, queryable)."""

    name: str
    label: str
    queryable: bool = True


class FieldDescriptor(BaseModel):
    """Retained field of a custom object, with the metadata the agent needs."""

    name: str
    label: str
    type: str
    help_text: str | None = None
    picklist_values: list[str] | None = Field(default=None, max_length=10)
    reference_to: str | None = None
    relationship_name: str | None = None


class CustomObjectDescriptor(BaseModel):
    """Custom object with optional enrichment.

    A bare descriptor carries only name, label and queryable -- emitted when
    the per-object describe failed. key_fields also accepts plain field
    names, the shape older records were stored in.
    """

    name: str
    label: str
    queryable: bool = True
    description: str | None = None
    key_fields: list[FieldDescriptor | str] | None = None
    sample_fields: list[str] | None = Field(default=None, max_length=8)
    record_count: int | None = None

    @property
    def is_bare(self) -> bool:
        return self.key_fields is None


class OrganizationMetadata(BaseModel):
    """Stored metadata for one canonical instance key."""

    instance_key: str
    standard_objects: list[ObjectSummary] = Field(default_factory=list)
    custom_objects: list[CustomObjectDescriptor] = Field(default_factory=list)
    last_synced_at: datetime | None = None
    sync_status: SyncStatus = SyncStatus.PENDING
    sync_error: str | None = None
    sync_generation: int = 0


class AvailableObjects(BaseModel):
    """Read result handed to the agent and dashboards.

    needs_sync is True when no record exists yet and the lists are the
    static standard-object fallback.
    """

    standard_objects: list[ObjectSummary] = Field(default_factory=list)
    custom_objects: list[CustomObjectDescriptor] = Field(default_factory=list)
    last_synced_at: datetime | None = None
    sync_status: SyncStatus | None = None
    sync_error: str | None = None
    needs_sync: bool = False
    error: str | None = None


# ── Sync Results ────────────────────────────────────────────────────────────


class CrawlResult(BaseModel):
    """Outcome of crawling one organization."""

    success: bool
    instance_key: str
    standard_object_count: int = 0
    custom_object_count: int = 0
    custom_objects: list[str] = Field(default_factory=list)
    error: str | None = None


class OrgSyncResult(BaseModel):
    """Per-organization entry of a fan-out run."""

    instance_key: str
    success: bool
    error: str | None = None


class FanOutResult(BaseModel):
    """Result of syncing every known organization."""

    synced_orgs: int = 0
    results: list[OrgSyncResult] = Field(default_factory=list)


# ── Credentials ─────────────────────────────────────────────────────────────


class SalesforceCredential(BaseModel):
    """Stored Salesforce OAuth credential for one connected user."""

    access_token: str
    instance_url: str
    user_id: str | None = None
    refresh_token: str | None = None
    expires_at: datetime | None = None
