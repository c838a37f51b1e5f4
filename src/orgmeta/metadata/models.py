"""Metadata cache persistence models.

Two SQLAlchemy models:
- OrgMetadataModel: one row per canonical instance key holding the crawled
  standard/custom object descriptors as JSON documents, the sync status and
  a generation counter used to discard writes from superseded crawls.
- SalesforceAuthModel: connected users' OAuth credentials, read by the
  weekly fan-out. Written by the OAuth flow, which lives outside this service.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, Text, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column

from src.orgmeta.core.database import Base


class OrgMetadataModel(Base):
    """Cached object catalog of one Salesforce org."""

    __tablename__ = "org_metadata"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    instance_key: Mapped[str] = mapped_column(
        String(500), nullable=False, unique=True, index=True
    )
    standard_objects: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    custom_objects: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    last_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    sync_status: Mapped[str] = mapped_column(
        String(20), default="pending", server_default=text("'pending'"), nullable=False
    )
    sync_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    sync_generation: Mapped[int] = mapped_column(
        Integer, default=0, server_default=text("0"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )


class SalesforceAuthModel(Base):
    """OAuth credential of one connected user."""

    __tablename__ = "salesforce_auth"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str | None] = mapped_column(String(200), nullable=True, index=True)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    instance_url: Mapped[str] = mapped_column(String(500), nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
