"""Credential sources -- where the fan-out finds connected orgs.

CredentialSource is the interface the sync service reads; the OAuth flow that
writes credentials (and refreshes tokens) lives outside this service.
SalesforceAuthRepository implements it over the salesforce_auth table.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.orgmeta.metadata.models import SalesforceAuthModel
from src.orgmeta.metadata.schemas import SalesforceCredential


def _model_to_credential(model: SalesforceAuthModel) -> SalesforceCredential:
    return SalesforceCredential(
        access_token=model.access_token,
        instance_url=model.instance_url,
        user_id=model.user_id,
        refresh_token=model.refresh_token,
        expires_at=model.expires_at,
    )


class CredentialSource(ABC):
    """Read-only access to stored Salesforce credentials."""

    @abstractmethod
    async def list_credentials(self) -> list[SalesforceCredential]:
        """Every stored credential (several may point at the same org)."""
        ...

    @abstractmethod
    async def get_for_user(self, user_id: str) -> SalesforceCredential | None:
        """Credential of one connected user, if any."""
        ...


class SalesforceAuthRepository(CredentialSource):
    """CredentialSource backed by the salesforce_auth table.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def list_credentials(self) -> list[SalesforceCredential]:
        credentials: list[SalesforceCredential] = []
        async for session in self._session_factory():
            stmt = select(SalesforceAuthModel).order_by(SalesforceAuthModel.created_at)
            result = await session.execute(stmt)
            credentials = [_model_to_credential(m) for m in result.scalars().all()]
        return credentials

    async def get_for_user(self, user_id: str) -> SalesforceCredential | None:
        credential = None
        async for session in self._session_factory():
            stmt = select(SalesforceAuthModel).where(SalesforceAuthModel.user_id == user_id)
            result = await session.execute(stmt)
            model = result.scalars().first()
            if model is not None:
                credential = _model_to_credential(model)
        return credential

    async def add(self, credential: SalesforceCredential) -> None:
        """Store a credential (used by the CLI and tests; the OAuth flow writes its own)."""
        async for session in self._session_factory():
            session.add(
                SalesforceAuthModel(
                    user_id=credential.user_id,
                    access_token=credential.access_token,
                    refresh_token=credential.refresh_token,
                    instance_url=credential.instance_url,
                    expires_at=credential.expires_at,
                )
            )
            await session.commit()
