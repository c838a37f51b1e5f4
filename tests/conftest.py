"""Shared fixtures for metadata discovery tests.

Provides:
- session_factory: repository session factory over a temporary SQLite file
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from src.orgmeta.core.database import Base
from src.orgmeta.metadata import models  # noqa: F401


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Session factory bound to a fresh SQLite database per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'orgmeta.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async def factory() -> AsyncGenerator[AsyncSession, None]:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            yield session

    yield factory

    await engine.dispose()
