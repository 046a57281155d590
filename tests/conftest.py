from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool
from src.core.config import Settings
from src.domain.services.artifact_store import ArtifactStore, LegacyPathResolver
from src.domain.services.report_builder import ReportBuilder
from src.domain.services.report_renderer import ReportRenderer
from src.infrastructure.db.base import Base
from tests.utils import MockGPTClient, MockResendClient, make_settings


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture()
async def session_factory(tmp_path: Path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture()
async def db(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Provide a database session for tests that need direct DB access."""
    async with session_factory() as session:
        yield session


@pytest.fixture()
def report_builder(settings: Settings) -> ReportBuilder:
    return ReportBuilder(ReportRenderer(), ArtifactStore(settings))


@pytest.fixture()
def path_resolver(settings: Settings) -> LegacyPathResolver:
    return LegacyPathResolver(settings)


@pytest.fixture()
def gpt_client() -> MockGPTClient:
    return MockGPTClient()


@pytest.fixture()
def resend_client() -> MockResendClient:
    return MockResendClient()
