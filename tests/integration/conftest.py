from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from src.api import deps
from src.api.main import create_app
from src.core.config import Settings
from src.domain.services.artifact_store import LegacyPathResolver
from src.domain.services.recovery import RecoveryCoordinator
from src.domain.services.report_builder import ReportBuilder
from tests.utils import MockGPTClient, MockResendClient


@pytest.fixture()
def recovery_coordinator(
    session_factory: async_sessionmaker[AsyncSession], report_builder: ReportBuilder
) -> RecoveryCoordinator:
    return RecoveryCoordinator(session_factory, report_builder)


@pytest.fixture()
def test_app(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    gpt_client: MockGPTClient,
    resend_client: MockResendClient,
    report_builder: ReportBuilder,
    path_resolver: LegacyPathResolver,
    recovery_coordinator: RecoveryCoordinator,
) -> FastAPI:
    app = create_app()

    async def override_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[deps.get_db_session] = override_session
    app.dependency_overrides[deps.get_app_settings] = lambda: settings
    app.dependency_overrides[deps.get_gpt_client] = lambda: gpt_client
    app.dependency_overrides[deps.get_resend_client] = lambda: resend_client
    app.dependency_overrides[deps.get_report_builder] = lambda: report_builder
    app.dependency_overrides[deps.get_path_resolver] = lambda: path_resolver
    app.dependency_overrides[deps.get_recovery_coordinator] = lambda: recovery_coordinator
    return app


@pytest.fixture()
async def async_client(test_app: FastAPI) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
