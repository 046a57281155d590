from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from src.core.config import Settings, get_settings
from src.domain.services.artifact_store import LegacyPathResolver
from src.domain.services.artifacts import ArtifactService
from src.domain.services.completion import CompletionOrchestrator
from src.domain.services.notifier import CompletionNotifier
from src.domain.services.recommendations import RecommendationGenerator
from src.domain.services.recovery import RecoveryCoordinator
from src.domain.services.report_builder import ReportBuilder
from src.infrastructure.db.session import get_session
from src.infrastructure.repositories.directory import SqlUserDirectory
from src.libs.gpt_client import GPTClientProtocol
from src.libs.resend_client import ResendClientProtocol


async def get_db_session() -> AsyncIterator[AsyncSession]:
    """Provide an async SQLAlchemy session for API handlers."""
    async for session in get_session():
        yield session


def get_app_settings() -> Settings:
    return get_settings()


def get_gpt_client(request: Request) -> GPTClientProtocol:
    return request.app.state.gpt_client


def get_resend_client(request: Request) -> ResendClientProtocol:
    return request.app.state.resend_client


def get_report_builder(request: Request) -> ReportBuilder:
    return request.app.state.report_builder


def get_path_resolver(request: Request) -> LegacyPathResolver:
    return request.app.state.path_resolver


def get_recovery_coordinator(request: Request) -> RecoveryCoordinator:
    return request.app.state.recovery_coordinator


def get_completion_orchestrator(
    session: AsyncSession = Depends(get_db_session),  # noqa: B008
    settings: Settings = Depends(get_app_settings),  # noqa: B008
    gpt_client: GPTClientProtocol = Depends(get_gpt_client),  # noqa: B008
    resend_client: ResendClientProtocol = Depends(get_resend_client),  # noqa: B008
    builder: ReportBuilder = Depends(get_report_builder),  # noqa: B008
) -> CompletionOrchestrator:
    users = SqlUserDirectory(session)
    return CompletionOrchestrator(
        session,
        settings=settings,
        generator=RecommendationGenerator(gpt_client, settings),
        builder=builder,
        notifier=CompletionNotifier(resend_client, users, settings),
        users=users,
    )


def get_artifact_service(
    session: AsyncSession = Depends(get_db_session),  # noqa: B008
    resolver: LegacyPathResolver = Depends(get_path_resolver),  # noqa: B008
    coordinator: RecoveryCoordinator = Depends(get_recovery_coordinator),  # noqa: B008
) -> ArtifactService:
    return ArtifactService(session, resolver, coordinator)
