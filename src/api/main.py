from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from src.api.routes import register_routes
from src.core.config import get_settings
from src.core.logging import setup_logging
from src.domain.services.artifact_store import ArtifactStore, LegacyPathResolver
from src.domain.services.recovery import RecoveryCoordinator
from src.domain.services.report_builder import ReportBuilder
from src.domain.services.report_renderer import ReportRenderer
from src.infrastructure.db.session import dispose_engine, get_session_factory
from src.libs.gpt_client import OpenAIClient
from src.libs.resend_client import ResendClient
from starlette.responses import Response
from structlog.contextvars import bind_contextvars, clear_contextvars

logger = structlog.get_logger(__name__)


def create_app() -> FastAPI:
    """Application factory for the report pipeline API."""
    settings = get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        builder = ReportBuilder(ReportRenderer(), ArtifactStore(settings))
        app.state.gpt_client = OpenAIClient()
        app.state.resend_client = ResendClient()
        app.state.report_builder = builder
        app.state.path_resolver = LegacyPathResolver(settings)
        app.state.recovery_coordinator = RecoveryCoordinator(get_session_factory(), builder)

        logger.info(
            "service_startup",
            service=settings.app_name,
            environment=settings.environment,
            version=settings.version,
            public_dir=str(settings.public_dir),
        )
        try:
            yield
        finally:
            await dispose_engine()
            logger.info("service_shutdown", service=settings.app_name)

    app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

    cors_origins = [
        settings.frontend_url,
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Allow all origins in local/development environment
    if settings.environment in ["local", "development"]:
        cors_origins.append("*")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins if "*" not in cors_origins else ["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    register_routes(app)

    @app.middleware("http")
    async def correlation_id_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get("x-request-id", str(uuid4()))
        bind_contextvars(
            request_id=request_id,
            path=str(request.url.path),
            method=request.method,
        )
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_contextvars()

    return app


app = create_app()
