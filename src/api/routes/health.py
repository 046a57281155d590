from __future__ import annotations

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter
from sqlalchemy import text
from src.core.config import get_settings
from src.infrastructure.db.session import get_session_factory

router = APIRouter(tags=["Observability"])
logger = structlog.get_logger(__name__)


async def check_postgres() -> dict:
    """Check PostgreSQL connection."""
    try:
        session_factory = get_session_factory()
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
            return {"status": "ok"}
    except Exception as e:
        return {"status": "error", "message": str(e)[:100]}


def check_public_dir() -> dict:
    """Check that the public directory exists."""
    settings = get_settings()
    public_dir = settings.public_dir
    if not public_dir.exists():
        return {"status": "missing", "path": str(public_dir)}
    return {"status": "ok", "path": str(public_dir)}


@router.get("/health", summary="Service health probe")
async def health_check() -> dict:
    """Return basic service and datastore status information."""
    settings = get_settings()

    postgres_status = await check_postgres()
    storage_status = check_public_dir()

    overall_status = "ok" if postgres_status.get("status") == "ok" else "degraded"

    payload = {
        "service": settings.app_name,
        "version": settings.version,
        "status": overall_status,
        "timestamp": datetime.now(UTC).isoformat(),
        "datastores": {
            "postgres": postgres_status,
            "storage": storage_status,
        },
    }
    await logger.ainfo("health_probe", **payload)
    return payload
