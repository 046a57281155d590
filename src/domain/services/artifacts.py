from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from src.domain.services.artifact_store import ArtifactPathError, LegacyPathResolver
from src.domain.services.recovery import RecoveryCoordinator, RecoveryReason, RecoveryResult
from src.infrastructure.repositories.assessment_repository import AssessmentRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from src.infrastructure.db.models import Assessment

logger = structlog.get_logger(__name__)


class LookupStatus(str, enum.Enum):
    FOUND = "found"
    RECOVERED = "recovered"
    NOT_RESOLVABLE = "not_resolvable"
    RECOVERY_FAILED = "recovery_failed"


@dataclass(slots=True, frozen=True)
class ArtifactLookup:
    status: LookupStatus
    path: Path | None = None
    relative_path: str | None = None
    recovery: RecoveryResult | None = None

    @property
    def available(self) -> bool:
        return self.path is not None

    @property
    def not_found(self) -> bool:
        if self.status == LookupStatus.NOT_RESOLVABLE:
            return True
        return self.recovery is not None and self.recovery.not_found

    @property
    def retryable(self) -> bool:
        return self.recovery is not None and self.recovery.retryable


class ArtifactService:
    """Serves report files by stored path or assessment id, recovering them when missing."""

    def __init__(
        self,
        session: AsyncSession,
        resolver: LegacyPathResolver,
        coordinator: RecoveryCoordinator,
    ) -> None:
        self.repository = AssessmentRepository(session)
        self.resolver = resolver
        self.coordinator = coordinator

    async def fetch(self, request_path: str) -> ArtifactLookup:
        resolved = self.resolver.resolve(request_path)
        if resolved.found:
            return ArtifactLookup(
                LookupStatus.FOUND, path=resolved.path, relative_path=request_path
            )

        assessment = await self.repository.get_by_pdf_path(request_path)
        if assessment is None and resolved.legacy_assessment_id is not None:
            assessment = await self.repository.get(resolved.legacy_assessment_id)
        if assessment is None:
            await logger.ainfo("artifact_not_resolvable", request_path=request_path)
            return ArtifactLookup(LookupStatus.NOT_RESOLVABLE)

        await logger.ainfo(
            "artifact_missing_on_disk",
            request_path=request_path,
            assessment_id=assessment.id,
        )
        return await self._serve_or_recover(assessment)

    async def fetch_for_assessment(self, assessment_id: int) -> ArtifactLookup:
        assessment = await self.repository.get(assessment_id)
        if assessment is None:
            return ArtifactLookup(
                LookupStatus.RECOVERY_FAILED,
                recovery=RecoveryResult.failed(RecoveryReason.NO_ASSESSMENT),
            )
        return await self._serve_or_recover(assessment)

    async def _serve_or_recover(self, assessment: Assessment) -> ArtifactLookup:
        if assessment.pdf_path:
            try:
                current = self.resolver.resolve(assessment.pdf_path)
            except ArtifactPathError as exc:
                await logger.awarning(
                    "artifact_stored_path_rejected",
                    assessment_id=assessment.id,
                    pdf_path=assessment.pdf_path,
                    error=str(exc),
                )
            else:
                if current.found:
                    return ArtifactLookup(
                        LookupStatus.FOUND,
                        path=current.path,
                        relative_path=assessment.pdf_path,
                    )

        recovery = await self.coordinator.ensure_artifact(assessment.id)
        if recovery.success:
            return ArtifactLookup(
                LookupStatus.RECOVERED,
                path=recovery.file_path,
                relative_path=recovery.relative_path,
                recovery=recovery,
            )
        return ArtifactLookup(LookupStatus.RECOVERY_FAILED, recovery=recovery)
