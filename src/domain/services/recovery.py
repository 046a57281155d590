"""
Report recovery.

Regenerates a missing PDF from what is already persisted on the assessment:
the stored score, answers and recommendation document. Recovery never rescores
and never calls the language model.

Concurrent requests for the same assessment share one in-flight task. The
guard is per process; running several instances against the same uploads
directory can still produce duplicate renders, which overwrite each other
with identical content.
"""

from __future__ import annotations

import asyncio
import enum
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from src.domain.models import InvalidAnswersError, InvalidGuestDataError, parse_answers
from src.domain.recommendation_document import RecommendationFormatError, load_document
from src.domain.services.artifact_store import ArtifactWriteError
from src.domain.services.report_builder import ReportBuilder, resolve_owner
from src.domain.services.report_renderer import ReportRenderError
from src.infrastructure.db.models import AssessmentStatus
from src.infrastructure.repositories.assessment_repository import AssessmentRepository
from src.infrastructure.repositories.directory import SqlSurveyCatalog, SqlUserDirectory

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
    from src.domain.services.collaborators import (
        SurveyCatalogProtocol,
        UserDirectoryProtocol,
    )

logger = structlog.get_logger(__name__)


class RecoveryReason(str, enum.Enum):
    NO_ASSESSMENT = "NO_ASSESSMENT"
    NOT_COMPLETED = "NOT_COMPLETED"
    NO_RECOMMENDATIONS = "NO_RECOMMENDATIONS"
    NO_ANSWERS = "NO_ANSWERS"
    NO_QUESTIONS = "NO_QUESTIONS"
    INVALID_GUEST_DATA = "INVALID_GUEST_DATA"
    GENERATION_FAILED = "GENERATION_FAILED"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


NOT_FOUND_REASONS = frozenset(
    {
        RecoveryReason.NO_ASSESSMENT,
        RecoveryReason.NOT_COMPLETED,
        RecoveryReason.NO_RECOMMENDATIONS,
        RecoveryReason.NO_ANSWERS,
        RecoveryReason.NO_QUESTIONS,
        RecoveryReason.INVALID_GUEST_DATA,
    }
)


@dataclass(slots=True, frozen=True)
class RecoveryResult:
    success: bool
    file_path: Path | None = None
    relative_path: str | None = None
    reason: RecoveryReason | None = None
    error: str | None = None

    @property
    def not_found(self) -> bool:
        """Nothing to recover from; asking again will not help."""
        return not self.success and self.reason in NOT_FOUND_REASONS

    @property
    def retryable(self) -> bool:
        return not self.success and not self.not_found

    @classmethod
    def failed(cls, reason: RecoveryReason, error: str | None = None) -> RecoveryResult:
        return cls(success=False, reason=reason, error=error)


class RecoveryCoordinator:
    """Process-wide recovery entry point; build once and share."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        builder: ReportBuilder,
        *,
        catalog_factory: Callable[[AsyncSession], SurveyCatalogProtocol] = SqlSurveyCatalog,
        directory_factory: Callable[[AsyncSession], UserDirectoryProtocol] = SqlUserDirectory,
    ) -> None:
        self.session_factory = session_factory
        self.builder = builder
        self.catalog_factory = catalog_factory
        self.directory_factory = directory_factory
        self._in_flight: dict[int, asyncio.Task[RecoveryResult]] = {}

    def is_recovering(self, assessment_id: int) -> bool:
        return assessment_id in self._in_flight

    async def ensure_artifact(self, assessment_id: int) -> RecoveryResult:
        task = self._in_flight.get(assessment_id)
        if task is not None:
            await logger.ainfo("recovery_joined_in_flight", assessment_id=assessment_id)
            return await asyncio.shield(task)

        task = asyncio.create_task(self._recover(assessment_id))
        self._in_flight[assessment_id] = task
        task.add_done_callback(lambda done: self._release(assessment_id, done))
        return await asyncio.shield(task)

    def _release(self, assessment_id: int, task: asyncio.Task[RecoveryResult]) -> None:
        if self._in_flight.get(assessment_id) is task:
            del self._in_flight[assessment_id]

    async def _recover(self, assessment_id: int) -> RecoveryResult:
        await logger.ainfo("recovery_started", assessment_id=assessment_id)
        try:
            result = await self._run(assessment_id)
        except Exception as exc:
            await logger.aexception(
                "recovery_unexpected_error", assessment_id=assessment_id, error=str(exc)
            )
            return RecoveryResult.failed(RecoveryReason.UNEXPECTED_ERROR, str(exc))

        if result.success:
            await logger.ainfo(
                "recovery_succeeded",
                assessment_id=assessment_id,
                relative_path=result.relative_path,
            )
        else:
            await logger.awarning(
                "recovery_failed",
                assessment_id=assessment_id,
                reason=result.reason.value if result.reason else None,
                error=result.error,
            )
        return result

    async def _run(self, assessment_id: int) -> RecoveryResult:
        async with self.session_factory() as session:
            repository = AssessmentRepository(session)
            assessment = await repository.get(assessment_id)
            if assessment is None:
                return RecoveryResult.failed(RecoveryReason.NO_ASSESSMENT)
            if assessment.status != AssessmentStatus.COMPLETED:
                return RecoveryResult.failed(
                    RecoveryReason.NOT_COMPLETED, f"Assessment status is {assessment.status.value}"
                )

            try:
                document = load_document(assessment.recommendations)
            except RecommendationFormatError as exc:
                return RecoveryResult.failed(RecoveryReason.NO_RECOMMENDATIONS, str(exc))
            if document is None:
                return RecoveryResult.failed(RecoveryReason.NO_RECOMMENDATIONS)

            try:
                answers = parse_answers(assessment.answers)
            except InvalidAnswersError as exc:
                return RecoveryResult.failed(RecoveryReason.NO_ANSWERS, str(exc))
            if not answers:
                return RecoveryResult.failed(RecoveryReason.NO_ANSWERS)

            questions = await self.catalog_factory(session).get_questions_for_survey(
                assessment.survey_id
            )
            if not questions:
                return RecoveryResult.failed(RecoveryReason.NO_QUESTIONS)

            try:
                owner = await resolve_owner(assessment, self.directory_factory(session))
            except InvalidGuestDataError as exc:
                return RecoveryResult.failed(RecoveryReason.INVALID_GUEST_DATA, str(exc))

            completed_on = assessment.completed_on or assessment.updated_at
            try:
                stored = await self.builder.build_and_store(
                    assessment=assessment,
                    completed_on=completed_on,
                    score=assessment.score or 0,
                    document=document,
                    answers=answers,
                    questions=questions,
                    owner=owner,
                )
            except (ReportRenderError, ArtifactWriteError) as exc:
                return RecoveryResult.failed(RecoveryReason.GENERATION_FAILED, str(exc))

            await repository.update_pdf_path(assessment.id, stored.relative_path)
            return RecoveryResult(
                success=True,
                file_path=stored.absolute_path,
                relative_path=stored.relative_path,
            )
