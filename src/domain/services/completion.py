"""
Assessment completion pipeline.

Completing an assessment scores the answers and persists the transition
first. Recommendations, the PDF report and the notification email follow in
order, each depending on the previous one. A failure in those later stages is
logged and reported in the result but never undoes the completion; the report
can be regenerated later by recovery.
"""

from __future__ import annotations

import enum
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog
from src.domain.errors import PipelineError
from src.domain.models import (
    Answer,
    CompanyProfile,
    GuestIdentity,
    merge_answers,
    parse_answers,
)
from src.domain.scoring import category_scores, compute_score
from src.domain.services.assessments import (
    AssessmentAlreadyCompletedError,
    AssessmentNotFoundError,
)
from src.domain.services.benchmarks import BenchmarkService
from src.domain.services.recommendations import RecommendationContext
from src.domain.services.report_builder import question_responses, resolve_owner
from src.infrastructure.db.models import AssessmentStatus
from src.infrastructure.repositories.assessment_repository import AssessmentRepository
from src.infrastructure.repositories.directory import SqlSurveyCatalog, SqlUserDirectory

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from src.core.config import Settings
    from src.domain.recommendation_document import RecommendationDocument
    from src.domain.services.artifact_store import StoredArtifact
    from src.domain.services.collaborators import (
        SurveyCatalogProtocol,
        SurveyQuestionInfo,
        UserDirectoryProtocol,
    )
    from src.domain.services.notifier import CompletionNotifier
    from src.domain.services.recommendations import RecommendationGenerator
    from src.domain.services.report_builder import ReportBuilder
    from src.infrastructure.db.models import Assessment

logger = structlog.get_logger(__name__)

__all__ = [
    "AssessmentAlreadyCompletedError",
    "AssessmentNotFoundError",
    "CompletionOrchestrator",
    "CompletionResult",
    "StageOutcome",
    "StageStatus",
]


class StageStatus(str, enum.Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(slots=True, frozen=True)
class StageOutcome:
    stage: str
    status: StageStatus
    detail: str | None = None


@dataclass(slots=True)
class CompletionResult:
    assessment_id: int
    score: int
    completed_on: datetime
    pdf_path: str | None = None
    stages: list[StageOutcome] = field(default_factory=list)

    def stage(self, name: str) -> StageOutcome | None:
        return next((outcome for outcome in self.stages if outcome.stage == name), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "assessment_id": self.assessment_id,
            "status": AssessmentStatus.COMPLETED.value,
            "score": self.score,
            "completed_on": self.completed_on.isoformat(),
            "pdf_path": self.pdf_path,
            "stages": [
                {"stage": outcome.stage, "status": outcome.status.value, "detail": outcome.detail}
                for outcome in self.stages
            ],
        }


class CompletionOrchestrator:
    """Runs the completion pipeline for one assessment."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        settings: Settings,
        generator: RecommendationGenerator,
        builder: ReportBuilder,
        notifier: CompletionNotifier,
        catalog: SurveyCatalogProtocol | None = None,
        users: UserDirectoryProtocol | None = None,
    ) -> None:
        self.settings = settings
        self.generator = generator
        self.builder = builder
        self.notifier = notifier
        self.repository = AssessmentRepository(session)
        self.catalog = catalog or SqlSurveyCatalog(session)
        self.users = users or SqlUserDirectory(session)
        self.benchmarks = BenchmarkService(self.repository, settings)

    async def complete(self, assessment_id: int, raw_answers: Any) -> CompletionResult:
        assessment = await self.repository.get(assessment_id)
        if assessment is None:
            raise AssessmentNotFoundError(f"Assessment {assessment_id} not found")
        if assessment.status == AssessmentStatus.COMPLETED:
            raise AssessmentAlreadyCompletedError(
                f"Assessment {assessment_id} is already completed"
            )

        answers = merge_answers(parse_answers(assessment.answers), parse_answers(raw_answers))
        score = compute_score(answers, strict=self.settings.scoring_is_strict)

        completed_on = datetime.now(UTC)
        transitioned = await self.repository.mark_completed(
            assessment_id,
            score=score,
            answers=[answer.to_dict() for answer in answers],
            completed_on=completed_on,
        )
        if not transitioned:
            raise AssessmentAlreadyCompletedError(
                f"Assessment {assessment_id} is already completed"
            )

        result = CompletionResult(
            assessment_id=assessment_id,
            score=score,
            completed_on=completed_on,
            stages=[StageOutcome("scoring", StageStatus.COMPLETED)],
        )

        document = None
        questions = await self._load_questions(assessment, result)
        if questions is not None:
            document = await self._generate(assessment, answers, questions, result)

        artifact = None
        if document is not None:
            artifact = await self._store_report(
                assessment, answers, questions, document, score, completed_on, result
            )
        else:
            result.stages.append(
                StageOutcome("artifact", StageStatus.SKIPPED, "no recommendations")
            )

        if artifact is not None:
            result.pdf_path = artifact.relative_path
            sent = await self.notifier.notify(assessment, artifact)
            result.stages.append(
                StageOutcome(
                    "notification",
                    StageStatus.COMPLETED if sent else StageStatus.FAILED,
                    None if sent else "email not sent",
                )
            )
        else:
            result.stages.append(StageOutcome("notification", StageStatus.SKIPPED, "no artifact"))

        await logger.ainfo(
            "assessment_completion_finished",
            assessment_id=assessment_id,
            score=score,
            pdf_path=result.pdf_path,
            stages={outcome.stage: outcome.status.value for outcome in result.stages},
        )
        return result

    async def build_context(
        self,
        assessment: Assessment,
        answers: Sequence[Answer],
        questions: Sequence[SurveyQuestionInfo],
    ) -> RecommendationContext:
        company = await self._company_profile(assessment)

        return RecommendationContext(
            assessment_id=assessment.id,
            categories=category_scores(answers, questions),
            company=company,
            responses=question_responses(answers, questions),
            previous_scores=await self.benchmarks.previous_scores(assessment, questions),
            benchmarks=await self.benchmarks.category_benchmarks(assessment, questions),
        )

    async def _company_profile(self, assessment: Assessment) -> CompanyProfile:
        if assessment.user_id is not None:
            user = await self.users.get_user_by_id(assessment.user_id)
            if user is None:
                return CompanyProfile()
            return CompanyProfile(
                name=user.company,
                employee_count=user.employee_count,
                industry=user.industry,
            )

        guest = GuestIdentity.from_raw(assessment.guest)
        if guest is None:
            return CompanyProfile()
        return CompanyProfile(
            name=guest.company,
            employee_count=guest.employee_count,
            industry=guest.industry,
        )

    async def _load_questions(
        self, assessment: Assessment, result: CompletionResult
    ) -> list[SurveyQuestionInfo] | None:
        try:
            return await self.catalog.get_questions_for_survey(assessment.survey_id)
        except Exception as exc:
            # Completion is already committed at this point.
            await self._stage_failed(assessment.id, "recommendations", exc, result, unexpected=True)
            return None

    async def _generate(
        self,
        assessment: Assessment,
        answers: Sequence[Answer],
        questions: Sequence[SurveyQuestionInfo],
        result: CompletionResult,
    ) -> RecommendationDocument | None:
        stage = "recommendations"
        if not questions:
            await logger.awarning(
                "completion_stage_failed",
                assessment_id=assessment.id,
                stage=stage,
                error="survey has no questions",
            )
            result.stages.append(StageOutcome(stage, StageStatus.FAILED, "survey has no questions"))
            return None

        try:
            context = await self.build_context(assessment, answers, questions)
            document = await self.generator.generate(context)
            await self.repository.save_recommendations(assessment.id, document.to_storage())
        except PipelineError as exc:
            await self._stage_failed(assessment.id, stage, exc, result)
            return None
        except Exception as exc:
            await self._stage_failed(assessment.id, stage, exc, result, unexpected=True)
            return None

        result.stages.append(StageOutcome(stage, StageStatus.COMPLETED))
        return document

    async def _store_report(
        self,
        assessment: Assessment,
        answers: Sequence[Answer],
        questions: Sequence[SurveyQuestionInfo],
        document: RecommendationDocument,
        score: int,
        completed_on: datetime,
        result: CompletionResult,
    ) -> StoredArtifact | None:
        stage = "artifact"
        try:
            owner = await resolve_owner(assessment, self.users)
            artifact = await self.builder.build_and_store(
                assessment=assessment,
                completed_on=completed_on,
                score=score,
                document=document,
                answers=answers,
                questions=questions,
                owner=owner,
            )
            await self.repository.update_pdf_path(assessment.id, artifact.relative_path)
        except PipelineError as exc:
            await self._stage_failed(assessment.id, stage, exc, result)
            return None
        except Exception as exc:
            await self._stage_failed(assessment.id, stage, exc, result, unexpected=True)
            return None

        result.stages.append(StageOutcome(stage, StageStatus.COMPLETED))
        return artifact

    async def _stage_failed(
        self,
        assessment_id: int,
        stage: str,
        exc: Exception,
        result: CompletionResult,
        *,
        unexpected: bool = False,
    ) -> None:
        log = logger.aexception if unexpected else logger.aerror
        await log(
            "completion_stage_failed",
            assessment_id=assessment_id,
            stage=stage,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        result.stages.append(StageOutcome(stage, StageStatus.FAILED, str(exc)))
