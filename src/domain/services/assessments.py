from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog
from src.domain.errors import NotFoundError, PipelineError
from src.domain.models import merge_answers, parse_answers
from src.infrastructure.db.models import AssessmentStatus
from src.infrastructure.repositories.assessment_repository import AssessmentRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger(__name__)


class AssessmentNotFoundError(NotFoundError):
    """Raised when the requested assessment does not exist."""


class AssessmentAlreadyCompletedError(PipelineError):
    """Raised when answers are submitted to a completed assessment."""


@dataclass(slots=True)
class SavedAnswers:
    assessment_id: int
    status: str
    answers: list[dict[str, Any]]


class AssessmentService:
    """Domain logic for assessment lifecycle operations before completion."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.repository = AssessmentRepository(session)

    async def save_answers(self, assessment_id: int, raw_answers: Any) -> SavedAnswers:
        """Merge new answers into the draft; the first save moves it to in_progress."""
        assessment = await self.repository.get(assessment_id)
        if assessment is None:
            raise AssessmentNotFoundError(f"Assessment {assessment_id} not found")
        if assessment.status == AssessmentStatus.COMPLETED:
            raise AssessmentAlreadyCompletedError(
                f"Assessment {assessment_id} is already completed"
            )

        incoming = parse_answers(raw_answers)
        merged = merge_answers(parse_answers(assessment.answers), incoming)
        payload = [answer.to_dict() for answer in merged]

        await self.repository.save_answers(assessment_id, payload, AssessmentStatus.IN_PROGRESS)
        await logger.ainfo(
            "assessment_answers_saved",
            assessment_id=assessment_id,
            received=len(incoming),
            total=len(payload),
        )
        return SavedAnswers(
            assessment_id=assessment_id,
            status=AssessmentStatus.IN_PROGRESS.value,
            answers=payload,
        )
