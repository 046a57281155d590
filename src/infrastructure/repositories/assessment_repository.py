from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import or_, select, update
from src.infrastructure.db.models import Assessment, AssessmentStatus

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger(__name__)


class AssessmentRepository:
    """Persistence for assessment records used by the completion pipeline."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, assessment_id: int) -> Assessment | None:
        stmt = (
            select(Assessment)
            .where(Assessment.id == assessment_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_pdf_path(self, relative_path: str) -> Assessment | None:
        """Find the record pointing at a path, whichever leading-slash form it was stored in."""
        stripped = relative_path.lstrip("/")
        stmt = (
            select(Assessment)
            .where(or_(Assessment.pdf_path == f"/{stripped}", Assessment.pdf_path == stripped))
            .order_by(Assessment.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def save_answers(
        self,
        assessment_id: int,
        answers: list[dict[str, Any]],
        status: AssessmentStatus,
    ) -> None:
        await self.session.execute(
            update(Assessment)
            .where(Assessment.id == assessment_id)
            .values(answers=answers, status=status)
        )
        await self.session.commit()

    async def mark_completed(
        self,
        assessment_id: int,
        *,
        score: int,
        answers: list[dict[str, Any]],
        completed_on: datetime,
    ) -> bool:
        """Move the record to completed; False when it already was."""
        result = await self.session.execute(
            update(Assessment)
            .where(
                Assessment.id == assessment_id,
                Assessment.status != AssessmentStatus.COMPLETED,
            )
            .values(
                status=AssessmentStatus.COMPLETED,
                score=score,
                answers=answers,
                completed_on=completed_on,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        if result.rowcount != 1:
            return False
        await logger.ainfo("assessment_marked_completed", assessment_id=assessment_id, score=score)
        return True

    async def save_recommendations(self, assessment_id: int, document: dict[str, Any]) -> None:
        await self.session.execute(
            update(Assessment)
            .where(Assessment.id == assessment_id)
            .values(recommendations=document)
        )
        await self.session.commit()

    async def update_pdf_path(self, assessment_id: int, relative_path: str) -> None:
        await self.session.execute(
            update(Assessment)
            .where(Assessment.id == assessment_id)
            .values(pdf_path=relative_path)
        )
        await self.session.commit()
        await logger.ainfo(
            "assessment_pdf_path_updated",
            assessment_id=assessment_id,
            pdf_path=relative_path,
        )

    async def get_previous_completed(self, assessment: Assessment) -> Assessment | None:
        """Most recent earlier completed assessment by the same owner for the same survey."""
        if assessment.user_id is None:
            return None

        stmt = (
            select(Assessment)
            .where(
                Assessment.survey_id == assessment.survey_id,
                Assessment.user_id == assessment.user_id,
                Assessment.status == AssessmentStatus.COMPLETED,
                Assessment.id != assessment.id,
            )
            .order_by(Assessment.completed_on.desc(), Assessment.id.desc())
            .limit(1)
        )
        if assessment.completed_on is not None:
            stmt = stmt.where(Assessment.completed_on <= assessment.completed_on)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_completed_for_survey(
        self,
        survey_id: int,
        *,
        exclude_id: int | None = None,
    ) -> Sequence[Assessment]:
        stmt = select(Assessment).where(
            Assessment.survey_id == survey_id,
            Assessment.status == AssessmentStatus.COMPLETED,
        )
        if exclude_id is not None:
            stmt = stmt.where(Assessment.id != exclude_id)
        result = await self.session.execute(stmt)
        return result.scalars().all()
