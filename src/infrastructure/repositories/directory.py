from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select
from src.domain.services.collaborators import SurveyQuestionInfo, UserInfo
from src.infrastructure.db.models import SurveyQuestion, UserModel

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class SqlSurveyCatalog:
    """Reads survey questions from the shared database."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_questions_for_survey(self, survey_id: int) -> list[SurveyQuestionInfo]:
        stmt = (
            select(SurveyQuestion)
            .where(SurveyQuestion.survey_id == survey_id)
            .order_by(SurveyQuestion.sequence)
        )
        result = await self.session.execute(stmt)
        return [
            SurveyQuestionInfo(id=row.id, text=row.text, category=row.category)
            for row in result.scalars().all()
        ]


class SqlUserDirectory:
    """Reads user profiles from the shared database."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_user_by_id(self, user_id: int) -> UserInfo | None:
        stmt = select(UserModel).where(UserModel.id == user_id)
        result = await self.session.execute(stmt)
        user = result.scalar_one_or_none()
        if user is None:
            return None
        return UserInfo(
            id=user.id,
            email=user.email,
            name=user.name,
            company=user.company,
            employee_count=user.employee_count,
            industry=user.industry,
        )
