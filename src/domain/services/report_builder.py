"""
Shared steps for turning an assessment into a stored report.

Completion and recovery both go through ``ReportBuilder`` so a re-rendered
report lands at the same path with the same layout as the original.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import TYPE_CHECKING

from src.domain.models import Answer, GuestIdentity, OwnerContext
from src.domain.services.recommendations import QuestionResponse
from src.domain.services.report_renderer import (
    ReportData,
    ReportRenderer,
    build_artifact_filename,
)

if TYPE_CHECKING:
    from datetime import datetime

    from src.domain.recommendation_document import RecommendationDocument
    from src.domain.services.artifact_store import ArtifactStore, StoredArtifact
    from src.domain.services.collaborators import SurveyQuestionInfo, UserDirectoryProtocol
    from src.infrastructure.db.models import Assessment


async def resolve_owner(assessment: Assessment, users: UserDirectoryProtocol) -> OwnerContext:
    """Owner details for storage and delivery; raises InvalidGuestDataError on a bad snapshot."""
    if assessment.user_id is not None:
        user = await users.get_user_by_id(assessment.user_id)
        if user is None:
            return OwnerContext(user_id=assessment.user_id)
        return OwnerContext(
            user_id=assessment.user_id,
            company_name=user.company,
            recipient_name=user.name,
            recipient_email=user.email,
        )

    guest = GuestIdentity.from_raw(assessment.guest)
    if guest is None:
        return OwnerContext()
    return OwnerContext(
        guest_email=guest.email,
        company_name=guest.company,
        recipient_name=guest.name,
        recipient_email=guest.email,
    )


def question_responses(
    answers: Sequence[Answer],
    questions: Sequence[SurveyQuestionInfo],
) -> list[QuestionResponse]:
    texts = {question.id: question.text for question in questions}
    return [
        QuestionResponse(
            question=texts.get(answer.question_id, f"Question {answer.question_id}"),
            answer=answer.value,
        )
        for answer in answers
        if answer.question_id is not None
    ]


class ReportBuilder:
    """Renders a report off the event loop and writes it to the artifact store."""

    def __init__(self, renderer: ReportRenderer, store: ArtifactStore) -> None:
        self.renderer = renderer
        self.store = store

    async def build_and_store(
        self,
        *,
        assessment: Assessment,
        completed_on: datetime,
        score: int,
        document: RecommendationDocument,
        answers: Sequence[Answer],
        questions: Sequence[SurveyQuestionInfo],
        owner: OwnerContext,
    ) -> StoredArtifact:
        report = ReportData(
            assessment_id=assessment.id,
            company_name=owner.company_name,
            completed_on=completed_on,
            score=score,
            document=document,
            responses=question_responses(answers, questions),
        )
        content = await asyncio.to_thread(self.renderer.render, report)
        file_name = build_artifact_filename(owner.company_name, completed_on)
        return await self.store.save(owner, file_name, content)
