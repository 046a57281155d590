from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

import structlog
from src.domain.models import InvalidAnswersError, parse_answers
from src.domain.scoring import ScoringError, category_scores

if TYPE_CHECKING:
    from src.core.config import Settings
    from src.domain.services.collaborators import SurveyQuestionInfo
    from src.infrastructure.db.models import Assessment
    from src.infrastructure.repositories.assessment_repository import AssessmentRepository

logger = structlog.get_logger(__name__)


class BenchmarkService:
    """
    Category comparisons for the recommendation prompt and the report.

    Benchmarks average other completed assessments of the same survey.
    Submissions where every answer is identical are treated as filler and
    left out, and a category is only benchmarked once enough real samples exist.
    """

    def __init__(self, repository: AssessmentRepository, settings: Settings) -> None:
        self.repository = repository
        self.settings = settings

    async def category_benchmarks(
        self,
        assessment: Assessment,
        questions: Sequence[SurveyQuestionInfo],
    ) -> dict[str, float] | None:
        peers = await self.repository.list_completed_for_survey(
            assessment.survey_id, exclude_id=assessment.id
        )

        totals: dict[str, list[float]] = {}
        samples = 0
        for peer in peers:
            scores = _peer_scores(peer, questions)
            if scores is None:
                continue
            samples += 1
            for name, score in scores.items():
                totals.setdefault(name, []).append(score)

        if samples < self.settings.benchmark_min_samples:
            await logger.adebug(
                "benchmark_insufficient_samples",
                assessment_id=assessment.id,
                survey_id=assessment.survey_id,
                samples=samples,
            )
            return None

        return {name: round(sum(values) / len(values), 1) for name, values in totals.items()}

    async def previous_scores(
        self,
        assessment: Assessment,
        questions: Sequence[SurveyQuestionInfo],
    ) -> dict[str, float] | None:
        """Category scores from the owner's last completed run of the same survey."""
        previous = await self.repository.get_previous_completed(assessment)
        if previous is None:
            return None
        try:
            answers = parse_answers(previous.answers)
            return {
                category.name: category.score
                for category in category_scores(answers, questions)
                if category.answered
            }
        except (InvalidAnswersError, ScoringError) as exc:
            await logger.awarning(
                "previous_scores_unreadable",
                assessment_id=assessment.id,
                previous_id=previous.id,
                error=str(exc),
            )
            return None


def _peer_scores(
    peer: Assessment,
    questions: Sequence[SurveyQuestionInfo],
) -> dict[str, float] | None:
    try:
        answers = parse_answers(peer.answers)
    except InvalidAnswersError:
        return None

    values = {
        answer.value
        for answer in answers
        if isinstance(answer.value, int | float) and not isinstance(answer.value, bool)
    }
    if len(values) < 2:
        return None

    try:
        scores = category_scores(answers, questions)
    except ScoringError:
        return None
    return {category.name: category.score for category in scores if category.answered}
