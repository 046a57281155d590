"""
Unit tests for the completion pipeline.

Each test drives ``CompletionOrchestrator.complete`` against a SQLite
database with mocked GPT and Resend clients and checks which stages ran.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncSession
from src.core.config import Settings
from src.domain.models import InvalidAnswersError
from src.domain.recommendation_document import load_document
from src.domain.scoring import ScoringError
from src.domain.services.collaborators import SurveyQuestionInfo
from src.domain.services.completion import (
    AssessmentAlreadyCompletedError,
    AssessmentNotFoundError,
    CompletionOrchestrator,
    StageStatus,
)
from src.domain.services.notifier import EMAIL_SUBJECT, CompletionNotifier
from src.domain.services.recommendations import RecommendationGenerator
from src.domain.services.report_builder import ReportBuilder
from src.domain.services.report_renderer import completion_date
from src.infrastructure.db.models import AssessmentStatus
from src.infrastructure.repositories.assessment_repository import AssessmentRepository
from src.infrastructure.repositories.directory import SqlUserDirectory
from tests.utils import (
    GUEST,
    MockGPTClient,
    MockResendClient,
    create_assessment,
    create_completed_assessment,
    make_settings,
    seed_survey,
    seed_user,
)

ANSWERS = [{"q": 1, "a": 2}, {"q": 2, "a": -2}, {"q": 3, "a": 0}]


def make_orchestrator(
    db: AsyncSession,
    settings: Settings,
    report_builder: ReportBuilder,
    gpt_client: MockGPTClient,
    resend_client: MockResendClient,
) -> CompletionOrchestrator:
    return CompletionOrchestrator(
        db,
        settings=settings,
        generator=RecommendationGenerator(gpt_client, settings),
        builder=report_builder,
        notifier=CompletionNotifier(resend_client, SqlUserDirectory(db), settings),
    )


@pytest.mark.asyncio
async def test_complete_runs_every_stage(
    db: AsyncSession,
    settings: Settings,
    report_builder: ReportBuilder,
    gpt_client: MockGPTClient,
    resend_client: MockResendClient,
) -> None:
    await seed_survey(db)
    assessment = await create_assessment(db, guest=dict(GUEST))
    orchestrator = make_orchestrator(db, settings, report_builder, gpt_client, resend_client)

    result = await orchestrator.complete(assessment.id, ANSWERS)

    assert result.score == 50
    date = completion_date(result.completed_on)
    assert result.pdf_path == f"/uploads/guest/ada@example.com/acme-corp-{date}.pdf"
    assert [(s.stage, s.status) for s in result.stages] == [
        ("scoring", StageStatus.COMPLETED),
        ("recommendations", StageStatus.COMPLETED),
        ("artifact", StageStatus.COMPLETED),
        ("notification", StageStatus.COMPLETED),
    ]

    pdf = Path(settings.public_dir) / result.pdf_path.lstrip("/")
    assert pdf.read_bytes().startswith(b"%PDF")

    stored = await AssessmentRepository(db).get(assessment.id)
    assert stored is not None
    assert stored.status == AssessmentStatus.COMPLETED
    assert stored.score == 50
    assert stored.pdf_path == result.pdf_path
    assert stored.completed_on is not None
    document = load_document(stored.recommendations)
    assert document is not None
    assert [c.name for c in document.categories] == ["Strategy", "Data"]
    assert document.categories[0].current_score == 7.5
    assert document.categories[1].current_score == 0.0

    assert gpt_client.call_count == 1
    (email,) = resend_client.sent
    assert email["to_emails"] == ["ada@example.com"]
    assert email["subject"] == EMAIL_SUBJECT
    assert f"https://app.example.com{result.pdf_path}" in email["text"]
    (attachment,) = email["attachments"]
    assert attachment.filename == f"acme-corp-{date}.pdf"
    assert attachment.content == pdf.read_bytes()


@pytest.mark.asyncio
async def test_complete_merges_previously_saved_answers(
    db: AsyncSession,
    settings: Settings,
    report_builder: ReportBuilder,
    gpt_client: MockGPTClient,
    resend_client: MockResendClient,
) -> None:
    await seed_survey(db)
    assessment = await create_assessment(
        db,
        status=AssessmentStatus.IN_PROGRESS,
        answers=[{"question_id": 1, "value": -2}, {"question_id": 2, "value": -2}],
    )
    orchestrator = make_orchestrator(db, settings, report_builder, gpt_client, resend_client)

    result = await orchestrator.complete(assessment.id, [{"q": 1, "a": 2}, {"q": 3, "a": 0}])

    assert result.score == 50
    stored = await AssessmentRepository(db).get(assessment.id)
    assert stored is not None
    assert stored.answers == [
        {"question_id": 1, "value": 2},
        {"question_id": 2, "value": -2},
        {"question_id": 3, "value": 0},
    ]


@pytest.mark.asyncio
async def test_gpt_failure_keeps_completion(
    db: AsyncSession,
    settings: Settings,
    report_builder: ReportBuilder,
    resend_client: MockResendClient,
) -> None:
    await seed_survey(db)
    assessment = await create_assessment(db, guest={"email": "ada@example.com"})
    gpt_client = MockGPTClient(should_fail=True)
    orchestrator = make_orchestrator(db, settings, report_builder, gpt_client, resend_client)

    result = await orchestrator.complete(assessment.id, ANSWERS)

    assert result.score == 50
    assert result.pdf_path is None
    assert result.stage("recommendations").status == StageStatus.FAILED
    assert result.stage("artifact").status == StageStatus.SKIPPED
    assert result.stage("notification").status == StageStatus.SKIPPED

    stored = await AssessmentRepository(db).get(assessment.id)
    assert stored is not None
    assert stored.status == AssessmentStatus.COMPLETED
    assert stored.score == 50
    assert stored.recommendations is None
    assert stored.pdf_path is None
    assert resend_client.sent == []


@pytest.mark.asyncio
async def test_missing_api_key_skips_the_model_call(
    db: AsyncSession,
    settings: Settings,
    report_builder: ReportBuilder,
    resend_client: MockResendClient,
) -> None:
    await seed_survey(db)
    assessment = await create_assessment(db)
    gpt_client = MockGPTClient(configured=False)
    orchestrator = make_orchestrator(db, settings, report_builder, gpt_client, resend_client)

    result = await orchestrator.complete(assessment.id, ANSWERS)

    assert gpt_client.call_count == 0
    assert result.stage("recommendations").status == StageStatus.FAILED


@pytest.mark.asyncio
async def test_email_failure_does_not_fail_completion(
    db: AsyncSession,
    settings: Settings,
    report_builder: ReportBuilder,
    gpt_client: MockGPTClient,
) -> None:
    await seed_survey(db)
    assessment = await create_assessment(db, guest=dict(GUEST))
    orchestrator = make_orchestrator(
        db, settings, report_builder, gpt_client, MockResendClient(should_fail=True)
    )

    result = await orchestrator.complete(assessment.id, ANSWERS)

    assert result.pdf_path is not None
    assert result.stage("artifact").status == StageStatus.COMPLETED
    assert result.stage("notification").status == StageStatus.FAILED


@pytest.mark.asyncio
async def test_registered_user_report_lands_in_user_folder(
    db: AsyncSession,
    settings: Settings,
    report_builder: ReportBuilder,
    gpt_client: MockGPTClient,
    resend_client: MockResendClient,
) -> None:
    await seed_survey(db)
    await seed_user(db)
    assessment = await create_assessment(db, user_id=7)
    orchestrator = make_orchestrator(db, settings, report_builder, gpt_client, resend_client)

    result = await orchestrator.complete(assessment.id, ANSWERS)

    assert result.pdf_path is not None
    assert result.pdf_path.startswith("/uploads/7/hopper-labs-")
    assert resend_client.sent[0]["to_emails"] == ["grace@example.com"]


@pytest.mark.asyncio
async def test_completed_assessment_is_rejected(
    db: AsyncSession,
    settings: Settings,
    report_builder: ReportBuilder,
    gpt_client: MockGPTClient,
    resend_client: MockResendClient,
) -> None:
    await seed_survey(db)
    assessment = await create_completed_assessment(db)
    orchestrator = make_orchestrator(db, settings, report_builder, gpt_client, resend_client)

    with pytest.raises(AssessmentAlreadyCompletedError):
        await orchestrator.complete(assessment.id, ANSWERS)

    assert gpt_client.call_count == 0


@pytest.mark.asyncio
async def test_unknown_assessment_is_rejected(
    db: AsyncSession,
    settings: Settings,
    report_builder: ReportBuilder,
    gpt_client: MockGPTClient,
    resend_client: MockResendClient,
) -> None:
    orchestrator = make_orchestrator(db, settings, report_builder, gpt_client, resend_client)

    with pytest.raises(AssessmentNotFoundError):
        await orchestrator.complete(404, ANSWERS)


@pytest.mark.asyncio
async def test_malformed_answers_are_rejected(
    db: AsyncSession,
    settings: Settings,
    report_builder: ReportBuilder,
    gpt_client: MockGPTClient,
    resend_client: MockResendClient,
) -> None:
    await seed_survey(db)
    assessment = await create_assessment(db)
    orchestrator = make_orchestrator(db, settings, report_builder, gpt_client, resend_client)

    with pytest.raises(InvalidAnswersError):
        await orchestrator.complete(assessment.id, {"q": 1, "a": 2})

    stored = await AssessmentRepository(db).get(assessment.id)
    assert stored is not None
    assert stored.status == AssessmentStatus.DRAFT


@pytest.mark.asyncio
async def test_strict_scoring_rejects_out_of_range_values(
    db: AsyncSession,
    settings: Settings,
    report_builder: ReportBuilder,
    gpt_client: MockGPTClient,
    resend_client: MockResendClient,
) -> None:
    await seed_survey(db)
    assessment = await create_assessment(db)
    orchestrator = make_orchestrator(db, settings, report_builder, gpt_client, resend_client)

    with pytest.raises(ScoringError):
        await orchestrator.complete(assessment.id, [{"q": 1, "a": 5}])

    stored = await AssessmentRepository(db).get(assessment.id)
    assert stored is not None
    assert stored.status == AssessmentStatus.DRAFT
    assert stored.score is None


@pytest.mark.asyncio
async def test_lenient_scoring_clamps_out_of_range_values(
    db: AsyncSession,
    tmp_path: Path,
    report_builder: ReportBuilder,
    gpt_client: MockGPTClient,
    resend_client: MockResendClient,
) -> None:
    settings = make_settings(tmp_path, STRICT_SCORING=False)
    await seed_survey(db)
    assessment = await create_assessment(db)
    orchestrator = make_orchestrator(db, settings, report_builder, gpt_client, resend_client)

    result = await orchestrator.complete(assessment.id, [{"q": 1, "a": 5}, {"q": 2, "a": -9}])

    assert result.score == 50


class UnavailableCatalog:
    async def get_questions_for_survey(self, survey_id: int) -> list[SurveyQuestionInfo]:
        raise RuntimeError("catalog service down")


@pytest.mark.asyncio
async def test_catalog_outage_keeps_completion(
    db: AsyncSession,
    settings: Settings,
    report_builder: ReportBuilder,
    gpt_client: MockGPTClient,
    resend_client: MockResendClient,
) -> None:
    await seed_survey(db)
    assessment = await create_assessment(db, guest=dict(GUEST))
    orchestrator = CompletionOrchestrator(
        db,
        settings=settings,
        generator=RecommendationGenerator(gpt_client, settings),
        builder=report_builder,
        notifier=CompletionNotifier(resend_client, SqlUserDirectory(db), settings),
        catalog=UnavailableCatalog(),
    )

    result = await orchestrator.complete(assessment.id, ANSWERS)

    assert result.score == 50
    assert result.pdf_path is None
    recommendations = result.stage("recommendations")
    assert recommendations is not None
    assert recommendations.status == StageStatus.FAILED
    assert recommendations.detail == "catalog service down"
    assert result.stage("artifact").status == StageStatus.SKIPPED
    assert result.stage("notification").status == StageStatus.SKIPPED
    assert gpt_client.call_count == 0
    assert resend_client.sent == []

    stored = await AssessmentRepository(db).get(assessment.id)
    assert stored is not None
    assert stored.status == AssessmentStatus.COMPLETED
    assert stored.score == 50
