from __future__ import annotations

import asyncio
import json
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession
from src.core.config import Settings
from src.infrastructure.db.models import (
    Assessment,
    AssessmentStatus,
    Survey,
    SurveyQuestion,
    UserModel,
)
from src.libs.gpt_client import GPTClientError, GPTResponse
from src.libs.resend_client import (
    EmailAttachment,
    ResendClientError,
    ResendEmailResponse,
)


def make_settings(tmp_path: Path, **overrides: object) -> Settings:
    values: dict[str, object] = {
        "APP_ENV": "test",
        "DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        "PROJECT_ROOT": tmp_path,
        "PUBLIC_DIR": tmp_path / "public",
        "OPENAI_API_KEY": "test-key",
        "RESEND_API_KEY": "test-resend-key",
        "RESEND_FROM_EMAIL": "reports@example.com",
        "FRONTEND_URL": "https://app.example.com",
        "BENCHMARK_MIN_SAMPLES": 2,
        "RECOMMENDATION_TIMEOUT_SECONDS": 5.0,
    }
    values.update(overrides)
    return Settings(**values)


GUEST = {"name": "Ada", "email": "ada@example.com", "company": "Acme Corp"}

QUESTIONS: Sequence[tuple[int, str, str]] = (
    (1, "We have a documented AI strategy.", "Strategy"),
    (2, "Our data is accessible to the teams that need it.", "Data"),
    (3, "Leadership sponsors AI initiatives.", "Strategy"),
)

COMPLETED_ON = datetime(2025, 3, 14, 9, 30, tzinfo=UTC)


def recommendation_payload(categories: Sequence[str] = ("Strategy", "Data")) -> dict[str, Any]:
    return {
        "intro": "Solid foundations with gaps in data access.",
        "categories": [
            {
                "name": name,
                "currentScore": 5,
                "benchmark": None,
                "trend": "First-time assessment",
                "bestPractices": [f"Improve {name.lower()} governance", "Run a pilot"],
            }
            for name in categories
        ],
        "outro": "Focus on one quick win per quarter.",
    }


def gpt_response(content: str) -> GPTResponse:
    return GPTResponse(
        content=content,
        model="gpt-4.1",
        prompt_tokens=120,
        completion_tokens=80,
        total_tokens=200,
        latency_ms=15,
        finish_reason="stop",
    )


class MockGPTClient:
    """Mock GPT client for testing."""

    def __init__(
        self,
        content: str | None = None,
        *,
        should_fail: bool = False,
        configured: bool = True,
        delay: float = 0.0,
    ) -> None:
        self.content = content if content is not None else json.dumps(recommendation_payload())
        self.should_fail = should_fail
        self.configured = configured
        self.delay = delay
        self.call_count = 0
        self.calls: list[dict[str, Any]] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        temperature: float = 0.0,
        max_tokens: int = 1000,
        response_format: dict[str, str] | None = None,
    ) -> GPTResponse:
        self.call_count += 1
        self.calls.append(
            {
                "messages": messages,
                "temperature": temperature,
                "max_tokens": max_tokens,
                "response_format": response_format,
            }
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.should_fail:
            raise GPTClientError("Mocked GPT failure")
        return gpt_response(self.content)


class MockResendClient:
    def __init__(self, *, should_fail: bool = False) -> None:
        self.should_fail = should_fail
        self.sent: list[dict[str, Any]] = []

    async def send_email(
        self,
        *,
        from_email: str,
        to_emails: list[str],
        subject: str,
        html: str,
        text: str,
        attachments: list[EmailAttachment] | None = None,
    ) -> ResendEmailResponse:
        if self.should_fail:
            raise ResendClientError("Mocked Resend failure")
        self.sent.append(
            {
                "from_email": from_email,
                "to_emails": to_emails,
                "subject": subject,
                "html": html,
                "text": text,
                "attachments": attachments,
            }
        )
        return ResendEmailResponse(id=f"email-{len(self.sent)}")


async def seed_survey(
    session: AsyncSession,
    *,
    survey_id: int = 1,
    questions: Sequence[tuple[int, str, str]] = QUESTIONS,
) -> Survey:
    survey = Survey(id=survey_id, title="AI Readiness")
    session.add(survey)
    for sequence, (question_id, text, category) in enumerate(questions, start=1):
        session.add(
            SurveyQuestion(
                id=question_id,
                survey_id=survey_id,
                sequence=sequence,
                text=text,
                category=category,
            )
        )
    await session.commit()
    return survey


async def seed_user(session: AsyncSession, *, user_id: int = 7, **fields: Any) -> UserModel:
    values = {
        "email": "grace@example.com",
        "name": "Grace",
        "company": "Hopper Labs",
        "employee_count": "11-50",
        "industry": "Software",
    }
    values.update(fields)
    user = UserModel(id=user_id, **values)
    session.add(user)
    await session.commit()
    return user


async def create_assessment(
    session: AsyncSession,
    *,
    survey_id: int = 1,
    user_id: int | None = None,
    guest: Any = None,
    status: AssessmentStatus = AssessmentStatus.DRAFT,
    answers: list[dict[str, Any]] | None = None,
    score: int | None = None,
    recommendations: Any = None,
    pdf_path: str | None = None,
    completed_on: datetime | None = None,
) -> Assessment:
    assessment = Assessment(
        survey_id=survey_id,
        user_id=user_id,
        guest=guest,
        status=status,
        answers=answers or [],
        score=score,
        recommendations=recommendations,
        pdf_path=pdf_path,
        completed_on=completed_on,
    )
    session.add(assessment)
    await session.commit()
    return assessment


async def create_completed_assessment(session: AsyncSession, **overrides: Any) -> Assessment:
    values: dict[str, Any] = {
        "guest": dict(GUEST),
        "status": AssessmentStatus.COMPLETED,
        "answers": [
            {"question_id": 1, "value": 2},
            {"question_id": 2, "value": -2},
            {"question_id": 3, "value": 0},
        ],
        "score": 50,
        "recommendations": recommendation_payload(),
        "completed_on": COMPLETED_ON,
    }
    values.update(overrides)
    return await create_assessment(session, **values)
