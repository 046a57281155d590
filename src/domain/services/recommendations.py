"""
Recommendation generation via GPT.

One request per completed assessment: category scores, trend and benchmark
figures, the company profile and the answered questions go to the model, which
replies with a JSON recommendation document.
"""

from __future__ import annotations

import asyncio
import json
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog
from src.domain.errors import ConfigurationError, TransientExternalError
from src.domain.models import CompanyProfile
from src.domain.recommendation_document import (
    RecommendationDocument,
    RecommendationFormatError,
    parse_document,
)
from src.libs.gpt_client import GPTClientError, GPTClientProtocol, GPTConfigurationError

if TYPE_CHECKING:
    from src.core.config import Settings
    from src.domain.scoring import CategoryScore

logger = structlog.get_logger(__name__)


RECOMMENDATION_SYSTEM_PROMPT = """You are an intelligent AI assistant supporting \
company managers by analyzing AI readiness assessment results.
Scores are given per category on a 0 to 10 scale. Generate actionable, \
prioritized suggestions to improve performance, address weaknesses, and \
capitalize on strengths.

Inputs (JSON object):
- categories: each with name, score, previousScore and benchmark.
- company: name, employeeCount, industry.
- responses: each with the question text (q) and the answer (a) on a -2 to 2 \
scale, where -2 is strongly disagree, 0 is neutral and 2 is strongly agree.

Respond in JSON format only:
{
  "intro": "<2-3 sentence overview of the results>",
  "categories": [
    {
      "name": "<category name exactly as given>",
      "currentScore": <number 0-10>,
      "benchmark": <number 0-10 or null>,
      "trend": "<Up by x points | Down by x points | No change | First-time assessment>",
      "bestPractices": ["<practice>", "<practice>", "<practice>"]
    }
  ],
  "outro": "<the five highest-impact, easiest to implement actions for the next \
90 days, each with a one-line rationale>"
}

Rules:
- Include one entry per input category, in the given order.
- If benchmark is null, return null for it.
- If previousScore is null, the trend is "First-time assessment".
- Give the top 3 best practices per category, each at most 20 words.
- Highlight critical areas needing immediate attention.
- Tone: concise, insightful, strategic. Avoid generic advice.
- Keep every insight practical and relevant to the company's industry.
"""

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(?P<body>.*?)\s*```$", re.DOTALL)


class RecommendationConfigurationError(ConfigurationError):
    """Raised when the language model client has no API key."""


class RecommendationUnavailableError(TransientExternalError):
    """Raised when the language model call fails or returns nothing."""


class RecommendationParseError(TransientExternalError):
    """Raised when the model reply is not a valid recommendation document."""


@dataclass(slots=True, frozen=True)
class QuestionResponse:
    question: str
    answer: Any


@dataclass(slots=True)
class RecommendationContext:
    """Everything the model sees for one assessment."""

    assessment_id: int
    categories: list[CategoryScore]
    company: CompanyProfile
    responses: list[QuestionResponse] = field(default_factory=list)
    previous_scores: dict[str, float] | None = None
    benchmarks: dict[str, float] | None = None

    def to_payload(self) -> dict[str, Any]:
        previous = self.previous_scores or {}
        benchmarks = self.benchmarks or {}
        return {
            "categories": [
                {
                    "name": category.name,
                    "score": category.score,
                    "previousScore": previous.get(category.name),
                    "benchmark": benchmarks.get(category.name),
                }
                for category in self.categories
            ],
            "responses": [
                {"q": response.question, "a": response.answer} for response in self.responses
            ],
            "company": self.company.to_payload(),
        }


class RecommendationGenerator:
    """Produces a recommendation document with a single model call."""

    def __init__(self, gpt_client: GPTClientProtocol, settings: Settings) -> None:
        self.gpt_client = gpt_client
        self.settings = settings

    def build_messages(self, context: RecommendationContext) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": RECOMMENDATION_SYSTEM_PROMPT},
            {"role": "user", "content": json.dumps(context.to_payload(), ensure_ascii=False)},
        ]

    async def generate(self, context: RecommendationContext) -> RecommendationDocument:
        if not self.gpt_client.is_configured:
            raise RecommendationConfigurationError("OPENAI_API_KEY not configured")

        timeout = self.settings.recommendation_timeout_seconds
        try:
            response = await asyncio.wait_for(
                self.gpt_client.chat_completion(
                    messages=self.build_messages(context),
                    temperature=self.settings.recommendation_temperature,
                    max_tokens=self.settings.recommendation_max_tokens,
                    response_format={"type": "json_object"},
                ),
                timeout=timeout,
            )
        except TimeoutError as exc:
            raise RecommendationUnavailableError(
                f"Recommendation request exceeded {timeout}s"
            ) from exc
        except GPTConfigurationError as exc:
            raise RecommendationConfigurationError(str(exc)) from exc
        except GPTClientError as exc:
            raise RecommendationUnavailableError(str(exc)) from exc

        content = (response.content or "").strip()
        if not content:
            raise RecommendationUnavailableError("No content returned from model")

        document = self._parse(content)
        await logger.ainfo(
            "recommendations_generated",
            assessment_id=context.assessment_id,
            model=response.model,
            latency_ms=response.latency_ms,
            total_tokens=response.total_tokens,
            categories=len(document.categories),
        )
        return self._align_scores(document, context)

    def _parse(self, content: str) -> RecommendationDocument:
        fenced = _CODE_FENCE.match(content)
        if fenced:
            content = fenced.group("body")
        try:
            payload = json.loads(content)
        except ValueError as exc:
            raise RecommendationParseError("Model reply is not valid JSON") from exc
        try:
            return parse_document(payload)
        except RecommendationFormatError as exc:
            raise RecommendationParseError(f"Model reply does not match schema: {exc}") from exc

    def _align_scores(
        self,
        document: RecommendationDocument,
        context: RecommendationContext,
    ) -> RecommendationDocument:
        """Computed scores and benchmarks win over whatever the model echoed back."""
        computed = {category.name: category.score for category in context.categories}
        benchmarks = context.benchmarks or {}
        for category in document.categories:
            if category.name in computed:
                category.current_score = computed[category.name]
                category.benchmark = benchmarks.get(category.name)
        return document
