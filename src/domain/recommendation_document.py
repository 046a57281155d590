"""
Recommendation document schema and its stored variants.

Rows written before the structured format exist hold the model's markdown
report as a plain string. Everything past the deserialization boundary works
on ``RecommendationDocument``; legacy text is upgraded once when it is read.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

SCHEMA_VERSION = 1


class RecommendationCategory(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(..., min_length=1)
    current_score: float = Field(..., alias="currentScore", ge=0, le=10)
    benchmark: float | None = Field(default=None, ge=0, le=10)
    trend: str | None = None
    best_practices: list[str] = Field(default_factory=list, alias="bestPractices")


class RecommendationDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    version: int = SCHEMA_VERSION
    intro: str = ""
    categories: list[RecommendationCategory] = Field(..., min_length=1)
    outro: str = ""

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


@dataclass(slots=True, frozen=True)
class StructuredRecommendations:
    kind: Literal["structured"]
    document: RecommendationDocument

    def to_document(self) -> RecommendationDocument:
        return self.document


@dataclass(slots=True, frozen=True)
class LegacyRecommendations:
    kind: Literal["legacy"]
    text: str

    def to_document(self) -> RecommendationDocument:
        return upgrade_legacy_text(self.text)


StoredRecommendations = StructuredRecommendations | LegacyRecommendations


class RecommendationFormatError(ValueError):
    """Raised when stored recommendations are neither legacy text nor a valid document."""


def parse_document(payload: Any) -> RecommendationDocument:
    """Validate a decoded JSON payload against the document schema."""
    try:
        return RecommendationDocument.model_validate(payload)
    except PydanticValidationError as exc:
        raise RecommendationFormatError(str(exc)) from exc


def read_stored(raw: Any) -> StoredRecommendations | None:
    """Tag a stored ``recommendations`` value; ``None`` when nothing is stored."""
    if raw is None:
        return None

    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        if text.startswith("{"):
            try:
                decoded = json.loads(text)
            except ValueError:
                decoded = None
            if isinstance(decoded, dict):
                return StructuredRecommendations(
                    kind="structured", document=parse_document(decoded)
                )
        return LegacyRecommendations(kind="legacy", text=text)

    if isinstance(raw, dict):
        return StructuredRecommendations(kind="structured", document=parse_document(raw))

    raise RecommendationFormatError(f"Unsupported recommendations type: {type(raw).__name__}")


def load_document(raw: Any) -> RecommendationDocument | None:
    stored = read_stored(raw)
    return stored.to_document() if stored else None


_HEADING = re.compile(r"^#{1,3}\s+(?P<title>.+?)\s*$")
_CURRENT = re.compile(r"current score[^0-9]*(?P<value>\d+(?:\.\d+)?)", re.IGNORECASE)
_BENCHMARK = re.compile(r"benchmark[^0-9]*(?P<value>\d+(?:\.\d+)?)", re.IGNORECASE)
_TREND = re.compile(r"trend[^:]*:\**\s*(?P<value>.+)$", re.IGNORECASE)
_BULLET = re.compile(r"^(?:\d+\.|[-*•])\s+(?P<text>.+)$")
_LEADING_SYMBOLS = re.compile(r"^[^\w(]+")


def upgrade_legacy_text(text: str) -> RecommendationDocument:
    """
    Turn a markdown report into a structured document.

    Each heading starts a category. Score, benchmark and trend lines are picked
    up by label; remaining list items become best practices. Text before the
    first heading becomes the intro. A report without headings becomes one
    "Summary" category holding the whole text as its intro.
    """
    intro_lines: list[str] = []
    categories: list[dict[str, Any]] = []
    current: dict[str, Any] | None = None

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        heading = _HEADING.match(line)
        if heading:
            name = _strip_markup(heading.group("title"))
            current = {"name": name or "Category", "currentScore": 0.0, "bestPractices": []}
            categories.append(current)
            continue

        if current is None:
            intro_lines.append(_strip_markup(line))
            continue

        plain = line.replace("**", "").replace("__", "").strip()
        if match := _CURRENT.search(plain):
            current["currentScore"] = min(10.0, float(match.group("value")))
        elif match := _BENCHMARK.search(plain):
            current["benchmark"] = min(10.0, float(match.group("value")))
        elif match := _TREND.search(plain):
            current["trend"] = match.group("value").strip()
        elif match := _BULLET.match(plain):
            current["bestPractices"].append(_strip_markup(match.group("text")))

    if not categories:
        return RecommendationDocument(
            intro=text.strip(),
            categories=[RecommendationCategory(name="Summary", current_score=0.0)],
        )
    return RecommendationDocument(intro="\n".join(intro_lines), categories=categories)


def _strip_markup(value: str) -> str:
    cleaned = value.replace("**", "").replace("__", "").strip()
    return _LEADING_SYMBOLS.sub("", cleaned).strip()
