"""
Scoring engine for readiness assessments.

Answers sit on a five-point agreement scale (-2 strongly disagree .. 2 strongly
agree). The overall score maps the answered questions onto 0-100; category
scores use a 0-10 scale for the report and the recommendation prompt.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from numbers import Real
from typing import Protocol

from src.domain.errors import PipelineError
from src.domain.models import Answer

MIN_VALUE = -2
MAX_VALUE = 2
SCALE_SPAN = MAX_VALUE - MIN_VALUE


class ScoringError(PipelineError):
    """Raised when answers cannot be scored."""


class CategorisedQuestion(Protocol):
    id: int
    category: str | None


@dataclass(slots=True, frozen=True)
class CategoryScore:
    name: str
    score: float
    answered: int


def compute_score(answers: Iterable[Answer], *, strict: bool = False) -> int:
    """
    Return the 0-100 completion score for a set of answers.

    Skipped answers are ignored; when nothing was answered the score is 0.
    Out-of-range values raise in strict mode and are clamped otherwise.
    """
    values = [_normalise(answer, strict=strict) for answer in answers if answer.value is not None]
    if not values:
        return 0

    shifted_total = sum(value - MIN_VALUE for value in values)
    numerator = shifted_total * 100
    denominator = len(values) * SCALE_SPAN
    # Round half up on exact integers, matching how the score has always been displayed.
    return (2 * numerator + denominator) // (2 * denominator)


def category_scores(
    answers: Iterable[Answer],
    questions: Sequence[CategorisedQuestion],
    *,
    strict: bool = False,
) -> list[CategoryScore]:
    """Average answers per question category on a 0-10 scale, in catalog order."""
    by_question = {
        answer.question_id: answer for answer in answers if answer.question_id is not None
    }

    grouped: dict[str, list[int]] = {}
    for question in questions:
        if not question.category:
            continue
        bucket = grouped.setdefault(question.category, [])
        answer = by_question.get(question.id)
        if answer is None or answer.value is None:
            continue
        bucket.append(_normalise(answer, strict=strict))

    results: list[CategoryScore] = []
    for name, values in grouped.items():
        if values:
            average = sum((value - MIN_VALUE) * 2.5 for value in values) / len(values)
            score = round(average, 1)
        else:
            score = 0.0
        results.append(CategoryScore(name=name, score=score, answered=len(values)))
    return results


def _normalise(answer: Answer, *, strict: bool) -> int:
    value = answer.value
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ScoringError(
            f"Answer for question {answer.question_id} is not numeric: {value!r}"
        )
    if not math.isfinite(value):
        raise ScoringError(f"Answer for question {answer.question_id} is not finite")

    if value != int(value) or not MIN_VALUE <= value <= MAX_VALUE:
        if strict:
            raise ScoringError(
                f"Answer for question {answer.question_id} is outside "
                f"[{MIN_VALUE}, {MAX_VALUE}]: {value!r}"
            )
        value = min(MAX_VALUE, max(MIN_VALUE, round(value)))
    return int(value)
