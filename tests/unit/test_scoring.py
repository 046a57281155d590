from __future__ import annotations

import pytest
from src.domain.models import Answer
from src.domain.scoring import ScoringError, category_scores, compute_score
from src.domain.services.collaborators import SurveyQuestionInfo


def answers(*values: object) -> list[Answer]:
    return [Answer(question_id=index, value=value) for index, value in enumerate(values, start=1)]


def test_no_answers_scores_zero() -> None:
    assert compute_score([]) == 0
    assert compute_score(answers(None, None)) == 0


def test_scale_endpoints() -> None:
    assert compute_score(answers(-2, -2, -2)) == 0
    assert compute_score(answers(2, 2)) == 100
    assert compute_score(answers(0)) == 50


def test_skipped_answers_are_ignored() -> None:
    assert compute_score(answers(2, None, -2, 0)) == 50
    assert compute_score(answers(None, 2)) == 100


def test_rounds_half_up() -> None:
    # (3 + 2) / 8 * 100 = 62.5
    assert compute_score(answers(1, 0)) == 63
    # (4 + 4 + 3) / 12 * 100 = 91.67
    assert compute_score(answers(2, 2, 1)) == 92


def test_score_is_deterministic() -> None:
    values = answers(1, -1, 2, 0, None)
    assert compute_score(values) == compute_score(values)


def test_out_of_range_values_are_clamped_by_default() -> None:
    assert compute_score(answers(5)) == 100
    assert compute_score(answers(-9)) == 0


@pytest.mark.parametrize("value", [3, -3, 1.5])
def test_strict_mode_rejects_out_of_range_values(value: object) -> None:
    with pytest.raises(ScoringError):
        compute_score(answers(value), strict=True)


@pytest.mark.parametrize("value", ["2", True, float("nan"), {"a": 1}])
def test_non_numeric_values_always_raise(value: object) -> None:
    with pytest.raises(ScoringError):
        compute_score(answers(value))


def test_category_scores_follow_catalog_order() -> None:
    questions = [
        SurveyQuestionInfo(id=1, text="Q1", category="Strategy"),
        SurveyQuestionInfo(id=2, text="Q2", category="Data"),
        SurveyQuestionInfo(id=3, text="Q3", category="Strategy"),
        SurveyQuestionInfo(id=4, text="Q4", category="People"),
    ]

    scores = category_scores(answers(2, -2, 1), questions)

    assert [score.name for score in scores] == ["Strategy", "Data", "People"]
    strategy, data, people = scores
    # (4 * 2.5 + 3 * 2.5) / 2
    assert strategy.score == 8.8
    assert strategy.answered == 2
    assert data.score == 0.0
    assert people.score == 0.0
    assert people.answered == 0
