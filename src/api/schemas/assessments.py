from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class AnswerItem(BaseModel):
    question_id: int | None = None
    value: Any = None


class AnswersRequest(BaseModel):
    answers: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Answers as {question_id, value} (or legacy {q, a}) objects",
    )


class SavedAnswersResponse(BaseModel):
    assessment_id: int
    status: str
    answers: list[AnswerItem]


class StageOutcomeItem(BaseModel):
    stage: str
    status: str
    detail: str | None = None


class CompletionResponse(BaseModel):
    assessment_id: int
    status: str
    score: int = Field(..., ge=0, le=100)
    completed_on: str
    pdf_path: str | None = Field(None, description="Public path of the generated report")
    stages: list[StageOutcomeItem]
