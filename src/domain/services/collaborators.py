"""
Interfaces to the services this pipeline consumes but does not own.

The survey catalog and the user directory live with the wider platform; the
pipeline only needs to read questions and owner details from them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(slots=True, frozen=True)
class SurveyQuestionInfo:
    id: int
    text: str
    category: str | None


@dataclass(slots=True, frozen=True)
class UserInfo:
    id: int
    email: str
    name: str | None = None
    company: str | None = None
    employee_count: str | None = None
    industry: str | None = None


class SurveyCatalogProtocol(Protocol):
    async def get_questions_for_survey(self, survey_id: int) -> list[SurveyQuestionInfo]:
        """Return the survey's questions in display order."""
        ...


class UserDirectoryProtocol(Protocol):
    async def get_user_by_id(self, user_id: int) -> UserInfo | None:
        """Return the user, or None when unknown."""
        ...
