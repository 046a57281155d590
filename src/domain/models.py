from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from src.domain.errors import ValidationError


class InvalidAnswersError(ValidationError):
    """Raised when an answers payload does not have the expected shape."""


class InvalidGuestDataError(ValidationError):
    """Raised when a guest identity snapshot cannot be read."""


@dataclass(slots=True, frozen=True)
class Answer:
    """One answer on the -2..2 agreement scale; ``value`` is None when skipped."""

    question_id: int | None
    value: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"question_id": self.question_id, "value": self.value}


@dataclass(slots=True, frozen=True)
class GuestIdentity:
    """Guest details captured when the assessment was created."""

    email: str | None = None
    name: str | None = None
    company: str | None = None
    employee_count: str | None = None
    industry: str | None = None

    @classmethod
    def from_raw(cls, raw: str | Mapping[str, Any] | None) -> GuestIdentity | None:
        """Read the stored snapshot, which older rows keep as a JSON string."""
        if raw is None:
            return None
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError as exc:
                raise InvalidGuestDataError("Guest data is not valid JSON") from exc
        if not isinstance(raw, Mapping):
            raise InvalidGuestDataError("Guest data must be an object")

        return cls(
            email=_clean(raw.get("email")),
            name=_clean(raw.get("name") or raw.get("firstName")),
            company=_clean(raw.get("company")),
            employee_count=_clean(raw.get("employeeCount") or raw.get("employee_count")),
            industry=_clean(raw.get("industry")),
        )


@dataclass(slots=True, frozen=True)
class CompanyProfile:
    name: str | None = None
    employee_count: str | None = None
    industry: str | None = None

    def to_payload(self) -> dict[str, str]:
        return {
            "name": self.name or "",
            "employeeCount": self.employee_count or "",
            "industry": self.industry or "",
        }


@dataclass(slots=True, frozen=True)
class OwnerContext:
    """Who an artifact belongs to, used for storage location and file naming."""

    user_id: int | None = None
    guest_email: str | None = None
    company_name: str | None = None
    recipient_name: str | None = None
    recipient_email: str | None = None


def parse_answers(raw: Any) -> list[Answer]:
    """
    Parse a stored or submitted answers list.

    Accepts ``{"question_id", "value"}`` items as well as the older
    ``{"q", "a"}`` shape. Values are passed through untouched; range checks
    belong to the scoring engine.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            raise InvalidAnswersError("Answers must be a JSON array") from exc
    if not isinstance(raw, list):
        raise InvalidAnswersError("Answers must be an array")

    answers: list[Answer] = []
    for index, item in enumerate(raw):
        if isinstance(item, Answer):
            answers.append(item)
            continue
        if not isinstance(item, Mapping):
            raise InvalidAnswersError(f"Answer at position {index} must be an object")

        question_id = item.get("question_id", item.get("q"))
        if question_id is not None and (
            isinstance(question_id, bool) or not isinstance(question_id, int)
        ):
            raise InvalidAnswersError(f"Answer at position {index} has an invalid question id")

        value = item.get("value", item.get("a"))
        answers.append(Answer(question_id=question_id, value=value))
    return answers


def merge_answers(existing: Iterable[Answer], incoming: Iterable[Answer]) -> list[Answer]:
    """Combine answer lists; a later answer for the same question replaces an earlier one."""
    merged: dict[Any, Answer] = {}
    anonymous = 0
    for answer in [*existing, *incoming]:
        if answer.question_id is None:
            merged[("anonymous", anonymous)] = answer
            anonymous += 1
        else:
            merged[answer.question_id] = answer
    return list(merged.values())


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
