from __future__ import annotations

import pytest
from src.domain.models import (
    Answer,
    GuestIdentity,
    InvalidAnswersError,
    InvalidGuestDataError,
    merge_answers,
    parse_answers,
)


def test_parse_answers_accepts_both_key_styles() -> None:
    parsed = parse_answers([{"question_id": 1, "value": 2}, {"q": 2, "a": -1}])

    assert parsed == [Answer(question_id=1, value=2), Answer(question_id=2, value=-1)]


def test_parse_answers_reads_json_strings() -> None:
    assert parse_answers('[{"q": 3, "a": 0}]') == [Answer(question_id=3, value=0)]
    assert parse_answers(None) == []


@pytest.mark.parametrize(
    "payload",
    [
        {"q": 1, "a": 2},
        ["not-an-object"],
        [{"question_id": "one", "value": 1}],
        [{"question_id": True, "value": 1}],
        "{broken",
    ],
)
def test_parse_answers_rejects_malformed_payloads(payload: object) -> None:
    with pytest.raises(InvalidAnswersError):
        parse_answers(payload)


def test_merge_answers_last_write_wins_and_keeps_position() -> None:
    existing = [Answer(1, 0), Answer(2, 1), Answer(None, 2)]
    incoming = [Answer(1, 2), Answer(3, -2), Answer(None, -1)]

    merged = merge_answers(existing, incoming)

    assert merged == [
        Answer(1, 2),
        Answer(2, 1),
        Answer(None, 2),
        Answer(3, -2),
        Answer(None, -1),
    ]


def test_guest_identity_reads_stored_json_string() -> None:
    guest = GuestIdentity.from_raw(
        '{"firstName": "Ada", "email": " ada@example.com ", "company": "Acme", "employeeCount": 40}'
    )

    assert guest is not None
    assert guest.name == "Ada"
    assert guest.email == "ada@example.com"
    assert guest.employee_count == "40"


def test_guest_identity_rejects_unreadable_snapshots() -> None:
    with pytest.raises(InvalidGuestDataError):
        GuestIdentity.from_raw("not json")
    with pytest.raises(InvalidGuestDataError):
        GuestIdentity.from_raw("[1, 2]")
    assert GuestIdentity.from_raw(None) is None
