from datetime import date, time

import pytest

from groupmind.core.parsing import ParseFailure, Parsed, clean_json_response, decode
from groupmind.core.schemas import DailySummary, HourlySummary, MergeAction, NewAction, ReminderPayload


@pytest.mark.parametrize("raw", [
    '{"a": 1}',
    '```json\n{"a": 1}\n```',
    '```\n{"a": 1}\n```',
    'Here is the result: {"a": 1} hope this helps',
])
def test_clean_json_response(raw):
    assert clean_json_response(raw) == '{"a": 1}'


def test_decode_valid_payload():
    result = decode('{"person": "Eka", "date": "2026-01-12", "time": "09:00", "message": "Follow up permit"}',
                    ReminderPayload)

    assert isinstance(result, Parsed)
    assert result.ok
    assert result.value.remind_date == date(2026, 1, 12)
    assert result.value.remind_time == time(9, 0)


@pytest.mark.parametrize("text,reason", [
    ("", "empty response"),
    ("   ", "empty response"),
    ("{not json", "invalid JSON"),
    ('{"person": "Eka", "date": "tomorrow", "time": "09:00", "message": "x"}', "schema mismatch"),
    ('{"person": "Eka"}', "schema mismatch"),
])
def test_decode_failures_are_values(text, reason):
    result = decode(text, ReminderPayload)

    assert isinstance(result, ParseFailure)
    assert not result.ok
    assert result.reason.startswith(reason)


def test_hourly_summary_lists_are_bounded():
    result = decode('{"text": "Busy hour", "decisions": ["d1", "d2", "d3", "d4", "d5", "d6", "d7"], '
                    '"actions": ["", "a1"]}', HourlySummary)

    assert result.value.decisions == ["d1", "d2", "d3", "d4", "d5"]
    assert result.value.actions == ["a1"]


def test_long_text_is_truncated():
    result = decode('{"text": "%s"}' % ("x" * 5000), HourlySummary)

    assert len(result.value.text) == 1000
    assert result.value.text.endswith("…")


def test_daily_summary_defaults():
    result = decode('{"summary": "Quiet day"}', DailySummary)

    assert result.value.projects == []
    assert result.value.financial.model_dump() == {"payments": [], "budgets": []}


def test_compiler_actions_accept_comma_separated_tags():
    new = NewAction.model_validate({"type": "NEW", "date": "2026-01-12", "topic": "Permit BSD",
                                    "content": "Submitted", "tags": "permit, bsd"})
    merge = MergeAction.model_validate({"type": "MERGE", "kb_id": "7", "additional_content": " More",
                                        "tags": ["x"]})

    assert new.tags == ["permit", "bsd"]
    assert merge.kb_id == 7
