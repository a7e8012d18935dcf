from datetime import date, time

import pytest

from groupmind.core.dispatcher import ActionDispatcher, DispatchContext, Remind, Reply, Silent, parse_action
from groupmind.memory.action_log import get_actions
from groupmind.memory.reminders import get_upcoming_reminders

REMIND = 'REMIND {"person": "Eka", "date": "2026-01-13", "time": "09:00", "message": "Follow up permit"}'


@pytest.mark.parametrize("text,expected", [
    ("SILENT", Silent),
    ("  SILENT: nothing to add", Silent),
    ("", Silent),
    ("REPLY Permit masih pending.", Reply),
    ("Permit masih pending.", Reply),
    (REMIND, Remind),
    ("REMIND tomorrow please", Silent),
    ("REMIND", Silent),
])
def test_parse_action_kinds(text, expected):
    assert isinstance(parse_action(text), expected)


def test_reply_text_is_stripped_of_tag():
    assert parse_action("REPLY: Permit masih pending\nsejak 3 Nov.") == Reply("Permit masih pending\nsejak 3 Nov.")


def test_untagged_text_is_replied_whole():
    assert parse_action("  Budget sudah approved.  ") == Reply("Budget sudah approved.")


def test_remind_payload_is_typed():
    action = parse_action(REMIND)

    assert action.payload.person == "Eka"
    assert action.payload.remind_date == date(2026, 1, 13)
    assert action.payload.remind_time == time(9, 0)


@pytest.fixture
def dispatcher(db, transport):
    return ActionDispatcher(db, transport, reaction="✍")


async def test_silent_does_nothing(dispatcher, transport):
    outcome = await dispatcher.dispatch("SILENT", DispatchContext(conversation_id="c1"))

    assert outcome.kind == "silent"
    assert transport.sent == []
    assert transport.reactions == []


async def test_reply_sends_text(dispatcher, transport, db):
    outcome = await dispatcher.dispatch("REPLY Deadline Jumat.", DispatchContext(conversation_id="c1",
                                                                                 trace_id="t1"))

    assert outcome.kind == "reply"
    assert outcome.delivered
    assert transport.sent == [("c1", "Deadline Jumat.")]
    assert [row["action_type"] for row in get_actions(db, "t1")] == ["reply"]


async def test_implicit_reminder_reacts(dispatcher, transport, db):
    outcome = await dispatcher.dispatch(REMIND, DispatchContext(conversation_id="c1", addressed=False,
                                                                sender="Budi", message_id=42))

    assert outcome.kind == "remind"
    assert transport.reactions == [("c1", 42, "✍")]
    assert transport.sent == []
    [reminder] = get_upcoming_reminders(db, date(2026, 1, 12))
    assert reminder.id == outcome.reminder_id
    assert reminder.implicit
    assert reminder.created_by == "Budi"


async def test_explicit_reminder_confirms(dispatcher, transport, db):
    outcome = await dispatcher.dispatch(REMIND, DispatchContext(conversation_id="c1", addressed=True,
                                                                sender="Budi", message_id=42))

    assert outcome.kind == "remind"
    assert transport.reactions == []
    assert transport.sent == [("c1", "⏰ Reminder set for Eka, 2026-01-13 09:00: Follow up permit")]
    assert not get_upcoming_reminders(db, date(2026, 1, 12))[0].implicit


async def test_malformed_reminder_fails_closed(dispatcher, transport, db):
    outcome = await dispatcher.dispatch('REMIND {"person": "Eka", "date": "besok"}',
                                        DispatchContext(conversation_id="c1", message_id=1))

    assert outcome.kind == "silent"
    assert transport.sent == []
    assert transport.reactions == []
    assert get_upcoming_reminders(db, date(2026, 1, 1)) == []


async def test_reminder_store_failure_is_reported(db, transport):
    dispatcher = ActionDispatcher(db, transport)
    db.execute("DROP TABLE reminders")

    outcome = await dispatcher.dispatch(REMIND, DispatchContext(conversation_id="c1", addressed=True))

    assert outcome.kind == "remind_failed"
    assert transport.sent == []
