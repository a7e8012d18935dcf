import json
import sqlite3
from datetime import timedelta

import pytest

from conftest import FakeOracle, local
from groupmind.core.oracle import OracleError
from groupmind.memory.conversation_log import save_message
from groupmind.memory.notes import get_hourly_notes
from groupmind.scheduler import hourly_notes
from groupmind.scheduler.hourly_notes import HourlyNotesCompiler

NOW = local(2026, 1, 12, 10, 5)
SUMMARY = json.dumps({"text": "Team discussed the BSD permit.", "decisions": ["Submit Monday"],
                      "actions": ["Eka to call city hall"]})


@pytest.fixture
def chat(db, make_message):
    save_message(db, make_message("permit BSD gimana?", sender="Budi", at=local(2026, 1, 12, 9, 10)))
    save_message(db, make_message("Senin gue submit", sender="Eka", at=local(2026, 1, 12, 9, 40)))
    save_message(db, make_message("oke", sender="Budi", at=local(2026, 1, 12, 9, 45)))
    # outside the 09:00-10:00 window
    save_message(db, make_message("pagi", sender="Budi", at=local(2026, 1, 12, 8, 59)))
    save_message(db, make_message("lunch?", sender="Eka", at=local(2026, 1, 12, 10, 1)))


async def test_creates_note_for_previous_hour(db, tz, chat):
    oracle = FakeOracle(SUMMARY)
    compiler = HourlyNotesCompiler(db, oracle, tz)

    report = await compiler.run(NOW)

    assert report.created == ["c1"]
    assert report.period == "2026-01-12 09:00"
    [note] = get_hourly_notes(db, "c1", NOW - timedelta(days=1))
    assert note.hour_bucket == local(2026, 1, 12, 9, 0)
    assert note.summary == "Team discussed the BSD permit."
    assert note.decisions == ["Submit Monday"]
    assert note.action_items == ["Eka to call city hall"]
    assert note.message_count == 3
    assert note.participants == ["Budi", "Eka"]
    assert oracle.calls[0]["json_mode"] is True
    assert "Messages (3)" in oracle.calls[0]["prompt"]


async def test_rerun_is_a_noop(db, tz, chat):
    oracle = FakeOracle(SUMMARY)
    compiler = HourlyNotesCompiler(db, oracle, tz)
    await compiler.run(NOW)

    report = await compiler.run(NOW)

    assert report.created == []
    assert report.skipped_existing == ["c1"]
    assert len(oracle.calls) == 1
    assert len(get_hourly_notes(db, "c1", NOW - timedelta(days=1))) == 1


async def test_undecodable_summary_is_skipped(db, tz, chat):
    compiler = HourlyNotesCompiler(db, FakeOracle("The team talked about permits."), tz)

    report = await compiler.run(NOW)

    assert report.failed == ["c1"]
    assert get_hourly_notes(db, "c1", NOW - timedelta(days=1)) == []


async def test_one_failing_conversation_does_not_stop_others(db, tz, chat, make_message):
    save_message(db, make_message("invoice sudah dikirim", conversation_id="c2", at=local(2026, 1, 12, 9, 30)))
    oracle = FakeOracle(OracleError("timeout"), SUMMARY)
    compiler = HourlyNotesCompiler(db, oracle, tz)

    report = await compiler.run(NOW)

    assert report.failed == ["c1"]
    assert report.created == ["c2"]
    assert report.conversations == 2


async def test_quiet_hour_creates_nothing(db, tz, chat):
    oracle = FakeOracle(SUMMARY)
    compiler = HourlyNotesCompiler(db, oracle, tz)

    report = await compiler.run(local(2026, 1, 12, 15, 0))

    assert report.conversations == 0
    assert oracle.calls == []


async def test_overlapping_run_is_skipped(db, tz, chat):
    compiler = HourlyNotesCompiler(db, FakeOracle(SUMMARY), tz)
    assert compiler.guard.try_enter()

    assert await compiler.run(NOW) is None

    compiler.guard.leave()
    assert (await compiler.run(NOW)).created == ["c1"]


async def test_store_failure_in_one_conversation_spares_the_others(db, tz, chat, make_message, monkeypatch):
    save_message(db, make_message("budget cair?", sender="Dewi", conversation_id="c2", at=local(2026, 1, 12, 9, 20)))
    real = hourly_notes.get_messages_between

    def locked_for_c1(db, start, end, conversation_id=None):
        if conversation_id == "c1":
            raise sqlite3.OperationalError("database is locked")
        return real(db, start, end, conversation_id)

    monkeypatch.setattr(hourly_notes, "get_messages_between", locked_for_c1)
    compiler = HourlyNotesCompiler(db, FakeOracle(SUMMARY), tz)

    report = await compiler.run(NOW)

    assert report.failed == ["c1"]
    assert report.created == ["c2"]
    assert len(get_hourly_notes(db, "c2", NOW - timedelta(days=1))) == 1


async def test_listing_failure_returns_empty_report(db, tz, chat, monkeypatch):
    def broken(*args, **kwargs):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(hourly_notes, "get_active_conversations", broken)

    report = await HourlyNotesCompiler(db, FakeOracle(SUMMARY), tz).run(NOW)

    assert report.conversations == 0
