import asyncio

import pytest

from conftest import FakeOracle, local
from groupmind.core.buffer import ConversationBuffer
from groupmind.core.dispatcher import ActionDispatcher
from groupmind.core.oracle import OracleError, OracleReply
from groupmind.core.pipeline import BatchPipeline
from groupmind.core.router import Router
from groupmind.memory.conversation_log import save_message
from groupmind.memory.knowledge import create_entry

NOW = local(2026, 1, 12, 10, 0)


class GatedOracle:
    """Blocks calls whose prompt contains `blocked` until the gate opens; replies with the call number."""

    def __init__(self, blocked):
        self.blocked = blocked
        self.gate = asyncio.Event()
        self.calls = []

    async def complete(self, system, prompt, **kwargs):
        self.calls.append(prompt)
        number = len(self.calls)
        if self.blocked in prompt:
            await self.gate.wait()
        return OracleReply(text=f"REPLY {number}")


async def _until(predicate):
    for _ in range(200):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


def make_pipeline(db, transport, tz, responder, router_oracle=None):
    router = Router(router_oracle or FakeOracle(), db=db)
    return BatchPipeline(db, router, responder, ActionDispatcher(db, transport), tz, clock=lambda: NOW)


async def test_ignored_batch_never_reaches_responder(db, transport, tz, make_message):
    responder = FakeOracle()
    pipeline = make_pipeline(db, transport, tz, responder)

    result = await pipeline.process("c1", [make_message("ok"), make_message("mantap")])

    assert not result.decision.passed
    assert responder.calls == []
    assert transport.sent == []


async def test_buffered_scenario_flushes_once_and_replies(db, transport, tz, timers, make_message):
    responder = FakeOracle("REPLY Permit masalah apa? Mau gue catat?")
    pipeline = make_pipeline(db, transport, tz, responder)
    buffer = ConversationBuffer(pipeline, debounce_seconds=15, call_later=timers.call_later)

    buffer.add("c1", make_message("ok"))
    timers.advance(3)
    buffer.add("c1", make_message("halo"))
    timers.advance(13)
    buffer.add("c1", make_message("ada masalah permit"))
    timers.advance(15)
    await buffer.join()

    assert len(responder.calls) == 1
    prompt = responder.calls[0]["prompt"]
    assert "ok" in prompt and "halo" in prompt and "ada masalah permit" in prompt
    assert transport.sent == [("c1", "Permit masalah apa? Mau gue catat?")]


async def test_response_includes_group_memory(db, transport, tz, make_message):
    create_entry(db, "2026-01-05", "Permit BSD", "Submitted to city hall.", ["permit"])
    save_message(db, make_message("permit BSD udah diajukan", at=local(2026, 1, 12, 8, 30)))
    responder = FakeOracle("SILENT")
    pipeline = make_pipeline(db, transport, tz, responder)

    await pipeline.process("c1", [make_message("kapan permit keluar?", at=local(2026, 1, 12, 9, 59))])

    prompt = responder.calls[0]["prompt"]
    assert "Permit BSD" in prompt
    assert "permit BSD udah diajukan" in prompt
    assert "kapan permit keluar?" in prompt
    assert transport.sent == []


async def test_addressed_flag_reaches_router_and_dispatcher(db, transport, tz, make_message):
    responder = FakeOracle('REMIND {"person": "all", "date": "2026-01-13", "time": "09:00", "message": "Rapat"}')
    pipeline = make_pipeline(db, transport, tz, responder)

    result = await pipeline.process("c1", [make_message("ok", addressed=True)])

    assert result.decision.reason == "Assistant explicitly addressed"
    assert result.outcome.kind == "remind"
    assert transport.reactions == []
    assert len(transport.sent) == 1


async def test_unaddressed_reminder_reacts_to_last_message(db, transport, tz, make_message):
    responder = FakeOracle('REMIND {"person": "Eka", "date": "2026-01-13", "time": "09:00", "message": "Permit"}')
    pipeline = make_pipeline(db, transport, tz, responder)
    first, last = make_message("ok"), make_message("jangan lupa follow up permit besok")

    await pipeline.process("c1", [first, last])

    assert transport.reactions == [("c1", last.message_id, "✍")]


async def test_response_failure_leaves_batch_unanswered(db, transport, tz, make_message):
    pipeline = make_pipeline(db, transport, tz, FakeOracle(OracleError("model not loaded")))

    result = await pipeline.process("c1", [make_message("kapan deadline?")])

    assert result.decision.passed
    assert result.outcome is None
    assert "model not loaded" in result.error
    assert transport.sent == []


async def test_batches_of_one_conversation_run_in_order(db, transport, tz, make_message):
    responder = GatedOracle(blocked="kapan rapat?")
    pipeline = make_pipeline(db, transport, tz, responder)

    first = asyncio.create_task(pipeline.process("c1", [make_message("kapan rapat?")]))
    await _until(lambda: len(responder.calls) == 1)
    second = asyncio.create_task(pipeline.process("c1", [make_message("berapa budget?")]))
    other = asyncio.create_task(pipeline.process("c2", [make_message("siapa PIC?", conversation_id="c2")]))

    await other
    assert len(responder.calls) == 2
    assert transport.sent == [("c2", "2")]
    assert set(pipeline._locks) == {"c1"}

    responder.gate.set()
    await asyncio.gather(first, second)
    assert transport.sent == [("c2", "2"), ("c1", "1"), ("c1", "3")]
    assert pipeline._locks == {}


@pytest.mark.parametrize("bodies", [["ok"], ["ok", "siap"], ["wkwk"]])
async def test_social_batches_are_not_answered(db, transport, tz, make_message, bodies):
    pipeline = make_pipeline(db, transport, tz, FakeOracle())

    result = await pipeline.process("c1", [make_message(b) for b in bodies])

    assert result.outcome is None
    assert transport.sent == []


async def test_conversation_lock_is_dropped_after_failure(db, transport, tz, make_message):
    pipeline = make_pipeline(db, transport, tz, FakeOracle(OracleError("model not loaded")))

    await pipeline.process("c1", [make_message("kapan deadline?")])
    await pipeline.process("c2", [make_message("ok", conversation_id="c2")])

    assert pipeline._locks == {}
    assert not pipeline._lock_users
