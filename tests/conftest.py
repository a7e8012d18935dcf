from datetime import datetime, timezone

import pytest

from groupmind.core.oracle import OracleError, OracleReply
from groupmind.memory.database import init_db
from groupmind.memory.models import Message
from groupmind.timeutil import get_tz

JAKARTA = get_tz("Asia/Jakarta")


class FakeOracle:
    """Replays queued replies in order. An exception in the queue is raised instead."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def queue(self, *replies):
        self.replies.extend(replies)

    async def complete(self, system, prompt, json_mode=False, temperature=None, max_tokens=None):
        self.calls.append({"system": system, "prompt": prompt, "json_mode": json_mode})
        if not self.replies:
            raise OracleError("no reply queued")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, OracleReply):
            return reply
        return OracleReply(text=reply, prompt_tokens=100, completion_tokens=20, latency_ms=5)


class FakeTransport:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []
        self.reactions = []

    async def send(self, conversation_id, text):
        if self.fail:
            return False
        self.sent.append((conversation_id, text))
        return True

    async def react(self, conversation_id, message_id, emoji):
        if self.fail:
            return False
        self.reactions.append((conversation_id, message_id, emoji))
        return True


class FakeHandle:
    def __init__(self, when, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeTimers:
    """Virtual clock with a call_later compatible with ConversationBuffer."""

    def __init__(self):
        self.now = 0.0
        self.handles = []

    def call_later(self, delay, callback):
        handle = FakeHandle(self.now + delay, callback)
        self.handles.append(handle)
        return handle

    def advance(self, seconds):
        self.now += seconds
        due = sorted((h for h in self.handles if not h.cancelled and h.when <= self.now), key=lambda h: h.when)
        for handle in due:
            self.handles.remove(handle)
            handle.callback()

    @property
    def pending(self):
        return len([h for h in self.handles if not h.cancelled])


@pytest.fixture
def db():
    conn = init_db(":memory:")
    yield conn
    conn.close()


@pytest.fixture
def tz():
    return JAKARTA


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def timers():
    return FakeTimers()


def local(year, month, day, hour=0, minute=0):
    """A Jakarta wall-clock time as an aware UTC datetime."""
    return datetime(year, month, day, hour, minute, tzinfo=JAKARTA).astimezone(timezone.utc)


@pytest.fixture
def make_message():
    counter = {"id": 0}

    def _make(body, sender="Eka", conversation_id="c1", at=None, addressed=False):
        counter["id"] += 1
        return Message(
            conversation_id=conversation_id,
            conversation_name=f"Group {conversation_id}",
            message_id=counter["id"],
            sender=sender,
            body=body,
            timestamp=at or local(2026, 1, 12, 9, 0),
            addressed=addressed,
        )

    return _make
