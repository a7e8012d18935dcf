"""
What happens to a flushed batch: route it, and if it passes, generate a
response and dispatch it.

Batches of the same conversation are processed one at a time, in flush order
(asyncio.Lock wakes waiters FIFO). Different conversations run concurrently.
"""

import asyncio
import uuid
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional

from groupmind.core.agent import generate_response
from groupmind.core.dispatcher import DispatchContext
from groupmind.core.oracle import OracleError
from groupmind.core.router import RouteContext
from groupmind.logging_config import get_logger
from groupmind.memory.context_builder import build_conversation_context
from groupmind.timeutil import utcnow

logger = get_logger(__name__)


@dataclass(frozen=True)
class BatchResult:
    trace_id: str
    decision: object
    outcome: Optional[object] = None
    error: Optional[str] = None


class BatchPipeline:
    def __init__(self, db, router, responder, dispatcher, tz, clock=utcnow):
        self.db = db
        self.router = router
        self.responder = responder
        self.dispatcher = dispatcher
        self.tz = tz
        self.clock = clock
        self._locks = {}
        self._lock_users = defaultdict(int)

    async def __call__(self, conversation_id, messages):
        return await self.process(conversation_id, messages)

    async def process(self, conversation_id, messages):
        lock = self._locks.setdefault(conversation_id, asyncio.Lock())
        self._lock_users[conversation_id] += 1
        try:
            async with lock:
                return await self._process(conversation_id, messages)
        finally:
            # dropped only when no batch of this conversation holds or awaits it
            self._lock_users[conversation_id] -= 1
            if not self._lock_users[conversation_id]:
                del self._lock_users[conversation_id]
                del self._locks[conversation_id]

    async def _process(self, conversation_id, messages):
        trace_id = str(uuid.uuid4())[:8]
        text = "\n".join(m.body for m in messages if m.body)
        addressed = any(m.addressed for m in messages)
        last = messages[-1]

        decision = await self.router.decide(text, RouteContext(
            conversation_id=conversation_id, addressed=addressed, sender=last.sender, trace_id=trace_id,
        ))
        if not decision.passed:
            return BatchResult(trace_id=trace_id, decision=decision)

        now = self.clock()
        try:
            group_context = build_conversation_context(self.db, conversation_id, now, self.tz)
            response_text, latency_ms = await generate_response(
                self.responder, messages, group_context, now, self.tz, addressed=addressed,
            )
        except OracleError as e:
            logger.error(f"[{trace_id}] Response generation failed, leaving batch unanswered: {e}")
            return BatchResult(trace_id=trace_id, decision=decision, error=str(e))

        logger.info(f"[{trace_id}] llm:{latency_ms}ms | batch of {len(messages)} | "
                    f"response: {response_text[:50]}...")
        outcome = await self.dispatcher.dispatch(response_text, DispatchContext(
            conversation_id=conversation_id,
            addressed=addressed,
            sender=last.sender,
            message_id=last.message_id,
            trace_id=trace_id,
        ))
        return BatchResult(trace_id=trace_id, decision=decision, outcome=outcome)
