"""
Per-conversation debounce buffer.

Messages for a conversation are held until the chat has been quiet for
`debounce_seconds`, or until `max_batch_size` messages are waiting, then the
whole ordered batch is handed to `on_flush(conversation_id, messages)`.

The queue/timer map is private to ConversationBuffer. Timers come from an
injectable `call_later(delay, callback)` so tests can drive a virtual clock.
"""

import asyncio
from dataclasses import dataclass, field
from typing import List

from groupmind.config import BUFFER_DEBOUNCE_SECONDS, BUFFER_ENABLED, BUFFER_MAX_BATCH
from groupmind.logging_config import get_logger

logger = get_logger(__name__)


def loop_call_later(delay, callback):
    return asyncio.get_running_loop().call_later(delay, callback)


class DebounceTimer:
    """A restartable one-shot timer. At most one pending handle at any time."""

    def __init__(self, delay, callback, call_later=loop_call_later):
        self.delay = delay
        self.callback = callback
        self.call_later = call_later
        self._handle = None

    @property
    def active(self):
        return self._handle is not None

    def reset(self):
        self.cancel()
        self._handle = self.call_later(self.delay, self._fire)

    def cancel(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self):
        self._handle = None
        self.callback()


@dataclass
class _PendingBatch:
    timer: DebounceTimer
    messages: List = field(default_factory=list)


class ConversationBuffer:
    def __init__(self, on_flush, debounce_seconds=BUFFER_DEBOUNCE_SECONDS, max_batch_size=BUFFER_MAX_BATCH,
                 call_later=loop_call_later, enabled=BUFFER_ENABLED):
        self.on_flush = on_flush
        self.debounce_seconds = debounce_seconds
        self.max_batch_size = max_batch_size
        self.call_later = call_later
        self.enabled = enabled
        self._pending = {}
        self._inflight = set()

    def add(self, conversation_id, message):
        """Queue a message and restart the conversation's silence timer. Never blocks."""
        if not self.enabled:
            self._deliver_soon(conversation_id, [message])
            return

        batch = self._pending.get(conversation_id)
        if batch is None:
            timer = DebounceTimer(self.debounce_seconds, lambda: self._on_silence(conversation_id),
                                  self.call_later)
            batch = self._pending[conversation_id] = _PendingBatch(timer=timer)

        batch.messages.append(message)
        logger.debug(f"Buffered message for {conversation_id} ({len(batch.messages)} waiting)")

        if len(batch.messages) >= self.max_batch_size:
            logger.info(f"Buffer full for {conversation_id} ({len(batch.messages)}/{self.max_batch_size}), "
                        f"flushing immediately")
            self._deliver_soon(conversation_id, self._take(conversation_id))
            return

        batch.timer.reset()

    async def flush(self, conversation_id):
        """Deliver one conversation's pending batch now and wait for it."""
        messages = self._take(conversation_id)
        if messages:
            await self._deliver(conversation_id, messages)

    async def flush_all(self):
        """Cancel every timer, deliver every pending batch, wait for in-flight deliveries."""
        logger.info(f"Flushing all buffers ({len(self._pending)} conversations)")
        for conversation_id in list(self._pending):
            await self.flush(conversation_id)
        await self.join()

    async def stop(self):
        """Shutdown: nothing buffered is lost."""
        logger.info("Stopping buffer, flushing all messages")
        await self.flush_all()

    async def set_enabled(self, enabled):
        self.enabled = enabled
        logger.info(f"Buffering {'enabled' if enabled else 'disabled'}")
        if not enabled:
            await self.flush_all()

    async def join(self):
        while self._inflight:
            await asyncio.gather(*list(self._inflight))

    def pending_count(self, conversation_id):
        batch = self._pending.get(conversation_id)
        return len(batch.messages) if batch else 0

    def stats(self):
        details = [
            {"conversation_id": cid, "message_count": len(batch.messages), "has_timer": batch.timer.active}
            for cid, batch in self._pending.items()
        ]
        return {
            "active_buffers": len(self._pending),
            "buffered_messages": sum(d["message_count"] for d in details),
            "inflight_batches": len(self._inflight),
            "buffers": details,
        }

    def _on_silence(self, conversation_id):
        logger.info(f"Silence after {self.debounce_seconds:g}s, flushing buffer for {conversation_id}")
        self._deliver_soon(conversation_id, self._take(conversation_id))

    def _take(self, conversation_id):
        # state is dropped before delivery so the next arrival starts a new cycle
        batch = self._pending.pop(conversation_id, None)
        if batch is None:
            return []
        batch.timer.cancel()
        return batch.messages

    def _deliver_soon(self, conversation_id, messages):
        if not messages:
            return
        task = asyncio.get_running_loop().create_task(self._deliver(conversation_id, messages))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _deliver(self, conversation_id, messages):
        logger.info(f"Flushing {len(messages)} messages for {conversation_id}")
        try:
            await self.on_flush(conversation_id, messages)
        except Exception:
            logger.exception(f"Error processing buffered batch for {conversation_id}")
