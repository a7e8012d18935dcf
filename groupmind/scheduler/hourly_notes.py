"""
Hourly notes: every hour, summarize the previous full hour of each active
conversation into one note.
"""

import sqlite3

from groupmind.core.oracle import OracleError
from groupmind.core.parsing import decode
from groupmind.core.prompts import HOURLY_PROMPT
from groupmind.core.schemas import HourlySummary
from groupmind.logging_config import get_logger
from groupmind.memory.context_builder import format_message
from groupmind.memory.conversation_log import get_active_conversations, get_messages_between
from groupmind.memory.models import HourlyNote
from groupmind.memory.notes import hourly_note_exists, insert_hourly_note
from groupmind.scheduler.jobs import CompileReport, JobGuard
from groupmind.timeutil import previous_hour_window, utcnow

logger = get_logger(__name__)


def participants_of(messages):
    seen = []
    for m in messages:
        if m.sender not in seen:
            seen.append(m.sender)
    return seen


class HourlyNotesCompiler:
    def __init__(self, db, oracle, tz, clock=utcnow):
        self.db = db
        self.oracle = oracle
        self.tz = tz
        self.clock = clock
        self.guard = JobGuard("hourly notes")

    async def run(self, now=None):
        """Summarize the hour before `now`. Returns a CompileReport, or None if a run is in progress."""
        if not self.guard.try_enter():
            return None
        try:
            start, end = previous_hour_window(now or self.clock(), self.tz)
            return await self.compile_window(start, end)
        finally:
            self.guard.leave()

    async def compile_window(self, start, end):
        report = CompileReport(period=start.astimezone(self.tz).strftime("%Y-%m-%d %H:00"))
        try:
            conversation_ids = get_active_conversations(self.db, start, end)
        except sqlite3.Error as e:
            logger.error(f"Hourly notes {report.period}: error listing conversations: {e}")
            return report
        for conversation_id in conversation_ids:
            result = await self._compile_conversation(conversation_id, start, end)
            getattr(report, result).append(conversation_id)

        logger.info(f"Hourly notes {report.period}: {len(report.created)} created, "
                    f"{len(report.skipped_existing)} already done, {len(report.failed)} failed")
        return report

    async def _compile_conversation(self, conversation_id, start, end):
        try:
            if hourly_note_exists(self.db, conversation_id, start):
                return "skipped_existing"
            messages = get_messages_between(self.db, start, end, conversation_id)
        except sqlite3.Error as e:
            logger.error(f"Error loading hour for {conversation_id}: {e}")
            return "failed"
        if not messages:
            return "skipped_empty"

        transcript = "\n".join(format_message(m, self.tz) for m in messages)
        try:
            reply = await self.oracle.complete(
                HOURLY_PROMPT, f"Messages ({len(messages)}):\n{transcript}",
                json_mode=True, temperature=0.2, max_tokens=500,
            )
        except OracleError as e:
            logger.error(f"Hourly summary failed for {conversation_id}: {e}")
            return "failed"

        result = decode(reply.text, HourlySummary)
        if not result.ok:
            logger.warning(f"Hourly summary for {conversation_id} rejected: {result.reason}")
            return "failed"

        summary = result.value
        note = HourlyNote(
            conversation_id=conversation_id,
            hour_bucket=start,
            summary=summary.text,
            decisions=summary.decisions,
            action_items=summary.actions,
            message_count=len(messages),
            participants=participants_of(messages),
        )
        try:
            note_id = insert_hourly_note(self.db, note)
        except sqlite3.Error as e:
            logger.error(f"Error saving hourly note for {conversation_id}: {e}")
            return "failed"
        if note_id is None:
            return "skipped_existing"
        return "created"
