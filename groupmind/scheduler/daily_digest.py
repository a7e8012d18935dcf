"""
Daily digest: once a day, summarize the previous local day of each active
conversation (projects, decisions, blockers, money).
"""

import sqlite3
from collections import Counter

from groupmind.core.oracle import OracleError
from groupmind.core.parsing import decode
from groupmind.core.prompts import DAILY_PROMPT
from groupmind.core.schemas import DailySummary
from groupmind.logging_config import get_logger
from groupmind.memory.context_builder import format_message
from groupmind.memory.conversation_log import get_active_conversations, get_messages_between
from groupmind.memory.models import DailyDigest
from groupmind.memory.notes import daily_digest_exists, insert_daily_digest
from groupmind.scheduler.hourly_notes import participants_of
from groupmind.scheduler.jobs import CompileReport, JobGuard
from groupmind.timeutil import day_window, previous_day, utcnow

logger = get_logger(__name__)


def most_active_sender(messages):
    if not messages:
        return None
    return Counter(m.sender for m in messages).most_common(1)[0][0]


class DailyDigestCompiler:
    def __init__(self, db, oracle, tz, clock=utcnow):
        self.db = db
        self.oracle = oracle
        self.tz = tz
        self.clock = clock
        self.guard = JobGuard("daily digest")

    async def run(self, now=None):
        """Digest the local day before `now`. Returns a CompileReport, or None if a run is in progress."""
        if not self.guard.try_enter():
            return None
        try:
            return await self.compile_day(previous_day(now or self.clock(), self.tz))
        finally:
            self.guard.leave()

    async def compile_day(self, day):
        start, end = day_window(day, self.tz)
        report = CompileReport(period=day.isoformat())
        try:
            conversation_ids = get_active_conversations(self.db, start, end)
        except sqlite3.Error as e:
            logger.error(f"Daily digest {report.period}: error listing conversations: {e}")
            return report
        for conversation_id in conversation_ids:
            result = await self._compile_conversation(conversation_id, day, start, end)
            getattr(report, result).append(conversation_id)

        logger.info(f"Daily digest {report.period}: {len(report.created)} created, "
                    f"{len(report.skipped_existing)} already done, {len(report.failed)} failed")
        return report

    async def _compile_conversation(self, conversation_id, day, start, end):
        try:
            if daily_digest_exists(self.db, conversation_id, day):
                return "skipped_existing"
            messages = get_messages_between(self.db, start, end, conversation_id)
        except sqlite3.Error as e:
            logger.error(f"Error loading day for {conversation_id}: {e}")
            return "failed"
        if not messages:
            return "skipped_empty"

        transcript = "\n".join(format_message(m, self.tz) for m in messages)
        try:
            reply = await self.oracle.complete(
                DAILY_PROMPT, f"Date: {day.isoformat()}\nMessages ({len(messages)}):\n{transcript}",
                json_mode=True, temperature=0.2, max_tokens=1200,
            )
        except OracleError as e:
            logger.error(f"Daily digest failed for {conversation_id}: {e}")
            return "failed"

        result = decode(reply.text, DailySummary)
        if not result.ok:
            logger.warning(f"Daily digest for {conversation_id} rejected: {result.reason}")
            return "failed"

        summary = result.value
        digest = DailyDigest(
            conversation_id=conversation_id,
            digest_date=day,
            summary=summary.summary,
            projects=summary.projects,
            decisions=summary.decisions,
            blockers=summary.blockers,
            financial=summary.financial.model_dump(),
            message_count=len(messages),
            participants=participants_of(messages),
            most_active=most_active_sender(messages),
        )
        try:
            digest_id = insert_daily_digest(self.db, digest)
        except sqlite3.Error as e:
            logger.error(f"Error saving daily digest for {conversation_id}: {e}")
            return "failed"
        if digest_id is None:
            return "skipped_existing"
        return "created"
