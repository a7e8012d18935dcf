"""
Knowledge base compiler.

Once a day, reads the previous local day of raw messages (all conversations)
together with the whole knowledge base, asks the LLM for a plan of NEW and
MERGE actions, and applies the ones that pass the rules:

    - only NEW and MERGE exist; UPDATE, deletes and unknown types are rejected
    - at most MAX_NEW_ENTRIES_PER_RUN new entries per run, across every
      caught-up day, first come first served
    - MERGE only appends; an entry's date never changes

The processing cursor moves to the end of a day only after that day was
loaded, analyzed and applied without a store failure. Missed days (bot down,
failed run) are caught up in order on the next tick.
"""

import enum
import sqlite3
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional, Tuple

from pydantic import ValidationError

from groupmind.config import KB_MAX_CATCHUP_DAYS
from groupmind.core.oracle import OracleError
from groupmind.core.parsing import ParseFailure, Parsed, decode
from groupmind.core.prompts import COMPILATION_PROMPT
from groupmind.core.schemas import CompilationPlan, MergeAction, NewAction
from groupmind.logging_config import get_logger
from groupmind.memory.context_builder import format_knowledge_entry
from groupmind.memory.conversation_log import get_messages_between
from groupmind.memory.knowledge import (
    advance_cursor,
    create_entry,
    get_cursor,
    load_knowledge_base,
    merge_into_entry,
)
from groupmind.scheduler.jobs import JobGuard
from groupmind.timeutil import day_window, previous_day, utcnow

logger = get_logger(__name__)

MAX_NEW_ENTRIES_PER_RUN = 3


class CompilerState(enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    ANALYZING = "analyzing"
    APPLYING = "applying"


@dataclass
class DayReport:
    day: object
    message_count: int = 0
    summary: str = ""
    created: List[int] = field(default_factory=list)
    merged: List[int] = field(default_factory=list)
    rejected: List[Tuple[dict, str]] = field(default_factory=list)
    failed: List[Tuple[dict, str]] = field(default_factory=list)
    cursor_advanced: bool = False
    error: Optional[str] = None


@dataclass
class NewEntryBudget:
    """How many NEW entries one compiler run has created so far."""
    limit: int
    used: int = 0

    def take(self):
        if self.used >= self.limit:
            return False
        self.used += 1
        return True


def format_transcript(messages, tz):
    return "\n".join(
        f"[{m.timestamp.astimezone(tz).strftime('%Y-%m-%d %H:%M')}] {m.sender}: {m.body}"
        for m in messages
    )


class KnowledgeCompiler:
    def __init__(self, db, oracle, tz, clock=utcnow, max_catchup_days=KB_MAX_CATCHUP_DAYS,
                 max_new_entries=MAX_NEW_ENTRIES_PER_RUN):
        self.db = db
        self.oracle = oracle
        self.tz = tz
        self.clock = clock
        self.max_catchup_days = max(1, max_catchup_days)
        self.max_new_entries = max_new_entries
        self.state = CompilerState.IDLE
        self.guard = JobGuard("knowledge compiler")

    async def run(self, now=None):
        """
        Compile every unprocessed day up to yesterday (local), oldest first.

        Returns:
            list of DayReport, or None if a run is already in progress
        """
        if not self.guard.try_enter():
            return None
        try:
            reports = []
            budget = NewEntryBudget(self.max_new_entries)
            for day in self.pending_days(now or self.clock()):
                report = await self.compile_day(day, budget)
                reports.append(report)
                if not report.cursor_advanced:
                    # later days wait until this one succeeds
                    break
            return reports
        finally:
            self.state = CompilerState.IDLE
            self.guard.leave()

    def pending_days(self, now):
        target = previous_day(now, self.tz)
        cursor = get_cursor(self.db).last_processed
        if cursor is None:
            return [target]

        first = cursor.astimezone(self.tz).date()
        oldest_allowed = target - timedelta(days=self.max_catchup_days - 1)
        if first < oldest_allowed:
            logger.warning(f"Knowledge base is {(target - first).days + 1} days behind, "
                           f"only compiling from {oldest_allowed.isoformat()}")
            first = oldest_allowed

        days = []
        day = first
        while day <= target:
            if day_window(day, self.tz)[1] > cursor:
                days.append(day)
            day += timedelta(days=1)
        return days

    async def compile_day(self, day, budget=None):
        start, end = day_window(day, self.tz)
        report = DayReport(day=day)

        self.state = CompilerState.LOADING
        try:
            messages = get_messages_between(self.db, start, end)
            entries = load_knowledge_base(self.db)
        except sqlite3.Error as e:
            logger.error(f"KB {day}: error loading: {e}")
            report.error = f"load failed: {e}"
            return report
        report.message_count = len(messages)

        if messages:
            self.state = CompilerState.ANALYZING
            result = await self._analyze(day, messages, entries)
            if not result.ok:
                logger.error(f"KB {day}: analysis failed, cursor stays put: {result.reason}")
                report.error = result.reason
                return report

            plan = result.value
            report.summary = plan.summary
            self.state = CompilerState.APPLYING
            self.apply_actions(plan.actions, report, budget, window=day.isoformat())

        if report.failed:
            logger.error(f"KB {day}: {len(report.failed)} action(s) failed to apply, cursor stays put")
            return report

        try:
            advance_cursor(self.db, end)
        except sqlite3.Error as e:
            logger.error(f"KB {day}: error advancing cursor: {e}")
            report.error = f"cursor update failed: {e}"
            return report
        report.cursor_advanced = True

        logger.info(f"KB {day}: {report.message_count} messages, {len(report.created)} new, "
                    f"{len(report.merged)} merged, {len(report.rejected)} rejected")
        return report

    async def preview(self, start, end):
        """Load and analyze an arbitrary window without touching the knowledge base."""
        messages = get_messages_between(self.db, start, end)
        if not messages:
            return Parsed(CompilationPlan(summary="no messages"))
        entries = load_knowledge_base(self.db)
        return await self._analyze(start.astimezone(self.tz).date(), messages, entries)

    async def _analyze(self, day, messages, entries):
        kb_text = "\n".join(format_knowledge_entry(e) for e in entries) or "(empty)"
        prompt = f"""CURRENT KNOWLEDGE BASE ({len(entries)} entries):
{kb_text}

MESSAGES FOR {day.isoformat()} ({len(messages)} messages):
{format_transcript(messages, self.tz)}"""

        try:
            reply = await self.oracle.complete(COMPILATION_PROMPT, prompt, json_mode=True,
                                               temperature=0.1, max_tokens=2000)
        except OracleError as e:
            return ParseFailure(f"oracle error: {e}")
        return decode(reply.text, CompilationPlan)

    def apply_actions(self, actions, report, budget=None, window=None):
        """
        Apply a plan's actions in order, recording each outcome on `report`.

        `budget` is shared by every day of one run; `window` names the day the
        plan was compiled from.
        """
        if budget is None:
            budget = NewEntryBudget(self.max_new_entries)
        for raw in actions:
            kind = str(raw.get("type", "")).strip().upper()

            if kind == "NEW":
                try:
                    action = NewAction.model_validate({**raw, "type": kind})
                except ValidationError as e:
                    self._reject(report, raw, f"malformed NEW: {e.errors()[0]['msg']}")
                    continue
                if not budget.take():
                    self._reject(report, raw, f"limit of {budget.limit} new entries per run reached")
                    continue
                try:
                    entry_id = create_entry(self.db, action.date, action.topic, action.content, action.tags)
                except sqlite3.Error as e:
                    logger.error(f"KB: error creating entry {action.topic!r}: {e}")
                    report.failed.append((raw, str(e)))
                    continue
                report.created.append(entry_id)
                logger.info(f"KB: NEW #{entry_id} {action.topic}")

            elif kind == "MERGE":
                try:
                    action = MergeAction.model_validate({**raw, "type": kind})
                except ValidationError as e:
                    self._reject(report, raw, f"malformed MERGE: {e.errors()[0]['msg']}")
                    continue
                try:
                    entry = merge_into_entry(self.db, action.kb_id, action.additional_content, action.tags,
                                             window=window)
                except sqlite3.Error as e:
                    logger.error(f"KB: error merging into #{action.kb_id}: {e}")
                    report.failed.append((raw, str(e)))
                    continue
                if entry is None:
                    self._reject(report, raw, f"no entry #{action.kb_id}")
                    continue
                report.merged.append(entry.id)
                logger.info(f"KB: MERGE #{entry.id} {entry.topic}")

            else:
                self._reject(report, raw, f"action type {kind or '(missing)'} is not allowed")
        return report

    def _reject(self, report, raw, reason):
        logger.warning(f"KB: rejected action ({reason}): {raw}")
        report.rejected.append((raw, reason))
