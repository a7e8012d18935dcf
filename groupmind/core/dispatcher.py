"""
Turns a generated response into exactly one side effect.

    SILENT             -> nothing
    REMIND {json}      -> store a reminder (malformed JSON fails closed to SILENT)
    REPLY <text>       -> send text back to the conversation
    anything else      -> REPLY with the whole text
"""

import re
import sqlite3
from dataclasses import dataclass
from typing import Optional

from groupmind.config import REMINDER_REACTION
from groupmind.core.parsing import decode
from groupmind.core.schemas import ReminderPayload
from groupmind.logging_config import get_logger
from groupmind.memory.action_log import log_action
from groupmind.memory.models import Reminder
from groupmind.memory.reminders import create_reminder

logger = get_logger(__name__)

TAG_PATTERN = re.compile(r"^\s*(SILENT|REMIND|REPLY)\b:?[ \t]*(.*)\Z", re.DOTALL)


@dataclass(frozen=True)
class Silent:
    reason: str = ""


@dataclass(frozen=True)
class Remind:
    payload: ReminderPayload


@dataclass(frozen=True)
class Reply:
    text: str


def parse_action(text):
    if text is None or not text.strip():
        return Silent("empty response")

    match = TAG_PATTERN.match(text)
    if match is None:
        # untagged output is a reply
        return Reply(text.strip())

    tag, rest = match.group(1), match.group(2).strip()
    if tag == "SILENT":
        return Silent("model chose silence")
    if tag == "REPLY":
        return Reply(rest) if rest else Silent("empty REPLY")

    result = decode(rest, ReminderPayload)
    if not result.ok:
        logger.warning(f"Malformed REMIND ({result.reason}), staying silent: {rest[:200]!r}")
        return Silent(f"malformed reminder: {result.reason}")
    return Remind(result.value)


@dataclass(frozen=True)
class DispatchContext:
    conversation_id: str
    addressed: bool = False
    sender: str = "Unknown"
    message_id: Optional[int] = None  # latest message of the batch, target for reactions
    trace_id: Optional[str] = None


@dataclass(frozen=True)
class DispatchOutcome:
    kind: str  # "silent" | "reply" | "remind" | "remind_failed"
    detail: str = ""
    delivered: bool = False
    reminder_id: Optional[int] = None


class ActionDispatcher:
    def __init__(self, db, transport, reaction=REMINDER_REACTION):
        self.db = db
        self.transport = transport
        self.reaction = reaction

    async def dispatch(self, text, context):
        action = parse_action(text)

        if isinstance(action, Silent):
            outcome = DispatchOutcome(kind="silent", detail=action.reason)
        elif isinstance(action, Reply):
            delivered = await self.transport.send(context.conversation_id, action.text)
            outcome = DispatchOutcome(kind="reply", detail=action.text, delivered=delivered)
        else:
            outcome = await self._remind(action.payload, context)

        logger.info(f"[{context.trace_id}] dispatch: {outcome.kind} {outcome.detail[:80]!r}")
        self._audit(context, outcome)
        return outcome

    async def _remind(self, payload, context):
        implicit = not context.addressed
        reminder = Reminder(
            conversation_id=context.conversation_id,
            person=payload.person,
            remind_date=payload.remind_date,
            remind_time=payload.remind_time,
            message=payload.message,
            created_by=context.sender,
            implicit=implicit,
        )
        try:
            reminder_id = create_reminder(self.db, reminder)
        except sqlite3.Error as e:
            logger.error(f"[{context.trace_id}] Error creating reminder: {e}")
            return DispatchOutcome(kind="remind_failed", detail=str(e))

        when = f"{payload.remind_date.isoformat()} {payload.remind_time.strftime('%H:%M')}"
        if implicit and context.message_id is not None:
            delivered = await self.transport.react(context.conversation_id, context.message_id, self.reaction)
        else:
            delivered = await self.transport.send(
                context.conversation_id, f"⏰ Reminder set for {payload.person}, {when}: {payload.message}"
            )
        return DispatchOutcome(kind="remind", detail=f"{payload.person} @ {when}: {payload.message}",
                               delivered=delivered, reminder_id=reminder_id)

    def _audit(self, context, outcome):
        try:
            log_action(self.db, context.trace_id or "-", outcome.kind, {
                "conversation_id": context.conversation_id,
                "addressed": context.addressed,
                "delivered": outcome.delivered,
                "reminder_id": outcome.reminder_id,
                "detail": outcome.detail[:500],
            })
        except sqlite3.Error as e:
            logger.error(f"[{context.trace_id}] Error logging dispatch action: {e}")
