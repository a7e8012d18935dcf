import sqlite3

from groupmind.logging_config import get_logger
from groupmind.memory.reminders import get_due_reminders, mark_sent
from groupmind.scheduler.jobs import JobGuard
from groupmind.timeutil import utcnow

logger = get_logger(__name__)


def format_reminder(reminder):
    person = reminder.person if reminder.person.lower() == "all" else f"@{reminder.person.lstrip('@')}"
    return (f"⏰ *REMINDER* ({reminder.remind_time.strftime('%H:%M')})\n"
            f"{person} {reminder.message}\n"
            f"Set by {reminder.created_by}")


class ReminderSweep:
    """Sends every pending reminder that is due, then marks it sent."""

    def __init__(self, db, transport, tz, clock=utcnow):
        self.db = db
        self.transport = transport
        self.tz = tz
        self.clock = clock
        self.guard = JobGuard("reminder sweep")

    async def run(self, now=None):
        """Returns the ids of the reminders sent, or None if a sweep is in progress."""
        if not self.guard.try_enter():
            return None
        try:
            local_now = (now or self.clock()).astimezone(self.tz)
            sent = []
            try:
                due = get_due_reminders(self.db, local_now)
            except sqlite3.Error as e:
                logger.error(f"Error loading due reminders: {e}")
                return sent
            for reminder in due:
                delivered = await self.transport.send(reminder.conversation_id, format_reminder(reminder))
                if not delivered:
                    # stays pending, retried on the next sweep
                    continue
                try:
                    mark_sent(self.db, reminder.id)
                except sqlite3.Error as e:
                    logger.error(f"Error marking reminder {reminder.id} sent: {e}")
                    continue
                sent.append(reminder.id)
            if sent:
                logger.info(f"Sent {len(sent)} reminder(s)")
            return sent
        finally:
            self.guard.leave()
