from datetime import date, time

from groupmind.memory.models import Reminder
from groupmind.timeutil import to_db_time, utcnow


def create_reminder(db, reminder):
    cursor = db.execute(
        "INSERT INTO reminders (conversation_id, person, remind_date, remind_time, message, created_by, implicit) "
        "VALUES (?, ?, ?, ?, ?, ?, ?)",
        (reminder.conversation_id, reminder.person, reminder.remind_date.isoformat(),
         reminder.remind_time.strftime("%H:%M:%S"), reminder.message, reminder.created_by,
         int(reminder.implicit))
    )
    db.commit()
    return cursor.lastrowid


def _row_to_reminder(row):
    return Reminder(
        id=row["id"],
        conversation_id=row["conversation_id"],
        person=row["person"],
        remind_date=date.fromisoformat(row["remind_date"]),
        remind_time=time.fromisoformat(row["remind_time"]),
        message=row["message"],
        created_by=row["created_by"],
        implicit=bool(row["implicit"]),
        status=row["status"],
    )


def get_due_reminders(db, local_now):
    """Pending reminders whose local date/time is at or before `local_now`."""
    today = local_now.date().isoformat()
    clock = local_now.strftime("%H:%M:%S")
    cursor = db.execute(
        "SELECT * FROM reminders WHERE status = 'pending' "
        "AND (remind_date < ? OR (remind_date = ? AND remind_time <= ?)) "
        "ORDER BY remind_date, remind_time, id",
        (today, today, clock)
    )
    return [_row_to_reminder(row) for row in cursor.fetchall()]


def get_upcoming_reminders(db, local_today, conversation_id=None):
    query = "SELECT * FROM reminders WHERE status = 'pending' AND remind_date >= ?"
    params = [local_today.isoformat()]
    if conversation_id is not None:
        query += " AND conversation_id = ?"
        params.append(conversation_id)
    cursor = db.execute(query + " ORDER BY remind_date, remind_time, id", params)
    return [_row_to_reminder(row) for row in cursor.fetchall()]


def mark_sent(db, reminder_id):
    db.execute(
        "UPDATE reminders SET status = 'sent', sent_at = ? WHERE id = ? AND status = 'pending'",
        (to_db_time(utcnow()), reminder_id)
    )
    db.commit()


def cancel_reminder(db, reminder_id, conversation_id):
    """Cancel a pending reminder of this conversation. Returns False if there was none."""
    cursor = db.execute(
        "UPDATE reminders SET status = 'cancelled' WHERE id = ? AND conversation_id = ? AND status = 'pending'",
        (reminder_id, conversation_id)
    )
    db.commit()
    return cursor.rowcount > 0
