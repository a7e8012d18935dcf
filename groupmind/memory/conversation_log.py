from groupmind.memory.models import Message
from groupmind.timeutil import from_db_time, to_db_time


def save_message(db, message):
    """Persist a raw message and return its row id."""
    cursor = db.execute(
        "INSERT INTO messages (conversation_id, conversation_name, message_id, sender, body, timestamp, "
        "is_reply, has_media, addressed) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (message.conversation_id, message.conversation_name, message.message_id, message.sender,
         message.body, to_db_time(message.timestamp), int(message.is_reply), int(message.has_media),
         int(message.addressed))
    )
    db.commit()
    return cursor.lastrowid


def _row_to_message(row):
    return Message(
        id=row["id"],
        conversation_id=row["conversation_id"],
        conversation_name=row["conversation_name"],
        message_id=row["message_id"],
        sender=row["sender"],
        body=row["body"],
        timestamp=from_db_time(row["timestamp"]),
        is_reply=bool(row["is_reply"]),
        has_media=bool(row["has_media"]),
        addressed=bool(row["addressed"]),
    )


def get_messages_between(db, start, end, conversation_id=None):
    """Messages with start <= timestamp < end, oldest first."""
    query = "SELECT * FROM messages WHERE timestamp >= ? AND timestamp < ?"
    params = [to_db_time(start), to_db_time(end)]
    if conversation_id is not None:
        query += " AND conversation_id = ?"
        params.append(conversation_id)
    query += " ORDER BY timestamp, id"
    return [_row_to_message(row) for row in db.execute(query, params).fetchall()]


def get_active_conversations(db, start, end):
    cursor = db.execute(
        "SELECT DISTINCT conversation_id FROM messages WHERE timestamp >= ? AND timestamp < ? "
        "ORDER BY conversation_id",
        (to_db_time(start), to_db_time(end))
    )
    return [row["conversation_id"] for row in cursor.fetchall()]


def get_recent_messages(db, conversation_id, since, limit=200):
    """The newest `limit` messages since `since`, returned oldest first."""
    cursor = db.execute(
        "SELECT * FROM messages WHERE conversation_id = ? AND timestamp >= ? "
        "ORDER BY timestamp DESC, id DESC LIMIT ?",
        (conversation_id, to_db_time(since), limit)
    )
    rows = cursor.fetchall()
    rows.reverse()
    return [_row_to_message(row) for row in rows]
