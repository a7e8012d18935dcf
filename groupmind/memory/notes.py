"""
Hourly notes and daily digests. One record per (conversation, period); a
second insert for the same key is refused rather than duplicated.
"""

import json
import sqlite3
from datetime import date

from groupmind.memory.models import DailyDigest, HourlyNote
from groupmind.timeutil import from_db_time, to_db_time


def hourly_note_exists(db, conversation_id, hour_bucket):
    cursor = db.execute(
        "SELECT 1 FROM hourly_notes WHERE conversation_id = ? AND hour_bucket = ?",
        (conversation_id, to_db_time(hour_bucket))
    )
    return cursor.fetchone() is not None


def insert_hourly_note(db, note):
    """Returns the new row id, or None if a note for that hour already exists."""
    try:
        cursor = db.execute(
            "INSERT INTO hourly_notes (conversation_id, hour_bucket, summary, decisions, action_items, "
            "message_count, participants) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (note.conversation_id, to_db_time(note.hour_bucket), note.summary, json.dumps(note.decisions),
             json.dumps(note.action_items), note.message_count, json.dumps(note.participants))
        )
    except sqlite3.IntegrityError:
        db.rollback()
        return None
    db.commit()
    return cursor.lastrowid


def get_hourly_notes(db, conversation_id, since):
    cursor = db.execute(
        "SELECT * FROM hourly_notes WHERE conversation_id = ? AND hour_bucket >= ? ORDER BY hour_bucket",
        (conversation_id, to_db_time(since))
    )
    return [
        HourlyNote(
            id=row["id"],
            conversation_id=row["conversation_id"],
            hour_bucket=from_db_time(row["hour_bucket"]),
            summary=row["summary"],
            decisions=json.loads(row["decisions"]),
            action_items=json.loads(row["action_items"]),
            message_count=row["message_count"],
            participants=json.loads(row["participants"]),
        )
        for row in cursor.fetchall()
    ]


def daily_digest_exists(db, conversation_id, digest_date):
    cursor = db.execute(
        "SELECT 1 FROM daily_digests WHERE conversation_id = ? AND digest_date = ?",
        (conversation_id, digest_date.isoformat())
    )
    return cursor.fetchone() is not None


def insert_daily_digest(db, digest):
    """Returns the new row id, or None if that day is already digested."""
    try:
        cursor = db.execute(
            "INSERT INTO daily_digests (conversation_id, digest_date, summary, projects, decisions, blockers, "
            "financial, message_count, participants, most_active) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (digest.conversation_id, digest.digest_date.isoformat(), digest.summary, json.dumps(digest.projects),
             json.dumps(digest.decisions), json.dumps(digest.blockers), json.dumps(digest.financial),
             digest.message_count, json.dumps(digest.participants), digest.most_active)
        )
    except sqlite3.IntegrityError:
        db.rollback()
        return None
    db.commit()
    return cursor.lastrowid


def get_daily_digests(db, conversation_id, limit=30):
    cursor = db.execute(
        "SELECT * FROM daily_digests WHERE conversation_id = ? ORDER BY digest_date DESC LIMIT ?",
        (conversation_id, limit)
    )
    rows = cursor.fetchall()
    rows.reverse()
    return [
        DailyDigest(
            id=row["id"],
            conversation_id=row["conversation_id"],
            digest_date=date.fromisoformat(row["digest_date"]),
            summary=row["summary"],
            projects=json.loads(row["projects"]),
            decisions=json.loads(row["decisions"]),
            blockers=json.loads(row["blockers"]),
            financial=json.loads(row["financial"]),
            message_count=row["message_count"],
            participants=json.loads(row["participants"]),
            most_active=row["most_active"],
        )
        for row in rows
    ]
