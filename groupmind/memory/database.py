import os
import sqlite3

from groupmind.config import DATABASE_PATH


def init_db(path=DATABASE_PATH):
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    db = sqlite3.connect(path, check_same_thread=False)
    db.row_factory = sqlite3.Row
    db.execute("PRAGMA journal_mode=WAL")

    db.executescript("""
        CREATE TABLE IF NOT EXISTS messages (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            conversation_id TEXT NOT NULL,
            conversation_name TEXT,
            message_id INTEGER,
            sender TEXT NOT NULL,
            body TEXT NOT NULL,
            timestamp TEXT NOT NULL,
            is_reply INTEGER NOT NULL DEFAULT 0,
            has_media INTEGER NOT NULL DEFAULT 0,
            addressed INTEGER NOT NULL DEFAULT 0
        );
        CREATE INDEX IF NOT EXISTS idx_messages_conv_ts ON messages (conversation_id, timestamp);
        CREATE INDEX IF NOT EXISTS idx_messages_ts ON messages (timestamp);

        CREATE TABLE IF NOT EXISTS router_decisions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            trace_id TEXT,
            timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
            conversation_id TEXT,
            message_text TEXT NOT NULL,
            action TEXT NOT NULL,
            confidence REAL NOT NULL,
            reason TEXT NOT NULL,
            method TEXT NOT NULL,
            addressed INTEGER NOT NULL DEFAULT 0,
            tokens_used INTEGER NOT NULL DEFAULT 0,
            cost REAL NOT NULL DEFAULT 0
        );
        CREATE TABLE IF NOT EXISTS actions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            trace_id TEXT NOT NULL,
            timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
            action_type TEXT NOT NULL,
            metadata JSON
        );

        CREATE TABLE IF NOT EXISTS hourly_notes (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            conversation_id TEXT NOT NULL,
            hour_bucket TEXT NOT NULL,
            summary TEXT NOT NULL,
            decisions JSON NOT NULL,
            action_items JSON NOT NULL,
            message_count INTEGER NOT NULL,
            participants JSON NOT NULL,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (conversation_id, hour_bucket)
        );
        CREATE TABLE IF NOT EXISTS daily_digests (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            conversation_id TEXT NOT NULL,
            digest_date TEXT NOT NULL,
            summary TEXT NOT NULL,
            projects JSON NOT NULL,
            decisions JSON NOT NULL,
            blockers JSON NOT NULL,
            financial JSON NOT NULL,
            message_count INTEGER NOT NULL,
            participants JSON NOT NULL,
            most_active TEXT,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (conversation_id, digest_date)
        );

        CREATE TABLE IF NOT EXISTS knowledge_base (
            id INTEGER PRIMARY KEY,
            date TEXT NOT NULL,
            topic TEXT NOT NULL,
            content TEXT NOT NULL,
            tags TEXT NOT NULL DEFAULT '',
            merged_window TEXT,
            updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
        );
        CREATE TABLE IF NOT EXISTS kb_processing_status (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            last_processed TEXT,
            last_run_at TEXT
        );

        CREATE TABLE IF NOT EXISTS reminders (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            conversation_id TEXT NOT NULL,
            person TEXT NOT NULL,
            remind_date TEXT NOT NULL,
            remind_time TEXT NOT NULL,
            message TEXT NOT NULL,
            created_by TEXT NOT NULL,
            implicit INTEGER NOT NULL DEFAULT 0,
            status TEXT NOT NULL DEFAULT 'pending',
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            sent_at TEXT
        );
        CREATE INDEX IF NOT EXISTS idx_reminders_due ON reminders (status, remind_date, remind_time);
    """)
    db.commit()
    return db
