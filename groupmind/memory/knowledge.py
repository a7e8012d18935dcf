"""
Knowledge base store.

Entries are created once and afterwards only grow: a merge appends text and
tags, and the creation `date` column is never written again. `merged_window`
remembers which compiled day last merged into an entry, so compiling that day
again does not append the same text twice.
"""

from groupmind.memory.models import KnowledgeEntry, ProcessingCursor
from groupmind.timeutil import from_db_time, to_db_time, utcnow


def split_tags(raw):
    if not raw:
        return []
    return [t.strip() for t in raw.split(",") if t.strip()]


def merge_tags(existing, new):
    """Union of both tag lists, first occurrence wins, case-insensitive."""
    merged = []
    seen = set()
    for tag in list(existing) + list(new):
        key = tag.strip().lower()
        if key and key not in seen:
            seen.add(key)
            merged.append(tag.strip())
    return merged


def merge_content(existing, additional):
    """Append `additional` to `existing`; `existing` is always a prefix of the result."""
    if not additional or not additional.strip():
        return existing
    if not existing or existing[-1].isspace() or additional[0].isspace():
        return existing + additional
    return existing + " " + additional


def _row_to_entry(row):
    return KnowledgeEntry(
        id=row["id"],
        date=row["date"],
        topic=row["topic"],
        content=row["content"],
        tags=split_tags(row["tags"]),
    )


def load_knowledge_base(db):
    cursor = db.execute("SELECT * FROM knowledge_base ORDER BY id")
    return [_row_to_entry(row) for row in cursor.fetchall()]


def get_entry(db, entry_id):
    row = db.execute("SELECT * FROM knowledge_base WHERE id = ?", (entry_id,)).fetchone()
    return _row_to_entry(row) if row else None


def create_entry(db, entry_date, topic, content, tags):
    cursor = db.execute(
        "INSERT INTO knowledge_base (date, topic, content, tags) VALUES (?, ?, ?, ?)",
        (entry_date, topic, content, ", ".join(merge_tags([], tags)))
    )
    db.commit()
    return cursor.lastrowid


def merge_into_entry(db, entry_id, additional_content, tags, window=None):
    """Append to an entry. Returns the updated entry, or None if the id is unknown."""
    row = db.execute("SELECT * FROM knowledge_base WHERE id = ?", (entry_id,)).fetchone()
    if row is None:
        return None
    existing = _row_to_entry(row)

    repeated = (window is not None and row["merged_window"] == window
                and existing.content.endswith(additional_content.strip()))
    content = existing.content if repeated else merge_content(existing.content, additional_content)
    merged_tags = merge_tags(existing.tags, tags)
    db.execute(
        "UPDATE knowledge_base SET content = ?, tags = ?, merged_window = COALESCE(?, merged_window), "
        "updated_at = CURRENT_TIMESTAMP WHERE id = ?",
        (content, ", ".join(merged_tags), window, entry_id)
    )
    db.commit()
    return KnowledgeEntry(id=existing.id, date=existing.date, topic=existing.topic,
                          content=content, tags=merged_tags)


def get_cursor(db):
    row = db.execute("SELECT * FROM kb_processing_status WHERE id = 1").fetchone()
    if row is None:
        return ProcessingCursor(last_processed=None)
    return ProcessingCursor(last_processed=from_db_time(row["last_processed"]),
                            last_run_at=from_db_time(row["last_run_at"]))


def advance_cursor(db, processed_up_to):
    db.execute(
        "INSERT INTO kb_processing_status (id, last_processed, last_run_at) VALUES (1, ?, ?) "
        "ON CONFLICT(id) DO UPDATE SET last_processed = excluded.last_processed, "
        "last_run_at = excluded.last_run_at",
        (to_db_time(processed_up_to), to_db_time(utcnow()))
    )
    db.commit()
