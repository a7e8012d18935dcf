from datetime import timedelta

from groupmind.config import CONTEXT_DAILY_DIGEST_LIMIT, CONTEXT_TODAY_MESSAGE_LIMIT
from groupmind.memory.conversation_log import get_recent_messages
from groupmind.memory.knowledge import load_knowledge_base
from groupmind.memory.notes import get_daily_digests, get_hourly_notes
from groupmind.timeutil import day_window, local_date


def format_message(message, tz):
    line = f"[{message.timestamp.astimezone(tz).strftime('%H:%M')}] {message.sender}"
    if message.addressed:
        line += " (to assistant)"
    return f"{line}: {message.body}"


def format_knowledge_entry(entry):
    return f"#{entry.id} | {entry.date} | {entry.topic} | {entry.content} | {', '.join(entry.tags)}"


def build_conversation_context(db, conversation_id, now, tz, today_limit=CONTEXT_TODAY_MESSAGE_LIMIT,
                               digest_limit=CONTEXT_DAILY_DIGEST_LIMIT):
    """Build a text summary of what the group knows, for the LLM."""
    sections = []

    entries = load_knowledge_base(db)
    if entries:
        lines = ["KNOWLEDGE BASE (#id | date | topic | content | tags):"]
        lines.extend(format_knowledge_entry(e) for e in entries)
        sections.append("\n".join(lines))

    digests = get_daily_digests(db, conversation_id, limit=digest_limit)
    if digests:
        lines = ["RECENT DAILY DIGESTS:"]
        for digest in digests:
            line = f"  - {digest.digest_date.isoformat()} | {digest.summary}"
            if digest.blockers:
                line += f" | blockers: {'; '.join(digest.blockers)}"
            lines.append(line)
        sections.append("\n".join(lines))

    notes = get_hourly_notes(db, conversation_id, now - timedelta(hours=24))
    if notes:
        lines = ["HOURLY NOTES (last 24 hours):"]
        for note in notes:
            line = f"  - {note.hour_bucket.astimezone(tz).strftime('%a %H:%M')} | {note.summary}"
            if note.decisions:
                line += f" | decisions: {'; '.join(note.decisions)}"
            if note.action_items:
                line += f" | actions: {'; '.join(note.action_items)}"
            lines.append(line)
        sections.append("\n".join(lines))

    today_start, _ = day_window(local_date(now, tz), tz)
    messages = get_recent_messages(db, conversation_id, today_start, limit=today_limit)
    if messages:
        lines = [f"TODAY'S MESSAGES ({now.astimezone(tz).strftime('%A, %B %d')}):"]
        lines.extend(format_message(m, tz) for m in messages)
        sections.append("\n".join(lines))
    else:
        sections.append(f"TODAY'S MESSAGES ({now.astimezone(tz).strftime('%A, %B %d')}): none yet")

    return "\n\n".join(sections)
