import sqlite3
import uuid

from telegram import Update
from telegram.constants import ChatType
from telegram.ext import ContextTypes

from groupmind.config import TELEGRAM_ALLOWED_CHAT_IDS
from groupmind.logging_config import get_logger
from groupmind.memory.conversation_log import save_message
from groupmind.memory.models import Message
from groupmind.memory.reminders import cancel_reminder, get_upcoming_reminders
from groupmind.timeutil import day_window, local_date, utcnow

logger = get_logger(__name__)


def _allowed(chat):
    return not TELEGRAM_ALLOWED_CHAT_IDS or chat.id in TELEGRAM_ALLOWED_CHAT_IDS


def _has_media(message):
    return bool(message.photo or message.document or message.video or message.voice
                or message.audio or message.sticker or message.animation)


def to_message(update, bot_id, detector):
    """Convert a Telegram update into a stored Message, or None if there is nothing to keep."""
    tg_message = update.effective_message
    chat = update.effective_chat
    body = tg_message.text or tg_message.caption or ""
    has_media = _has_media(tg_message)
    if not body and not has_media:
        return None

    reply_to = tg_message.reply_to_message
    replies_to_bot = bool(reply_to and reply_to.from_user and reply_to.from_user.id == bot_id)
    sender = tg_message.from_user.full_name if tg_message.from_user else (chat.title or "Unknown")

    return Message(
        conversation_id=str(chat.id),
        conversation_name=chat.title or chat.full_name,
        message_id=tg_message.message_id,
        sender=sender,
        body=body,
        timestamp=tg_message.date,
        is_reply=reply_to is not None,
        has_media=has_media,
        addressed=detector.is_addressed(body, is_private=chat.type == ChatType.PRIVATE,
                                        replies_to_bot=replies_to_bot),
    )


async def handle_message(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Store every incoming message and hand it to the buffer."""
    if update.effective_message is None or update.effective_chat is None:
        return
    if not _allowed(update.effective_chat):
        return

    message = to_message(update, context.bot.id, context.bot_data["mention"])
    if message is None:
        return

    trace_id = str(uuid.uuid4())[:8]
    try:
        save_message(context.bot_data["db"], message)
    except sqlite3.Error as e:
        logger.error(f"[{trace_id}] Error saving message from {message.sender} in {message.conversation_id}: {e}")
        return

    context.bot_data["buffer"].add(message.conversation_id, message)
    logger.info(f"[{trace_id}] {message.conversation_name} | {message.sender}"
                f"{' (to bot)' if message.addressed else ''}: {message.body[:50]}")


async def handle_status(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /status command: buffer and router counters."""
    if not _allowed(update.effective_chat):
        return

    buffer = context.bot_data["buffer"]
    buffer_stats = buffer.stats()
    router_stats = context.bot_data["router"].stats
    await update.message.reply_text(
        f"Buffer: {'on' if buffer.enabled else 'off'}, "
        f"{buffer.pending_count(str(update.effective_chat.id))} waiting here, "
        f"{buffer_stats['buffered_messages']} waiting in {buffer_stats['active_buffers']} chat(s)\n"
        f"Router: {router_stats.total_decisions} decisions, "
        f"{router_stats.heuristic_percentage}% heuristic, "
        f"{router_stats.oracle_failures} oracle failures, cost ${router_stats.total_cost:.4f}"
    )


async def handle_buffer(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /buffer on|off."""
    if not _allowed(update.effective_chat):
        return

    args = [a.lower() for a in (context.args or [])]
    if args not in (["on"], ["off"]):
        await update.message.reply_text("Usage: /buffer on|off")
        return
    await context.bot_data["buffer"].set_enabled(args[0] == "on")
    await update.message.reply_text(f"Buffering {args[0]} ✓")


async def handle_reminders(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /reminders command: pending reminders of this chat."""
    if not _allowed(update.effective_chat):
        return

    tz = context.bot_data["tz"]
    try:
        reminders = get_upcoming_reminders(context.bot_data["db"], local_date(utcnow(), tz),
                                           str(update.effective_chat.id))
    except sqlite3.Error as e:
        logger.error(f"Error loading reminders: {e}")
        await update.message.reply_text("Couldn't load reminders, try again later.")
        return

    if not reminders:
        await update.message.reply_text("No upcoming reminders.")
        return
    lines = [f"#{r.id} {r.remind_date.isoformat()} {r.remind_time.strftime('%H:%M')} {r.person}: {r.message}"
             for r in reminders]
    await update.message.reply_text("Upcoming reminders:\n" + "\n".join(lines))


async def handle_cancel(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /cancel <id>."""
    if not _allowed(update.effective_chat):
        return

    args = context.args or []
    if len(args) != 1 or not args[0].lstrip("#").isdigit():
        await update.message.reply_text("Usage: /cancel <reminder id>")
        return
    reminder_id = int(args[0].lstrip("#"))

    try:
        cancelled = cancel_reminder(context.bot_data["db"], reminder_id, str(update.effective_chat.id))
    except sqlite3.Error as e:
        logger.error(f"Error cancelling reminder {reminder_id}: {e}")
        await update.message.reply_text("Couldn't cancel, try again later.")
        return

    if cancelled:
        await update.message.reply_text(f"Reminder #{reminder_id} cancelled ✓")
    else:
        await update.message.reply_text(f"No pending reminder #{reminder_id} here.")


async def handle_kb_preview(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /kbpreview: what the knowledge base compiler would do with today's messages so far."""
    if not _allowed(update.effective_chat):
        return

    tz = context.bot_data["tz"]
    now = utcnow()
    start, _ = day_window(local_date(now, tz), tz)
    try:
        result = await context.bot_data["knowledge_compiler"].preview(start, now)
    except sqlite3.Error as e:
        logger.error(f"Error loading knowledge base preview: {e}")
        await update.message.reply_text("Couldn't load today's messages, try again later.")
        return

    if not result.ok:
        await update.message.reply_text(f"Preview failed: {result.reason}")
        return

    plan = result.value
    lines = [plan.summary or "(no summary)"]
    for action in plan.actions:
        kind = str(action.get("type", "?")).upper()
        if kind == "MERGE":
            lines.append(f"- MERGE #{action.get('kb_id')}: {str(action.get('additional_content', '')).strip()}")
        else:
            lines.append(f"- {kind} {action.get('topic', '')}")
    await update.message.reply_text("\n".join(lines))
