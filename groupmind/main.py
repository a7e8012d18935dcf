from telegram.ext import Application, CommandHandler, MessageHandler, filters

from groupmind.bot.mention import MentionDetector
from groupmind.bot.telegram_handler import (
    handle_buffer,
    handle_cancel,
    handle_kb_preview,
    handle_message,
    handle_reminders,
    handle_status,
)
from groupmind.bot.transport import TelegramTransport
from groupmind.config import (
    BOT_NAME,
    DAILY_JOBS_TIME,
    DATABASE_PATH,
    OLLAMA_COMPILER_MODEL,
    OLLAMA_MODEL,
    OLLAMA_ROUTER_MODEL,
    TELEGRAM_ALLOWED_CHAT_IDS,
    TELEGRAM_BOT_TOKEN,
)
from groupmind.core.buffer import ConversationBuffer
from groupmind.core.dispatcher import ActionDispatcher
from groupmind.core.oracle import Oracle
from groupmind.core.pipeline import BatchPipeline
from groupmind.core.router import Router
from groupmind.logging_config import get_logger, setup_logging
from groupmind.memory.database import init_db
from groupmind.scheduler.daily_digest import DailyDigestCompiler
from groupmind.scheduler.hourly_notes import HourlyNotesCompiler
from groupmind.scheduler.jobs import register_jobs
from groupmind.scheduler.knowledge_compiler import KnowledgeCompiler
from groupmind.scheduler.reminder_sweep import ReminderSweep
from groupmind.timeutil import get_tz, parse_clock

logger = get_logger(__name__)


async def _post_init(app):
    # username is only known once the bot has called getMe
    app.bot_data["mention"] = MentionDetector(BOT_NAME, app.bot.username)
    logger.info(f"Bot is running as @{app.bot.username}")


async def _post_stop(app):
    await app.bot_data["buffer"].stop()


async def _post_shutdown(app):
    app.bot_data["db"].close()


def build_app(token, db, tz):
    app = (
        Application.builder()
        .token(token)
        .post_init(_post_init)
        .post_stop(_post_stop)
        .post_shutdown(_post_shutdown)
        .build()
    )

    transport = TelegramTransport(app.bot)
    router = Router(Oracle(OLLAMA_ROUTER_MODEL), db=db)
    compiler_oracle = Oracle(OLLAMA_COMPILER_MODEL)
    pipeline = BatchPipeline(db, router, Oracle(OLLAMA_MODEL), ActionDispatcher(db, transport), tz)

    app.bot_data.update({
        "db": db,
        "tz": tz,
        "router": router,
        "pipeline": pipeline,
        "buffer": ConversationBuffer(pipeline),
        "mention": MentionDetector(BOT_NAME),
        "hourly_notes": HourlyNotesCompiler(db, compiler_oracle, tz),
        "daily_digest": DailyDigestCompiler(db, compiler_oracle, tz),
        "knowledge_compiler": KnowledgeCompiler(db, compiler_oracle, tz),
        "reminder_sweep": ReminderSweep(db, transport, tz),
    })

    app.add_handler(CommandHandler("status", handle_status))
    app.add_handler(CommandHandler("buffer", handle_buffer))
    app.add_handler(CommandHandler("reminders", handle_reminders))
    app.add_handler(CommandHandler("cancel", handle_cancel))
    app.add_handler(CommandHandler("kbpreview", handle_kb_preview))
    app.add_handler(MessageHandler(filters.UpdateType.MESSAGE & ~filters.COMMAND, handle_message))

    register_jobs(app.job_queue, tz, parse_clock(DAILY_JOBS_TIME))
    return app


def main():
    setup_logging()
    if not TELEGRAM_BOT_TOKEN:
        logger.error("Set TELEGRAM_BOT_TOKEN in .env")
        return

    tz = get_tz()
    logger.info("Starting GroupMind...")
    logger.info(f"Model: {OLLAMA_MODEL} (router: {OLLAMA_ROUTER_MODEL}, compiler: {OLLAMA_COMPILER_MODEL})")
    logger.info(f"Allowed chats: {TELEGRAM_ALLOWED_CHAT_IDS or 'all'}")
    logger.info(f"Database: {DATABASE_PATH}, timezone: {tz.key}")

    db = init_db(DATABASE_PATH)
    app = build_app(TELEGRAM_BOT_TOKEN, db, tz)
    app.run_polling()


if __name__ == "__main__":
    main()
