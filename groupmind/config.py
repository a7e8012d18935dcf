"""Configuration loaded from environment variables."""

import os

from dotenv import load_dotenv

load_dotenv()


# Telegram
TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN", "")
TELEGRAM_ALLOWED_CHAT_IDS = [
    int(cid.strip()) for cid in os.getenv("TELEGRAM_ALLOWED_CHAT_IDS", "").split(",") if cid.strip()
]
BOT_NAME = os.getenv("BOT_NAME", "Nova")

# LLM
OLLAMA_HOST = os.getenv("OLLAMA_HOST", "http://ollama:11434")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "qwen2.5:14b-instruct-q5_K_M")
OLLAMA_ROUTER_MODEL = os.getenv("OLLAMA_ROUTER_MODEL", "qwen2.5:3b-instruct")
OLLAMA_COMPILER_MODEL = os.getenv("OLLAMA_COMPILER_MODEL", OLLAMA_MODEL)
ORACLE_TIMEOUT_SECONDS = float(os.getenv("ORACLE_TIMEOUT_SECONDS", "120"))
ORACLE_RETRY_ATTEMPTS = int(os.getenv("ORACLE_RETRY_ATTEMPTS", "3"))
ORACLE_RETRY_DELAY = float(os.getenv("ORACLE_RETRY_DELAY", "1.0"))
# Per-1K token prices, zero for a local model
ORACLE_PRICE_INPUT_PER_1K = float(os.getenv("ORACLE_PRICE_INPUT_PER_1K", "0"))
ORACLE_PRICE_OUTPUT_PER_1K = float(os.getenv("ORACLE_PRICE_OUTPUT_PER_1K", "0"))

# Agent
TIMEZONE = os.getenv("TIMEZONE", "Asia/Jakarta")
BUFFER_ENABLED = os.getenv("BUFFER_ENABLED", "true").lower() == "true"
BUFFER_DEBOUNCE_SECONDS = float(os.getenv("BUFFER_DEBOUNCE_SECONDS", "15"))
BUFFER_MAX_BATCH = int(os.getenv("BUFFER_MAX_BATCH", "20"))
DAILY_JOBS_TIME = os.getenv("DAILY_JOBS_TIME", "00:00")
KB_MAX_CATCHUP_DAYS = int(os.getenv("KB_MAX_CATCHUP_DAYS", "3"))
CONTEXT_TODAY_MESSAGE_LIMIT = int(os.getenv("CONTEXT_TODAY_MESSAGE_LIMIT", "200"))
CONTEXT_DAILY_DIGEST_LIMIT = int(os.getenv("CONTEXT_DAILY_DIGEST_LIMIT", "3"))
REMINDER_REACTION = os.getenv("REMINDER_REACTION", "✍")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Database
DATABASE_PATH = os.getenv("DATABASE_PATH", "./data/db/groupmind.db")
