"""
Centralized logging configuration for the bot.
"""

import logging
import sys

from groupmind.config import LOG_LEVEL


def setup_logging(level=None):
    """Configure the root logger once, at process start."""
    level = (level or LOG_LEVEL).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO),
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                        handlers=[logging.StreamHandler(sys.stdout)])
    # httpx logs every ollama/telegram request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name):
    return logging.getLogger(name)
