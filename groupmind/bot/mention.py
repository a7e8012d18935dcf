"""Detects when the assistant is being addressed."""

import re

from groupmind.config import BOT_NAME


class MentionDetector:
    def __init__(self, bot_name=BOT_NAME, bot_username=None):
        self.bot_name = bot_name
        self.bot_username = bot_username
        names = [re.escape(bot_name)]
        if bot_username:
            names.append(re.escape(bot_username))
        alternatives = "|".join(names)
        self.patterns = [
            re.compile(rf"@(?:{alternatives})\b", re.IGNORECASE),
            re.compile(rf"\b(?:hey|hi|halo|hai|ok)\s+(?:{alternatives})\b", re.IGNORECASE),
            re.compile(rf"^\s*(?:{alternatives})\b", re.IGNORECASE),
            re.compile(rf"\b(?:{alternatives})\s*[,:?]", re.IGNORECASE),
        ]

    def detect_mention(self, text):
        if not text:
            return False
        return any(pattern.search(text) for pattern in self.patterns)

    def is_addressed(self, text, is_private=False, replies_to_bot=False):
        """Private chats and replies to the bot count as addressing it."""
        return is_private or replies_to_bot or self.detect_mention(text)
