from telegram.error import TelegramError

from groupmind.logging_config import get_logger

logger = get_logger(__name__)


class TelegramTransport:
    """Outbound side of the bot. Failures are logged and reported as False, never raised."""

    def __init__(self, bot):
        self.bot = bot

    async def send(self, conversation_id, text):
        try:
            await self.bot.send_message(chat_id=int(conversation_id), text=text)
        except TelegramError as e:
            logger.error(f"Error sending to {conversation_id}: {e}")
            return False
        return True

    async def react(self, conversation_id, message_id, emoji):
        try:
            await self.bot.set_message_reaction(chat_id=int(conversation_id), message_id=message_id,
                                                reaction=emoji)
        except TelegramError as e:
            logger.error(f"Error reacting to {conversation_id}/{message_id}: {e}")
            return False
        return True
