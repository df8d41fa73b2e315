"""Telegram Bot API gateway: client and update parsing."""

from .client import BotClient, TelegramApiError, TelegramClient, bot_id_from_token
from .parsing import parse_update

__all__ = [
    "BotClient",
    "TelegramApiError",
    "TelegramClient",
    "bot_id_from_token",
    "parse_update",
]
