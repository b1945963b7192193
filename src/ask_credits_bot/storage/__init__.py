"""SQLite storage module."""

from ask_credits_bot.storage.chat_log import ChatLogStore
from ask_credits_bot.storage.database import Database

__all__ = ["ChatLogStore", "Database"]
