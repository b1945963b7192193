"""Append-only log of answered questions."""

from datetime import datetime, timezone

import structlog

from ask_credits_bot.storage.database import Database

logger = structlog.get_logger()


class ChatLogStore:
    """Records each answered query with its response."""

    def __init__(self, database: Database):
        self._db = database

    async def append(self, user_id: str, original_query: str, response: str) -> None:
        timestamp = datetime.now(timezone.utc).isoformat()
        await self._db.execute(
            "INSERT INTO chat_logs (user_id, original_query, response, timestamp)"
            " VALUES (?, ?, ?, ?)",
            (user_id, original_query, response, timestamp),
        )
        logger.debug("chat_log_appended", user_id=user_id, response_length=len(response))

