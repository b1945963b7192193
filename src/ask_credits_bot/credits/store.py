"""Durable credit stores behind the ledger."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Protocol

import structlog

from ask_credits_bot.credits.models import CreditAccount
from ask_credits_bot.errors import StoreUnavailable
from ask_credits_bot.storage.database import Database

logger = structlog.get_logger()


class CreditStore(Protocol):
    """Key-value store of credit accounts, keyed by user ID."""

    async def read(self, user_id: str) -> CreditAccount | None: ...

    async def write(self, account: CreditAccount) -> None: ...


class InMemoryCreditStore:
    """Dict-backed store. Used when no database is configured, and in tests."""

    def __init__(self, accounts: dict[str, CreditAccount] | None = None):
        self._accounts: dict[str, CreditAccount] = dict(accounts or {})
        self.write_count = 0

    async def read(self, user_id: str) -> CreditAccount | None:
        return self._accounts.get(user_id)

    async def write(self, account: CreditAccount) -> None:
        self._accounts[account.user_id] = account
        self.write_count += 1


class SqliteCreditStore:
    """Credit accounts persisted in the ``credits`` table."""

    def __init__(self, database: Database):
        self._db = database

    async def read(self, user_id: str) -> CreditAccount | None:
        try:
            row = await self._db.fetchone(
                "SELECT user_id, credits, last_updated FROM credits WHERE user_id=?",
                (user_id,),
            )
        except sqlite3.Error as e:
            logger.error("credit_store_read_failed", user_id=user_id, error=str(e))
            raise StoreUnavailable(f"Failed to read credits for {user_id}: {e}") from e
        if row is None:
            return None
        last_updated = (
            datetime.fromisoformat(row["last_updated"]) if row["last_updated"] else None
        )
        return CreditAccount(
            user_id=row["user_id"],
            credits=int(row["credits"]),
            last_updated=last_updated,
        )

    async def write(self, account: CreditAccount) -> None:
        last_updated = account.last_updated.isoformat() if account.last_updated else None
        try:
            await self._db.execute(
                "INSERT INTO credits (user_id, credits, last_updated) VALUES (?, ?, ?)"
                " ON CONFLICT(user_id) DO UPDATE SET"
                " credits=excluded.credits, last_updated=excluded.last_updated",
                (account.user_id, account.credits, last_updated),
            )
        except sqlite3.Error as e:
            logger.error("credit_store_write_failed", user_id=account.user_id, error=str(e))
            raise StoreUnavailable(f"Failed to write credits for {account.user_id}: {e}") from e
