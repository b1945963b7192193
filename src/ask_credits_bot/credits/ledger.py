"""Credit ledger: first-claim bonus policy and metered debits."""

from __future__ import annotations

import asyncio
import weakref
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import TypeVar

import structlog

from ask_credits_bot.credits.models import (
    BalanceCheck,
    BalanceOutcome,
    BalanceReply,
    CreditAccount,
)
from ask_credits_bot.credits.store import CreditStore
from ask_credits_bot.errors import InsufficientCredits, InvalidArgument, StoreUnavailable

logger = structlog.get_logger()

T = TypeVar("T")

DEFAULT_BONUS_AMOUNT = 250


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CreditLedger:
    """Mediates all reads and writes of users' credit balances.

    Every fetch-decide-persist sequence for a user runs under that user's
    lock, so concurrent requests for the same user are serialized and the
    first-claim bonus is granted at most once. Locks for idle users are
    garbage collected.

    ``timeout`` bounds each store read. Writes run to completion, so a store
    must enforce its own deadline before it starts one, as ``Database`` does.
    """

    def __init__(
        self,
        store: CreditStore,
        bonus_amount: int = DEFAULT_BONUS_AMOUNT,
        timeout: float | None = 5.0,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if bonus_amount < 0:
            raise ValueError(f"bonus_amount must be non-negative, got: {bonus_amount}")
        self._store = store
        self._bonus_amount = bonus_amount
        self._timeout = timeout
        self._clock = clock
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @property
    def bonus_amount(self) -> int:
        return self._bonus_amount

    def _user_lock(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    async def _call_store(self, operation: str, user_id: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except StoreUnavailable:
            raise
        except TimeoutError as e:
            logger.error("credit_store_timeout", operation=operation, user_id=user_id)
            raise StoreUnavailable(f"Credit store {operation} timed out for {user_id}") from e
        except Exception as e:
            logger.error(
                "credit_store_error", operation=operation, user_id=user_id, error=str(e)
            )
            raise StoreUnavailable(f"Credit store {operation} failed for {user_id}: {e}") from e

    async def _read(self, user_id: str) -> CreditAccount | None:
        read = asyncio.wait_for(self._store.read(user_id), timeout=self._timeout)
        return await self._call_store("read", user_id, read)

    async def _write(self, account: CreditAccount) -> None:
        # Never cancelled once started: an abandoned write could still commit
        # after the caller was told it failed. Stores bound their own waits.
        await self._call_store("write", account.user_id, self._store.write(account))

    @staticmethod
    def _check_user_id(user_id: str) -> None:
        if not isinstance(user_id, str) or not user_id.strip():
            raise InvalidArgument("user_id must be a non-empty string.")

    @staticmethod
    def _check_amount(amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidArgument(f"amount must be a positive integer, got: {amount!r}")

    async def get_balance(self, user_id: str) -> CreditAccount | None:
        """Fetch the user's account, or None if it does not exist."""
        self._check_user_id(user_id)
        return await self._read(user_id)

    async def claim_or_read(self, user_id: str) -> BalanceCheck:
        """Grant the first-claim bonus if never claimed, else report the balance."""
        self._check_user_id(user_id)
        async with self._user_lock(user_id):
            account = await self._read(user_id)

            if account is None or not account.claimed:
                account = CreditAccount(
                    user_id=user_id,
                    credits=self._bonus_amount,
                    last_updated=self._clock(),
                )
                await self._write(account)
                logger.info(
                    "credits_bonus_granted", user_id=user_id, credits=account.credits
                )
                return BalanceCheck(BalanceOutcome.BONUS_GRANTED, account.credits)

            if account.credits == 0:
                logger.info("credits_zero_balance", user_id=user_id)
                return BalanceCheck(BalanceOutcome.ZERO_BALANCE, 0)

            logger.info("credits_balance_read", user_id=user_id, credits=account.credits)
            return BalanceCheck(BalanceOutcome.CURRENT_BALANCE, account.credits)

    async def check_balance(self, user_id: str) -> BalanceReply:
        """Run ``claim_or_read`` and render the user-facing message."""
        result = await self.claim_or_read(user_id)
        if result.outcome is BalanceOutcome.BONUS_GRANTED:
            message = (
                f"You claimed your {self._bonus_amount} credits! "
                f"You now have {result.balance} credits."
            )
        elif result.outcome is BalanceOutcome.ZERO_BALANCE:
            message = (
                f"You have 0 credits remaining, and the {self._bonus_amount} "
                "credits have already been claimed."
            )
        else:
            message = f"You have {result.balance} credits."
        return BalanceReply(granted=result.granted, message=message, balance=result.balance)

    async def debit(self, user_id: str, amount: int) -> CreditAccount:
        """Take ``amount`` credits from the user.

        Raises:
            InsufficientCredits: The balance is lower than ``amount``.
            StoreUnavailable: The store could not be read or written.
        """
        self._check_user_id(user_id)
        self._check_amount(amount)
        async with self._user_lock(user_id):
            account = await self._read(user_id)
            balance = account.credits if account else 0
            if account is None or balance < amount:
                logger.info(
                    "credits_insufficient", user_id=user_id, balance=balance, required=amount
                )
                raise InsufficientCredits(user_id, balance, amount)

            updated = CreditAccount(
                user_id=user_id,
                credits=balance - amount,
                last_updated=self._clock(),
            )
            await self._write(updated)
        logger.info("credits_debited", user_id=user_id, amount=amount, credits=updated.credits)
        return updated

    async def refund(self, user_id: str, amount: int) -> CreditAccount:
        """Give back credits taken for a metered use that did not complete."""
        self._check_user_id(user_id)
        self._check_amount(amount)
        async with self._user_lock(user_id):
            account = await self._read(user_id)
            updated = CreditAccount(
                user_id=user_id,
                credits=(account.credits if account else 0) + amount,
                last_updated=self._clock(),
            )
            await self._write(updated)
        logger.info("credits_refunded", user_id=user_id, amount=amount, credits=updated.credits)
        return updated
