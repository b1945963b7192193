"""Tests for the credit ledger."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from ask_credits_bot.credits import (
    BalanceOutcome,
    CreditAccount,
    CreditLedger,
    InMemoryCreditStore,
)
from ask_credits_bot.errors import InsufficientCredits, InvalidArgument, StoreUnavailable

from conftest import FIXED_NOW

EARLIER = datetime(2024, 1, 1, tzinfo=timezone.utc)


class InterleavingStore(InMemoryCreditStore):
    """Yields to the event loop on every call so concurrent tasks interleave."""

    async def read(self, user_id):
        await asyncio.sleep(0)
        return await super().read(user_id)

    async def write(self, account):
        await asyncio.sleep(0)
        await super().write(account)


class HangingStore(InMemoryCreditStore):
    async def read(self, user_id):
        await asyncio.sleep(10)
        return await super().read(user_id)


class SlowWriteStore(InMemoryCreditStore):
    async def write(self, account):
        await asyncio.sleep(0.05)
        await super().write(account)


# --- claim_or_read / check_balance ---


@pytest.mark.asyncio
async def test_new_user_gets_bonus(ledger, store):
    reply = await ledger.check_balance("u1")

    assert reply.granted is True
    assert reply.balance == 250
    assert reply.message == "You claimed your 250 credits! You now have 250 credits."
    assert await store.read("u1") == CreditAccount("u1", 250, FIXED_NOW)


@pytest.mark.asyncio
async def test_second_check_reports_balance_without_bonus(ledger, store):
    await ledger.check_balance("u1")
    reply = await ledger.check_balance("u1")

    assert reply.granted is False
    assert reply.balance == 250
    assert reply.message == "You have 250 credits."
    assert store.write_count == 1


@pytest.mark.asyncio
async def test_zero_balance_after_claim():
    store = InMemoryCreditStore({"u2": CreditAccount("u2", 0, EARLIER)})
    ledger = CreditLedger(store, clock=lambda: FIXED_NOW)

    reply = await ledger.check_balance("u2")

    assert reply.granted is False
    assert reply.balance == 0
    assert reply.message == (
        "You have 0 credits remaining, and the 250 credits have already been claimed."
    )
    assert store.write_count == 0
    assert await store.read("u2") == CreditAccount("u2", 0, EARLIER)


@pytest.mark.asyncio
async def test_never_updated_account_counts_as_first_claim():
    store = InMemoryCreditStore({"u1": CreditAccount("u1", 40, None)})
    ledger = CreditLedger(store, clock=lambda: FIXED_NOW)

    result = await ledger.claim_or_read("u1")

    assert result.outcome is BalanceOutcome.BONUS_GRANTED
    assert await store.read("u1") == CreditAccount("u1", 250, FIXED_NOW)


@pytest.mark.asyncio
async def test_custom_bonus_amount_in_messages():
    ledger = CreditLedger(InMemoryCreditStore(), bonus_amount=50)
    reply = await ledger.check_balance("u1")
    assert reply.message == "You claimed your 50 credits! You now have 50 credits."


@pytest.mark.asyncio
async def test_concurrent_claims_grant_bonus_once():
    store = InterleavingStore()
    ledger = CreditLedger(store, clock=lambda: FIXED_NOW)

    results = await asyncio.gather(*(ledger.claim_or_read("fresh") for _ in range(100)))

    granted = [r for r in results if r.granted]
    assert len(granted) == 1
    assert all(r.balance == 250 for r in results)
    assert (await store.read("fresh")).credits == 250
    assert store.write_count == 1


@pytest.mark.asyncio
async def test_concurrent_claims_for_different_users_are_independent():
    store = InterleavingStore()
    ledger = CreditLedger(store)

    results = await asyncio.gather(*(ledger.claim_or_read(f"u{i}") for i in range(10)))

    assert all(r.granted for r in results)
    assert store.write_count == 10


@pytest.mark.asyncio
async def test_get_balance(ledger):
    assert await ledger.get_balance("u1") is None
    await ledger.claim_or_read("u1")
    account = await ledger.get_balance("u1")
    assert account.credits == 250
    assert account.claimed


@pytest.mark.asyncio
@pytest.mark.parametrize("user_id", ["", "   ", None])
async def test_invalid_user_id_rejected(ledger, user_id):
    with pytest.raises(InvalidArgument):
        await ledger.claim_or_read(user_id)


# --- debit / refund ---


@pytest.mark.asyncio
async def test_debit_decrements_balance(ledger, store):
    await ledger.claim_or_read("u1")
    account = await ledger.debit("u1", 10)

    assert account.credits == 240
    assert (await store.read("u1")).credits == 240


@pytest.mark.asyncio
async def test_debit_whole_balance_then_zero_message(ledger):
    await ledger.claim_or_read("u1")
    await ledger.debit("u1", 250)

    reply = await ledger.check_balance("u1")
    assert reply.balance == 0
    assert "already been claimed" in reply.message


@pytest.mark.asyncio
async def test_debit_insufficient_credits(ledger, store):
    await store.write(CreditAccount("u1", 3, EARLIER))

    with pytest.raises(InsufficientCredits) as exc_info:
        await ledger.debit("u1", 5)

    assert exc_info.value.balance == 3
    assert exc_info.value.required == 5
    assert (await store.read("u1")).credits == 3


@pytest.mark.asyncio
async def test_debit_unknown_user_has_no_credits(ledger, store):
    with pytest.raises(InsufficientCredits) as exc_info:
        await ledger.debit("ghost", 1)
    assert exc_info.value.balance == 0
    assert store.write_count == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -1, 1.5, True, "3"])
async def test_debit_rejects_invalid_amount(ledger, amount):
    with pytest.raises(InvalidArgument):
        await ledger.debit("u1", amount)


@pytest.mark.asyncio
async def test_concurrent_debits_never_overdraw():
    store = InterleavingStore({"u1": CreditAccount("u1", 10, EARLIER)})
    ledger = CreditLedger(store)

    results = await asyncio.gather(
        *(ledger.debit("u1", 1) for _ in range(20)), return_exceptions=True
    )

    failures = [r for r in results if isinstance(r, InsufficientCredits)]
    assert len(failures) == 10
    assert (await store.read("u1")).credits == 0


@pytest.mark.asyncio
async def test_refund_adds_credits(ledger, store):
    await ledger.claim_or_read("u1")
    await ledger.debit("u1", 5)
    account = await ledger.refund("u1", 5)

    assert account.credits == 250
    assert (await store.read("u1")).credits == 250


# --- store failures ---


@pytest.mark.asyncio
async def test_store_timeout_raises_store_unavailable():
    store = HangingStore()
    ledger = CreditLedger(store, timeout=0.01)

    with pytest.raises(StoreUnavailable):
        await ledger.claim_or_read("u1")
    assert store.write_count == 0


@pytest.mark.asyncio
async def test_slow_write_completes_instead_of_being_abandoned():
    store = SlowWriteStore({"u1": CreditAccount("u1", 10, EARLIER)})
    ledger = CreditLedger(store, timeout=0.01)

    account = await ledger.debit("u1", 3)

    assert account.credits == 7
    assert (await store.read("u1")).credits == 7


@pytest.mark.asyncio
async def test_store_read_error_is_wrapped():
    store = AsyncMock()
    store.read = AsyncMock(side_effect=ConnectionError("db down"))
    store.write = AsyncMock()
    ledger = CreditLedger(store)

    with pytest.raises(StoreUnavailable):
        await ledger.claim_or_read("u1")
    store.write.assert_not_awaited()


@pytest.mark.asyncio
async def test_store_write_error_propagates():
    store = AsyncMock()
    store.read = AsyncMock(return_value=None)
    store.write = AsyncMock(side_effect=StoreUnavailable("write failed"))
    ledger = CreditLedger(store)

    with pytest.raises(StoreUnavailable, match="write failed"):
        await ledger.check_balance("u1")


@pytest.mark.asyncio
async def test_failed_claim_can_be_retried(store):
    calls = {"n": 0}
    original_write = store.write

    async def flaky_write(account):
        calls["n"] += 1
        if calls["n"] == 1:
            raise StoreUnavailable("transient")
        await original_write(account)

    store.write = flaky_write
    ledger = CreditLedger(store)

    with pytest.raises(StoreUnavailable):
        await ledger.claim_or_read("u1")
    result = await ledger.claim_or_read("u1")

    assert result.granted
    assert (await store.read("u1")).credits == 250


def test_negative_bonus_rejected():
    with pytest.raises(ValueError):
        CreditLedger(InMemoryCreditStore(), bonus_amount=-1)
