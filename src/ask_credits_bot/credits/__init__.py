"""Credit ledger module."""

from ask_credits_bot.credits.ledger import CreditLedger
from ask_credits_bot.credits.models import (
    BalanceCheck,
    BalanceOutcome,
    BalanceReply,
    CreditAccount,
)
from ask_credits_bot.credits.store import CreditStore, InMemoryCreditStore, SqliteCreditStore

__all__ = [
    "CreditLedger",
    "BalanceCheck",
    "BalanceOutcome",
    "BalanceReply",
    "CreditAccount",
    "CreditStore",
    "InMemoryCreditStore",
    "SqliteCreditStore",
]
