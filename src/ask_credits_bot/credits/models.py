"""Data models for the credit ledger."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel


@dataclass(slots=True, frozen=True)
class CreditAccount:
    """A user's balance. ``last_updated`` is None until the first claim."""

    user_id: str
    credits: int
    last_updated: datetime | None = None

    @property
    def claimed(self) -> bool:
        return self.last_updated is not None


class BalanceOutcome(StrEnum):
    BONUS_GRANTED = "bonus_granted"
    ZERO_BALANCE = "zero_balance"
    CURRENT_BALANCE = "current_balance"


@dataclass(slots=True, frozen=True)
class BalanceCheck:
    """Result of ``CreditLedger.claim_or_read``."""

    outcome: BalanceOutcome
    balance: int

    @property
    def granted(self) -> bool:
        return self.outcome is BalanceOutcome.BONUS_GRANTED


class BalanceReply(BaseModel):
    """User-facing answer to a balance check."""

    granted: bool
    message: str
    balance: int
