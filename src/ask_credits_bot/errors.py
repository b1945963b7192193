"""Error types shared by the session cache, the credit ledger and commands."""


class InvalidArgument(ValueError):
    """A malformed identifier or missing required field was supplied."""


class StoreUnavailable(Exception):
    """The durable credit store could not be reached or a write failed.

    Callers must not assume any credit mutation happened.
    """


class InsufficientCredits(Exception):
    """The user's balance does not cover the requested debit."""

    def __init__(self, user_id: str, balance: int, required: int) -> None:
        super().__init__(
            f"User {user_id} has {balance} credits, {required} required"
        )
        self.user_id = user_id
        self.balance = balance
        self.required = required
