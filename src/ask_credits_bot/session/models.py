"""Data models for the session affinity cache."""

from dataclasses import dataclass
from enum import StrEnum


class ContextKind(StrEnum):
    """Where a command was issued from."""

    DM = "dm"
    GUILD = "guild"


@dataclass(slots=True, frozen=True)
class SessionEntry:
    """Last context a user interacted in, with its pending query."""

    user_id: str
    context_id: str
    context_kind: str
    pending_query: str
    origin_group_id: str | None
    expires_at: float


@dataclass(slots=True, frozen=True)
class RecalledContext:
    """Where to deliver an asynchronous reply, and what it answers."""

    context_id: str
    pending_query: str
