"""Session affinity cache module."""

from ask_credits_bot.session.cache import SessionAffinityCache
from ask_credits_bot.session.models import ContextKind, RecalledContext, SessionEntry

__all__ = ["SessionAffinityCache", "ContextKind", "RecalledContext", "SessionEntry"]
