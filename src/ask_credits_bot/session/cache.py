"""Per-user reply context cache with TTL expiry and a background sweep."""

from __future__ import annotations

import asyncio
import contextlib
import math
import threading
import time
from collections.abc import Callable

import structlog
from cachetools import TLRUCache

from ask_credits_bot.errors import InvalidArgument
from ask_credits_bot.session.models import RecalledContext, SessionEntry

logger = structlog.get_logger()

DEFAULT_TTL = 3600
DEFAULT_SWEEP_INTERVAL = 1800


def _is_valid_string(value: object) -> bool:
    return isinstance(value, str) and value.strip() != ""


def _entry_expiry(_key: str, entry: SessionEntry, _now: float) -> float:
    return entry.expires_at


class _SessionMap(TLRUCache):
    """TLRU map that logs every entry it drops.

    ``TLRUCache`` also expires entries on each insert, so logging here
    covers those removals as well as explicit sweeps.
    """

    def expire(self, time=None):
        expired = super().expire(time)
        for user_id, _ in expired:
            logger.info("session_invalidated", user_id=user_id)
        return expired

    def popitem(self):
        user_id, entry = super().popitem()
        logger.warning("session_evicted", user_id=user_id, reason="capacity")
        return user_id, entry


class SessionAffinityCache:
    """Maps user IDs to the context their pending reply should go to.

    Entries live for ``ttl`` seconds. Expired entries are dropped lazily
    by ``get`` and in bulk by a sweep task that runs every
    ``sweep_interval`` seconds once ``start()`` is called. Both paths
    treat an entry as dead once ``expires_at <= now``.

    All access to the backing map goes through a single lock, so the
    cache may be shared between asyncio tasks and worker threads.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        maxsize: int | None = None,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got: {ttl}")
        if sweep_interval <= 0:
            raise ValueError(f"sweep_interval must be positive, got: {sweep_interval}")
        self._ttl = ttl
        self._sweep_interval = sweep_interval
        self._timer = timer
        # Unbounded unless a cap is given. A capped cache evicts live entries.
        self._cache: TLRUCache[str, SessionEntry] = _SessionMap(
            maxsize=math.inf if maxsize is None else maxsize,
            ttu=_entry_expiry,
            timer=timer,
        )
        self._lock = threading.Lock()
        self._sweep_task: asyncio.Task | None = None
        logger.info(
            "session_cache_initialized",
            ttl=ttl,
            sweep_interval=sweep_interval,
            maxsize=maxsize,
        )

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def size(self) -> int:
        """Number of slots held in backing storage, stale ones included."""
        with self._lock:
            return len(self._cache)

    def _validate(
        self,
        user_id: str,
        context_id: str,
        context_kind: str,
        pending_query: str,
        origin_group_id: str | None,
    ) -> None:
        required = (user_id, context_id, context_kind, pending_query)
        if not all(_is_valid_string(v) for v in required):
            raise InvalidArgument("Invalid parameters provided.")
        if origin_group_id is not None and not _is_valid_string(origin_group_id):
            raise InvalidArgument("origin_group_id must be a non-empty string when given.")

    def _new_entry(
        self,
        user_id: str,
        context_id: str,
        context_kind: str,
        pending_query: str,
        origin_group_id: str | None,
    ) -> SessionEntry:
        return SessionEntry(
            user_id=user_id,
            context_id=context_id,
            context_kind=str(context_kind),
            pending_query=pending_query,
            origin_group_id=origin_group_id,
            expires_at=self._timer() + self._ttl,
        )

    def _live_entry(self, user_id: str) -> SessionEntry | None:
        entry = self._cache.get(user_id)
        if entry is not None and entry.expires_at > self._timer():
            return entry
        return None

    def _discard(self, user_id: str) -> None:
        # Deleting a stale slot raises KeyError after removing it.
        with contextlib.suppress(KeyError):
            del self._cache[user_id]

    def set(
        self,
        user_id: str,
        context_id: str,
        context_kind: str,
        pending_query: str,
        origin_group_id: str | None = None,
    ) -> SessionEntry:
        """Store the user's reply context, replacing any existing entry.

        Raises:
            InvalidArgument: A required field is empty or not a string, or
                origin_group_id is given but empty.
        """
        try:
            self._validate(user_id, context_id, context_kind, pending_query, origin_group_id)
        except InvalidArgument as e:
            logger.error("session_set_invalid", error=str(e))
            raise

        with self._lock:
            entry = self._new_entry(
                user_id, context_id, context_kind, pending_query, origin_group_id
            )
            self._cache[user_id] = entry
        logger.info("session_set", user_id=user_id, context_kind=entry.context_kind)
        return entry

    def set_if_absent(
        self,
        user_id: str,
        context_id: str,
        context_kind: str,
        pending_query: str,
        origin_group_id: str | None = None,
    ) -> bool:
        """Store the user's reply context only if no live entry exists.

        An expired entry that the sweep has not removed yet counts as
        absent and is replaced.

        Returns:
            True if a new entry was written.
        """
        try:
            self._validate(user_id, context_id, context_kind, pending_query, origin_group_id)
        except InvalidArgument as e:
            logger.error("session_set_invalid", error=str(e))
            raise

        with self._lock:
            if self._live_entry(user_id) is not None:
                logger.debug("session_set_skipped", user_id=user_id)
                return False
            self._discard(user_id)
            self._cache[user_id] = self._new_entry(
                user_id, context_id, context_kind, pending_query, origin_group_id
            )
        logger.info("session_set", user_id=user_id, context_kind=str(context_kind))
        return True

    def get(self, user_id: str) -> SessionEntry | None:
        """Return the live entry for a user, or None if missing or expired."""
        if not _is_valid_string(user_id):
            logger.error("session_get_invalid_user_id", user_id=repr(user_id))
            return None

        with self._lock:
            entry = self._live_entry(user_id)
            if entry is None:
                self._discard(user_id)
        if entry is None:
            logger.debug("session_miss", user_id=user_id)
        return entry

    def get_last_context_id(self, user_id: str) -> str | None:
        entry = self.get(user_id)
        return entry.context_id if entry else None

    def get_pending_query(self, user_id: str) -> str | None:
        entry = self.get(user_id)
        return entry.pending_query if entry else None

    def clear(self, user_id: str) -> None:
        """Remove a user's entry. No-op if absent or malformed."""
        if not _is_valid_string(user_id):
            logger.error("session_clear_invalid_user_id", user_id=repr(user_id))
            return

        with self._lock:
            self._discard(user_id)
        logger.info("session_cleared", user_id=user_id)

    def sweep(self) -> int:
        """Remove every expired entry from backing storage.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            expired = self._cache.expire(self._timer())
        return len(expired)

    # Command-layer facade

    def remember(
        self,
        user_id: str,
        context_id: str,
        context_kind: str,
        pending_query: str,
        origin_group_id: str | None = None,
    ) -> None:
        self.set(user_id, context_id, context_kind, pending_query, origin_group_id)

    def recall(self, user_id: str) -> RecalledContext | None:
        entry = self.get(user_id)
        if entry is None:
            return None
        return RecalledContext(
            context_id=entry.context_id, pending_query=entry.pending_query
        )

    def forget(self, user_id: str) -> None:
        self.clear(user_id)

    # Sweep lifecycle

    @property
    def sweeping(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self.sweeping:
            return
        self._sweep_task = asyncio.get_running_loop().create_task(
            self._sweep_loop(), name="session-cache-sweep"
        )
        logger.info("session_sweep_started", interval=self._sweep_interval)

    async def stop(self) -> None:
        """Cancel the sweep task and wait for it to finish. Idempotent."""
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("session_sweep_stopped")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                removed = self.sweep()
            except Exception as e:
                logger.error("session_sweep_failed", error=str(e))
                continue
            logger.debug("session_sweep_completed", removed=removed, remaining=self.size)
