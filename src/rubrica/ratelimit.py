"""Fixed-window, per-user, per-endpoint request limiting.

Counters live in the relational store keyed by (owner, endpoint, minute).
The increment and the read of the new count happen in a single upsert, so
concurrent requests from one user cannot both observe a stale count.

Rate limiting protects the AI budget; it is not a correctness concern. If
the counter itself cannot be updated the request is allowed through and the
failure is logged.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from rubrica.logging import get_logger

logger = get_logger("ratelimit")

WINDOW_FORMAT = "%Y-%m-%d-%H-%M"


class CounterStore(Protocol):
    def increment_rate_limit(self, owner: str, endpoint: str, window_minute: str) -> int: ...

    def purge_rate_limits(self, before_window: str) -> int: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def window_key(moment: datetime) -> str:
    """Minute-granularity window key; keys sort chronologically as strings."""
    return moment.astimezone(timezone.utc).strftime(WINDOW_FORMAT)


class RateLimiter:
    def __init__(self, store: CounterStore, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._store = store
        self._clock = clock

    def check(self, owner: str, endpoint: str, max_requests: int) -> bool:
        """Count this request and return whether it is within ``max_requests`` for the window."""
        key = window_key(self._clock())
        try:
            count = self._store.increment_rate_limit(owner, endpoint, key)
        except Exception:
            logger.exception(
                "rate limit check failed for endpoint=%s window=%s; allowing request",
                endpoint,
                key,
            )
            return True
        allowed = count <= max_requests
        if not allowed:
            logger.warning(
                "rate limit exceeded: endpoint=%s window=%s count=%d max=%d",
                endpoint,
                key,
                count,
                max_requests,
            )
        return allowed

    def sweep(self, retention: timedelta) -> int:
        """Delete counters for windows older than ``retention``; returns rows removed."""
        cutoff = window_key(self._clock() - retention)
        removed = self._store.purge_rate_limits(cutoff)
        logger.info("purged %d rate limit windows older than %s", removed, cutoff)
        return removed
