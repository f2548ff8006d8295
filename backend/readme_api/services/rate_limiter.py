"""
Per-identifier request quotas over a fixed 1-hour window.

Two implementations behind one interface:
  • StoreRateLimiter    — primary. Counters live in the key store as
                          `rate-limit:<identifier>` with a TTL equal to the
                          window; store expiry IS the reset.
  • InMemoryRateLimiter — degraded. Process-local dict, used only when no
                          store is configured. NOT shared between worker
                          processes or replicas — horizontal scaling
                          multiplies the effective quota.

Design decisions:
  • Increment FIRST, then compare. INCR is atomic in the store, so K
    concurrent requests from one identifier get K distinct counts and
    exactly `limit - count_at_start` of them are admitted.
  • Fail open. If the store is unavailable the request is allowed and the
    returned status is marked `enforced=False` (logged, never surfaced).
  • Quota class is decided by the caller before any store access.
"""

from __future__ import annotations

import abc
import enum
import logging
import math
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from readme_api.core.errors import LocalQuotaExceeded, StoreUnavailable
from readme_api.core.store import KeyStore

logger = logging.getLogger(__name__)

# ── Limits ──────────────────────────────────────────────────
WINDOW_SECONDS = 60 * 60  # 1 hour
BROWSER_LIMIT = 10        # unauthenticated callers, keyed by IP
API_LIMIT = 100           # callers presenting a well-formed API key

COUNTER_NAMESPACE = "rate-limit:"

# Past this many entries the in-memory limiter drops expired windows
_IN_MEMORY_PRUNE_THRESHOLD = 10_000


class QuotaClass(str, enum.Enum):
    BROWSER = "browser"
    API = "api"


DEFAULT_LIMITS: Mapping[QuotaClass, int] = {
    QuotaClass.BROWSER: BROWSER_LIMIT,
    QuotaClass.API: API_LIMIT,
}


@dataclass(frozen=True, slots=True)
class QuotaStatus:
    """Quota after an admitted request.

    Attributes:
        limit:     Requests allowed per window for this caller class.
        remaining: Requests left in the current window.
        reset:     Seconds until the window resets.
        enforced:  False when the limiter failed open.
    """

    limit: int
    remaining: int
    reset: int
    enforced: bool = True

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset),
        }


def counter_key(identifier: str) -> str:
    return f"{COUNTER_NAMESPACE}{identifier}"


class RateLimiter(abc.ABC):
    """Admission control for one request from one identifier."""

    degraded: bool = False

    def __init__(
        self,
        limits: Mapping[QuotaClass, int] = DEFAULT_LIMITS,
        window_seconds: int = WINDOW_SECONDS,
    ) -> None:
        self.limits = dict(limits)
        self.window_seconds = window_seconds

    @abc.abstractmethod
    async def hit(self, identifier: str, quota_class: QuotaClass) -> QuotaStatus:
        """
        Count one request against `identifier`.

        Raises:
            LocalQuotaExceeded: the window's quota is already used up.
        """


class StoreRateLimiter(RateLimiter):
    """Store-backed limiter — consistent across every process sharing the store."""

    def __init__(
        self,
        store: KeyStore,
        limits: Mapping[QuotaClass, int] = DEFAULT_LIMITS,
        window_seconds: int = WINDOW_SECONDS,
    ) -> None:
        super().__init__(limits, window_seconds)
        self.store = store

    async def hit(self, identifier: str, quota_class: QuotaClass) -> QuotaStatus:
        limit = self.limits[quota_class]
        key = counter_key(identifier)

        try:
            count = await self.store.incr(key)
            if count == 1:
                # First request of a new window
                await self.store.expire(key, self.window_seconds)
                reset = self.window_seconds
            else:
                reset = await self.store.ttl(key)
                if reset < 0:
                    # Counter lost its TTL (e.g. process died between INCR and EXPIRE)
                    await self.store.expire(key, self.window_seconds)
                    reset = self.window_seconds
        except StoreUnavailable as exc:
            logger.warning(
                "Rate limiting disabled for this request — key store unavailable (%s)", exc
            )
            return QuotaStatus(
                limit=limit, remaining=limit, reset=self.window_seconds, enforced=False
            )

        if count > limit:
            logger.info(
                "Rate limit exceeded: class=%s count=%d limit=%d reset=%ds",
                quota_class.value,
                count,
                limit,
                reset,
            )
            raise LocalQuotaExceeded(limit=limit, reset=reset)

        return QuotaStatus(limit=limit, remaining=limit - count, reset=reset)


class InMemoryRateLimiter(RateLimiter):
    """Process-local safety net for deployments without a key store."""

    degraded = True

    def __init__(
        self,
        limits: Mapping[QuotaClass, int] = DEFAULT_LIMITS,
        window_seconds: int = WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(limits, window_seconds)
        self._clock = clock
        # identifier -> (count, window reset time on self._clock's scale)
        self._counters: dict[str, tuple[int, float]] = {}

    async def hit(self, identifier: str, quota_class: QuotaClass) -> QuotaStatus:
        # No await below, so read-modify-write is atomic on the event loop
        limit = self.limits[quota_class]
        now = self._clock()

        count, reset_at = self._counters.get(identifier, (0, 0.0))
        if reset_at <= now:
            count, reset_at = 0, now + self.window_seconds

        reset = max(0, math.ceil(reset_at - now))
        if count >= limit:
            raise LocalQuotaExceeded(limit=limit, reset=reset)

        count += 1
        self._counters[identifier] = (count, reset_at)
        if len(self._counters) > _IN_MEMORY_PRUNE_THRESHOLD:
            self._prune(now)

        return QuotaStatus(limit=limit, remaining=limit - count, reset=reset)

    def _prune(self, now: float) -> None:
        expired = [ident for ident, (_, reset_at) in self._counters.items() if reset_at <= now]
        for ident in expired:
            del self._counters[ident]


def build_rate_limiter(store: KeyStore) -> RateLimiter:
    if store.configured:
        return StoreRateLimiter(store)
    logger.warning(
        "Using the in-memory rate limiter — limits are per process and reset on restart"
    )
    return InMemoryRateLimiter()
