"""
Key store adapter — the only shared mutable resource in the service.

Rules enforced:
  • Every operation is async and raises StoreUnavailable on ANY backend
    failure (connection refused, timeout, protocol error).
  • No retries here — fallback policy belongs to the calling services.
  • TTL semantics follow Redis: -2 = missing key, -1 = no expiry.

Two implementations:
  • RedisKeyStore        — redis.asyncio client, created once per process
  • UnconfiguredKeyStore — used when REDIS_URL is empty; always unavailable
"""

from __future__ import annotations

import abc
import logging

import redis.asyncio as redis
from fastapi import Request
from redis.exceptions import RedisError

from readme_api.core.config import Settings
from readme_api.core.errors import StoreUnavailable

logger = logging.getLogger(__name__)


class KeyStore(abc.ABC):
    """Uniform async key-value contract used by the key manager and limiter."""

    @abc.abstractmethod
    async def get(self, key: str) -> str | None: ...

    @abc.abstractmethod
    async def set(
        self, key: str, value: str, ttl_seconds: int, only_if_exists: bool = False
    ) -> bool:
        """Write with expiry. False iff `only_if_exists` and the key was absent."""

    @abc.abstractmethod
    async def delete(self, key: str) -> None: ...

    @abc.abstractmethod
    async def incr(self, key: str) -> int: ...

    @abc.abstractmethod
    async def ttl(self, key: str) -> int: ...

    @abc.abstractmethod
    async def expire(self, key: str, ttl_seconds: int) -> None: ...

    @abc.abstractmethod
    async def list_keys(self, pattern: str) -> list[str]: ...

    @abc.abstractmethod
    async def ping(self) -> None: ...

    async def close(self) -> None:
        return None

    @property
    def configured(self) -> bool:
        return True


class RedisKeyStore(KeyStore):
    """Redis-backed store. All redis errors surface as StoreUnavailable."""

    def __init__(self, client: redis.Redis) -> None:
        self._redis = client

    @classmethod
    def from_settings(cls, cfg: Settings) -> RedisKeyStore:
        client = redis.from_url(
            cfg.REDIS_URL,
            password=cfg.REDIS_TOKEN or None,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=cfg.REDIS_TIMEOUT_SECONDS,
            socket_timeout=cfg.REDIS_TIMEOUT_SECONDS,
        )
        return cls(client)

    async def get(self, key: str) -> str | None:
        try:
            return await self._redis.get(key)
        except (RedisError, OSError) as exc:
            raise StoreUnavailable(f"GET failed: {exc}") from exc

    async def set(
        self, key: str, value: str, ttl_seconds: int, only_if_exists: bool = False
    ) -> bool:
        try:
            # XX: never recreate a key deleted since it was read
            written = await self._redis.set(key, value, ex=ttl_seconds, xx=only_if_exists)
        except (RedisError, OSError) as exc:
            raise StoreUnavailable(f"SET failed: {exc}") from exc
        return bool(written)

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(key)
        except (RedisError, OSError) as exc:
            raise StoreUnavailable(f"DEL failed: {exc}") from exc

    async def incr(self, key: str) -> int:
        try:
            return int(await self._redis.incr(key))
        except (RedisError, OSError) as exc:
            raise StoreUnavailable(f"INCR failed: {exc}") from exc

    async def ttl(self, key: str) -> int:
        try:
            return int(await self._redis.ttl(key))
        except (RedisError, OSError) as exc:
            raise StoreUnavailable(f"TTL failed: {exc}") from exc

    async def expire(self, key: str, ttl_seconds: int) -> None:
        try:
            await self._redis.expire(key, ttl_seconds)
        except (RedisError, OSError) as exc:
            raise StoreUnavailable(f"EXPIRE failed: {exc}") from exc

    async def list_keys(self, pattern: str) -> list[str]:
        # SCAN, not KEYS: must not block the server on large keyspaces
        try:
            return [key async for key in self._redis.scan_iter(match=pattern)]
        except (RedisError, OSError) as exc:
            raise StoreUnavailable(f"SCAN failed: {exc}") from exc

    async def ping(self) -> None:
        try:
            await self._redis.ping()
        except (RedisError, OSError) as exc:
            raise StoreUnavailable(f"PING failed: {exc}") from exc

    async def close(self) -> None:
        try:
            await self._redis.aclose()
        except (RedisError, OSError):
            logger.warning("Error while closing the Redis connection pool", exc_info=True)


class UnconfiguredKeyStore(KeyStore):
    """Stand-in when no store URL is configured. Every call is unavailable."""

    def _fail(self) -> StoreUnavailable:
        return StoreUnavailable("store not configured")

    async def get(self, key: str) -> str | None:
        raise self._fail()

    async def set(
        self, key: str, value: str, ttl_seconds: int, only_if_exists: bool = False
    ) -> bool:
        raise self._fail()

    async def delete(self, key: str) -> None:
        raise self._fail()

    async def incr(self, key: str) -> int:
        raise self._fail()

    async def ttl(self, key: str) -> int:
        raise self._fail()

    async def expire(self, key: str, ttl_seconds: int) -> None:
        raise self._fail()

    async def list_keys(self, pattern: str) -> list[str]:
        raise self._fail()

    async def ping(self) -> None:
        raise self._fail()

    @property
    def configured(self) -> bool:
        return False


def build_key_store(cfg: Settings) -> KeyStore:
    """Pick the store implementation for the current configuration."""
    if not cfg.REDIS_URL:
        logger.warning(
            "REDIS_URL is not set — API keys cannot be persisted and "
            "rate limiting falls back to a process-local counter."
        )
        return UnconfiguredKeyStore()
    return RedisKeyStore.from_settings(cfg)


# ── Dependency ──────────────────────────────────────────────
def get_key_store(request: Request) -> KeyStore:
    """The process-wide store created in the app lifespan."""
    return request.app.state.key_store
