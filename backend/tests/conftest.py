"""
Shared fixtures.

FakeKeyStore is an in-memory KeyStore with:
  • a manual clock (`advance()`), so TTL expiry is deterministic
  • an `available` switch to simulate a store outage
  • a `fail_writes` switch (reads work, writes fail)
Each operation yields to the event loop once before touching data, so
concurrent callers interleave the way they would against a real server,
while each single operation stays atomic — like Redis.
"""

from __future__ import annotations

import asyncio
import datetime
import fnmatch
import math

import pytest
from fastapi.testclient import TestClient

from readme_api.auth.rate_limit import get_rate_limiter
from readme_api.core.config import settings
from readme_api.core.errors import StoreUnavailable
from readme_api.core.store import KeyStore, get_key_store
from readme_api.main import app
from readme_api.routers.generate import get_readme_pipeline
from readme_api.services.github_client import RepositorySnapshot
from readme_api.services.rate_limiter import StoreRateLimiter
from readme_api.services.readme_pipeline import GeneratedReadme

ADMIN_SECRET = "test-admin-secret"


class FakeKeyStore(KeyStore):
    def __init__(self) -> None:
        self.now = 0.0
        self.available = True
        self.fail_writes = False
        self._data: dict[str, tuple[str, float | None]] = {}

    # ── Test controls ───────────────────────────────────────
    def advance(self, seconds: float) -> None:
        self.now += seconds

    def raw(self, key: str) -> str | None:
        entry = self._live(key)
        return entry[0] if entry else None

    def keys(self) -> list[str]:
        return [k for k in list(self._data) if self._live(k) is not None]

    # ── Internals ───────────────────────────────────────────
    async def _enter(self, write: bool = False) -> None:
        await asyncio.sleep(0)
        if not self.available:
            raise StoreUnavailable("simulated outage")
        if write and self.fail_writes:
            raise StoreUnavailable("simulated write failure")

    def _live(self, key: str) -> tuple[str, float | None] | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and expires_at <= self.now:
            del self._data[key]
            return None
        return entry

    # ── KeyStore contract ───────────────────────────────────
    async def get(self, key: str) -> str | None:
        await self._enter()
        return self.raw(key)

    async def set(
        self, key: str, value: str, ttl_seconds: int, only_if_exists: bool = False
    ) -> bool:
        await self._enter(write=True)
        if only_if_exists and self._live(key) is None:
            return False
        self._data[key] = (value, self.now + ttl_seconds)
        return True

    async def delete(self, key: str) -> None:
        await self._enter(write=True)
        self._data.pop(key, None)

    async def incr(self, key: str) -> int:
        await self._enter(write=True)
        entry = self._live(key)
        value = int(entry[0]) + 1 if entry else 1
        self._data[key] = (str(value), entry[1] if entry else None)
        return value

    async def ttl(self, key: str) -> int:
        await self._enter()
        entry = self._live(key)
        if entry is None:
            return -2
        if entry[1] is None:
            return -1
        return math.ceil(entry[1] - self.now)

    async def expire(self, key: str, ttl_seconds: int) -> None:
        await self._enter(write=True)
        entry = self._live(key)
        if entry is not None:
            self._data[key] = (entry[0], self.now + ttl_seconds)

    async def list_keys(self, pattern: str) -> list[str]:
        await self._enter()
        return [k for k in self.keys() if fnmatch.fnmatchcase(k, pattern)]

    async def ping(self) -> None:
        await self._enter()


class ManualClock:
    """Datetime clock for the key manager that only moves when told to."""

    def __init__(self) -> None:
        self.current = datetime.datetime(2026, 1, 1, tzinfo=datetime.timezone.utc)

    def __call__(self) -> datetime.datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += datetime.timedelta(seconds=seconds)


class FakePipeline:
    """Stands in for ReadmePipeline at the HTTP boundary."""

    def __init__(self) -> None:
        self.calls: list[tuple[str | None, str | None]] = []
        self.error: Exception | None = None

    async def run(self, repo_url: str | None, github_token: str | None = None) -> GeneratedReadme:
        self.calls.append((repo_url, github_token))
        if self.error is not None:
            raise self.error
        snapshot = RepositorySnapshot(
            owner="octocat",
            repo="Hello-World",
            info={
                "name": "Hello-World",
                "stargazers_count": 42,
                "created_at": "2011-01-26T19:01:12Z",
                "updated_at": "2026-01-01T00:00:00Z",
            },
            languages={"Python": 1000},
        )
        return GeneratedReadme(readme="# Hello-World\n", snapshot=snapshot)


# ── Fixtures ────────────────────────────────────────────────
@pytest.fixture
def fake_store() -> FakeKeyStore:
    return FakeKeyStore()


@pytest.fixture
def manual_clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def fake_pipeline() -> FakePipeline:
    return FakePipeline()


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {ADMIN_SECRET}"}


@pytest.fixture
def client(fake_store, fake_pipeline, monkeypatch):
    """TestClient wired to the fake store, a store-backed limiter and a fake pipeline."""
    monkeypatch.setattr(settings, "ADMIN_SECRET_KEY", ADMIN_SECRET)
    limiter = StoreRateLimiter(fake_store)

    app.dependency_overrides[get_key_store] = lambda: fake_store
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    app.dependency_overrides[get_readme_pipeline] = lambda: fake_pipeline
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
