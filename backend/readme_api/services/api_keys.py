"""
API key manager — issue, verify, list and revoke keys.

Design decisions:
  • The store is the source of truth. A key is valid iff its record exists.
    The lastUsed/TTL refresh is a conditional write (SET XX), so a verify
    racing a revoke can never recreate the deleted record.
  • Store OUTAGE and store-confirmed ABSENCE are different outcomes:
      - outage  → format-fallback trust (prefix + length check)
      - absence → invalid, unconditionally
    Verification reports which one applied via Verification.trust.
  • verify() never raises because the store is down. issue() and
    list_keys() do raise StoreUnavailable; the admin routes decide what
    to do with it.
  • issue_fallback() produces a key that was NEVER persisted. It only
    works while the store stays down (format fallback); once the store
    recovers, verify() rejects it.
  • list_keys() scans every record and filters by owner client-side —
    O(total keys).
"""

from __future__ import annotations

import datetime
import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass

from pydantic import ValidationError

from readme_api.auth.keys import (
    display_prefix,
    generate_api_key,
    hash_api_key,
    looks_like_api_key,
)
from readme_api.core.errors import StoreUnavailable
from readme_api.core.store import KeyStore
from readme_api.models.api_key import (
    API_KEY_NAMESPACE,
    API_KEY_TTL_SECONDS,
    ApiKeyRecord,
    record_key,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime.datetime]


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class IssueKind(str, enum.Enum):
    PERSISTED = "persisted"
    FALLBACK_UNPERSISTED = "fallback"


@dataclass(frozen=True, slots=True)
class IssueResult:
    """Outcome of key issuance.

    Attributes:
        api_key: The raw key — shown to the caller exactly once.
        kind:    PERSISTED if the record was written to the store,
                 FALLBACK_UNPERSISTED if the store was down and the key
                 only exists in this response.
    """

    api_key: str
    kind: IssueKind

    @property
    def persisted(self) -> bool:
        return self.kind is IssueKind.PERSISTED


class Trust(str, enum.Enum):
    STORE = "store"
    FORMAT_FALLBACK = "format-fallback"
    NONE = "none"


@dataclass(frozen=True, slots=True)
class Verification:
    valid: bool
    trust: Trust


_REJECTED = Verification(valid=False, trust=Trust.NONE)


class ApiKeyManager:
    """Owns key format and lifecycle on top of a KeyStore."""

    def __init__(self, store: KeyStore, clock: Clock = utcnow) -> None:
        self.store = store
        self._clock = clock

    # ── Issue ───────────────────────────────────────────────
    async def issue(self, user_id: str) -> IssueResult:
        """
        Generate and persist a key for `user_id`.

        Raises:
            StoreUnavailable: the record could not be written.
        """
        raw_key = generate_api_key()
        key_id = hash_api_key(raw_key)
        record = ApiKeyRecord(
            key_id=key_id,
            prefix=display_prefix(raw_key),
            user_id=user_id,
            created_at=self._clock(),
            last_used=None,
        )
        await self.store.set(record_key(key_id), record.to_json(), API_KEY_TTL_SECONDS)
        logger.info("Issued API key %s for user %s", record.prefix, user_id)
        return IssueResult(api_key=raw_key, kind=IssueKind.PERSISTED)

    def issue_fallback(self) -> IssueResult:
        """Same format as issue(), but nothing is written anywhere."""
        raw_key = generate_api_key()
        logger.warning(
            "Issued UNPERSISTED fallback API key %s — the key store is unavailable",
            display_prefix(raw_key),
        )
        return IssueResult(api_key=raw_key, kind=IssueKind.FALLBACK_UNPERSISTED)

    # ── Verify ──────────────────────────────────────────────
    async def verify(self, raw_key: str) -> Verification:
        """Check a presented key. Never raises for store outages."""
        if not raw_key:
            return _REJECTED

        key_id = hash_api_key(raw_key)
        try:
            stored = await self.store.get(record_key(key_id))
        except StoreUnavailable as exc:
            return self._format_fallback(raw_key, exc)

        if stored is None:
            return _REJECTED

        try:
            record = ApiKeyRecord.model_validate_json(stored)
        except ValidationError:
            logger.error("Corrupt API key record for %s — treating as absent", display_prefix(raw_key))
            return _REJECTED

        # Touch lastUsed and slide the 1-year expiry, only if not revoked meanwhile
        touched = record.model_copy(update={"last_used": self._clock()})
        try:
            refreshed = await self.store.set(
                record_key(key_id), touched.to_json(), API_KEY_TTL_SECONDS, only_if_exists=True
            )
        except StoreUnavailable:
            logger.warning(
                "Could not refresh lastUsed/TTL for %s — key accepted on the prior read",
                record.prefix,
            )
            return Verification(valid=True, trust=Trust.STORE)

        if not refreshed:
            logger.info("API key %s was revoked during verification", record.prefix)
            return _REJECTED

        return Verification(valid=True, trust=Trust.STORE)

    def _format_fallback(self, raw_key: str, exc: StoreUnavailable) -> Verification:
        if looks_like_api_key(raw_key):
            logger.warning(
                "Key store unavailable (%s) — accepting %s on format alone",
                exc,
                display_prefix(raw_key),
            )
            return Verification(valid=True, trust=Trust.FORMAT_FALLBACK)
        logger.warning("Key store unavailable (%s) — rejecting malformed key", exc)
        return _REJECTED

    # ── Revoke ──────────────────────────────────────────────
    async def revoke(self, raw_key: str) -> bool:
        """Delete by raw key. True iff the store operation succeeded."""
        return await self.revoke_by_id(hash_api_key(raw_key))

    async def revoke_by_id(self, key_id: str) -> bool:
        """Delete by key id (the digest shown in listings)."""
        try:
            await self.store.delete(record_key(key_id))
        except StoreUnavailable:
            logger.exception("Failed to revoke API key %.8s", key_id)
            return False
        logger.info("Revoked API key %.8s", key_id)
        return True

    # ── List ────────────────────────────────────────────────
    async def list_keys(self, user_id: str) -> list[ApiKeyRecord]:
        """
        All records owned by `user_id`, oldest first.

        Raises:
            StoreUnavailable: enumeration or a record read failed.
        """
        records: list[ApiKeyRecord] = []
        for store_key in await self.store.list_keys(f"{API_KEY_NAMESPACE}*"):
            stored = await self.store.get(store_key)
            if stored is None:
                continue  # expired or revoked between SCAN and GET
            try:
                record = ApiKeyRecord.model_validate_json(stored)
            except ValidationError:
                logger.error("Skipping corrupt API key record at %s", store_key)
                continue
            if record.user_id == user_id:
                records.append(record)

        records.sort(key=lambda r: r.created_at)
        return records
