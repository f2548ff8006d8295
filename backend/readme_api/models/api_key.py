"""
API key record — the JSON document stored under `apikey:<sha256>`.

Security notes:
  • Raw API keys are NEVER stored. The record is addressed by the
    SHA-256 digest of the key; `key_id` repeats that digest so a listing
    can name a key without revealing it.
  • `prefix` keeps the first characters (e.g. "readme_api_3f9a1c…") for
    identification in logs/UI.
  • There is no `is_active` flag: revocation deletes the record, and the
    store's TTL removes keys that have not been used for a year.

Wire format uses the camelCase names of the public API (`userId`,
`createdAt`, `lastUsed`).
"""

import datetime

from pydantic import BaseModel, ConfigDict, Field

API_KEY_NAMESPACE = "apikey:"

# 1 year, refreshed on every successful verification
API_KEY_TTL_SECONDS = 60 * 60 * 24 * 365


def record_key(key_id: str) -> str:
    """Store key for a record, given the key's SHA-256 digest."""
    return f"{API_KEY_NAMESPACE}{key_id}"


class ApiKeyRecord(BaseModel):
    """Stored metadata for one issued API key."""

    model_config = ConfigDict(populate_by_name=True)

    key_id: str = Field(alias="keyId")
    prefix: str
    user_id: str = Field(alias="userId")
    created_at: datetime.datetime = Field(alias="createdAt")
    last_used: datetime.datetime | None = Field(default=None, alias="lastUsed")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    def __repr__(self) -> str:
        return f"<ApiKeyRecord id={self.key_id:.8} prefix={self.prefix!r} user={self.user_id!r}>"
