"""
Pydantic v2 schemas for the admin key-management routes.

Wire names are camelCase (`apiKey`, `createdAt`, `lastUsed`) to match the
public API; Python attributes stay snake_case via aliases.

A listing NEVER contains a raw key. `id` is the key's SHA-256 digest and
can be passed back to DELETE /keys-admin to revoke it.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ── Issue ───────────────────────────────────────────────────
class IssuedKeyResponse(_CamelModel):
    """Returned once by POST /keys-admin — the only time the raw key is shown."""

    success: bool = True
    api_key: str = Field(..., alias="apiKey")
    note: str | None = Field(
        default=None,
        description=(
            "'fallback' when the key store was unavailable: the key was NOT "
            "persisted and is only accepted while the store stays down."
        ),
    )


# ── List ────────────────────────────────────────────────────
class ApiKeyOut(_CamelModel):
    id: str = Field(..., description="SHA-256 digest of the key.")
    prefix: str = Field(..., examples=["readme_api_3f9a1c2…"])
    created_at: datetime = Field(..., alias="createdAt")
    last_used: datetime | None = Field(default=None, alias="lastUsed")


class ApiKeyListResponse(_CamelModel):
    success: bool = True
    api_keys: list[ApiKeyOut] = Field(default_factory=list, alias="apiKeys")


# ── Revoke ──────────────────────────────────────────────────
class RevokeKeyRequest(_CamelModel):
    """Identify the key either by its raw value or by its listing id."""

    api_key: str | None = Field(default=None, alias="apiKey")
    id: str | None = None


class RevokeKeyResponse(_CamelModel):
    success: bool = True
    message: str
