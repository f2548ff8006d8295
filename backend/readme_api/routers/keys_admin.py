"""
Admin key-management router — every route requires the admin secret.

  POST   /keys-admin  — issue a key for the fixed internal user
  GET    /keys-admin  — list that user's keys (metadata only)
  DELETE /keys-admin  — revoke by raw key or by listing id

Store outages:
  • POST falls back to an UNPERSISTED key, flagged with note="fallback".
  • GET returns a generic 500 (the outage itself is only logged).
  • DELETE returns 400 "Failed to revoke API key".
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from readme_api.auth.dependencies import ADMIN_USER_ID, get_key_manager, require_admin
from readme_api.core.errors import InvalidInput, StoreUnavailable, Unexpected
from readme_api.schemas.api_keys import (
    ApiKeyListResponse,
    ApiKeyOut,
    IssuedKeyResponse,
    RevokeKeyRequest,
    RevokeKeyResponse,
)
from readme_api.services.api_keys import ApiKeyManager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Key Management"], dependencies=[Depends(require_admin)])

Manager = Annotated[ApiKeyManager, Depends(get_key_manager)]


@router.post(
    "",
    response_model=IssuedKeyResponse,
    response_model_exclude_none=True,
    summary="Issue a new API key",
    description=(
        "Returns the raw key exactly once. If the key store is unavailable "
        "the key is generated but not persisted, and the response carries "
        "note='fallback'."
    ),
)
async def issue_key(manager: Manager) -> IssuedKeyResponse:
    try:
        result = await manager.issue(ADMIN_USER_ID)
    except StoreUnavailable:
        logger.exception("Key store unavailable while issuing an API key")
        result = manager.issue_fallback()

    return IssuedKeyResponse(
        api_key=result.api_key,
        note=None if result.persisted else "fallback",
    )


@router.get(
    "",
    response_model=ApiKeyListResponse,
    summary="List issued API keys",
    description="Metadata only — raw keys are never stored, so they can't be listed.",
)
async def list_keys(manager: Manager) -> ApiKeyListResponse:
    try:
        records = await manager.list_keys(ADMIN_USER_ID)
    except StoreUnavailable as exc:
        logger.exception("Key store unavailable while listing API keys")
        raise Unexpected("Failed to list API keys") from exc

    return ApiKeyListResponse(
        api_keys=[
            ApiKeyOut(
                id=r.key_id,
                prefix=r.prefix,
                created_at=r.created_at,
                last_used=r.last_used,
            )
            for r in records
        ]
    )


@router.delete(
    "",
    response_model=RevokeKeyResponse,
    summary="Revoke an API key",
)
async def revoke_key(payload: RevokeKeyRequest, manager: Manager) -> RevokeKeyResponse:
    # ── 1. Identify the key ─────────────────────────────────
    if payload.api_key:
        revoked = await manager.revoke(payload.api_key)
    elif payload.id:
        revoked = await manager.revoke_by_id(payload.id)
    else:
        raise InvalidInput("API key is required")

    # ── 2. Report ───────────────────────────────────────────
    if not revoked:
        raise InvalidInput("Failed to revoke API key")

    return RevokeKeyResponse(message="API key revoked successfully")
