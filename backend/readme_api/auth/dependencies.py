"""
FastAPI dependencies for the two credential gates.

Admin gate (key-management routes):
  1. ADMIN_SECRET_KEY must be configured      → else 500 (Misconfigured)
  2. Extract Bearer token                     → else 401
  3. Constant-time compare with the secret    → else 401

API key gate (/v1/ routes), runs AFTER the rate limiter:
  1. Extract Bearer token                     → else 401
  2. ApiKeyManager.verify()                   → invalid → 401
     (each failure is charged to the client IP; 429 once exhausted)
  3. Return ApiCaller (key prefix + trust level + quota)

Security:
  • Raw keys are NEVER logged — only their display prefix.
  • Format-fallback trust (store down) is accepted but carried on the
    ApiCaller so routes and logs can tell it apart from store trust.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Depends, Header, Request

from readme_api.auth.keys import display_prefix, extract_bearer, secrets_match
from readme_api.auth.rate_limit import count_failed_auth, enforce_rate_limit, get_rate_limiter
from readme_api.core.config import settings
from readme_api.core.errors import Misconfigured, Unauthorized
from readme_api.core.store import KeyStore, get_key_store
from readme_api.services.api_keys import ApiKeyManager, Trust
from readme_api.services.rate_limiter import QuotaStatus, RateLimiter

logger = logging.getLogger(__name__)

# Fixed owner for admin-issued keys; there is no user/session system
ADMIN_USER_ID = "api-user"


@dataclass(frozen=True, slots=True)
class ApiCaller:
    """Authenticated API request context.

    Attributes:
        key_prefix: Display prefix of the presented key (safe to log).
        trust:      STORE, or FORMAT_FALLBACK while the store is down.
        quota:      Quota status after counting this request.
    """

    key_prefix: str
    trust: Trust
    quota: QuotaStatus


def get_key_manager(store: KeyStore = Depends(get_key_store)) -> ApiKeyManager:
    return ApiKeyManager(store)


async def require_admin(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> None:
    if not settings.ADMIN_SECRET_KEY:
        logger.error("Admin route called but ADMIN_SECRET_KEY is not configured")
        raise Misconfigured(
            "Admin secret key is not configured. "
            "Please set the ADMIN_SECRET_KEY environment variable."
        )

    token = extract_bearer(authorization)
    if token is None:
        raise Unauthorized(
            "Missing or invalid admin secret key. "
            "Please provide a valid admin secret key in the Authorization header."
        )
    if not secrets_match(token, settings.ADMIN_SECRET_KEY):
        logger.warning("Rejected admin request with an incorrect secret")
        raise Unauthorized("Invalid admin secret key.")


async def require_api_key(
    request: Request,
    quota: QuotaStatus = Depends(enforce_rate_limit),
    authorization: str | None = Header(default=None, alias="Authorization"),
    manager: ApiKeyManager = Depends(get_key_manager),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> ApiCaller:
    token = extract_bearer(authorization)
    if token is None:
        raise Unauthorized(
            "Missing or invalid API key. "
            "Please provide a valid API key in the Authorization header."
        )

    verification = await manager.verify(token)
    if not verification.valid:
        await count_failed_auth(request, limiter)
        raise Unauthorized("Invalid API key. Please provide a valid API key.")

    if verification.trust is Trust.FORMAT_FALLBACK:
        logger.warning("Serving %s on format-fallback trust", display_prefix(token))

    return ApiCaller(key_prefix=display_prefix(token), trust=verification.trust, quota=quota)
