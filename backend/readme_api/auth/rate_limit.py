"""
FastAPI dependency for rate limit enforcement.

Caller classification (no store access):
  • /v1/ route + well-formed API key in the Bearer header
        → identifier = SHA-256 of the key, class "api"     (100/hour)
  • everything else
        → identifier = client IP or "anonymous", class "browser" (10/hour)

Order in request pipeline: RATE LIMIT → AUTH → ROUTER LOGIC, so that
responses to bad credentials still carry quota headers.

Every well-formed but unknown key gets its own digest counter, so those
counters alone do not slow down key guessing. Failed verifications are
also counted per client IP under `auth-failure:<ip>` with the browser
quota; past it, further attempts from that IP get 429.

On success the X-RateLimit-* headers are set on the response and the
QuotaStatus is kept on request.state so the error handlers can attach
the same headers to any later error response.
On limit exceeded, LocalQuotaExceeded propagates → 429 with quota fields.
"""

from __future__ import annotations

from fastapi import Depends, Header, Request, Response

from readme_api.auth.keys import extract_bearer, hash_api_key, looks_like_api_key
from readme_api.services.rate_limiter import QuotaClass, QuotaStatus, RateLimiter

API_ROUTE_PREFIX = "/v1/"
ANONYMOUS = "anonymous"
AUTH_FAILURE_PREFIX = "auth-failure:"


def get_rate_limiter(request: Request) -> RateLimiter:
    """The limiter is process-wide (the in-memory one keeps state)."""
    return request.app.state.rate_limiter


def classify_caller(request: Request, authorization: str | None) -> tuple[str, QuotaClass]:
    """Return (identifier, quota class) for this request."""
    token = extract_bearer(authorization)
    if request.url.path.startswith(API_ROUTE_PREFIX) and looks_like_api_key(token):
        # Counter keys never contain a raw API key
        return hash_api_key(token), QuotaClass.API

    return client_address(request), QuotaClass.BROWSER


def client_address(request: Request) -> str:
    host = request.client.host if request.client else None
    return host or ANONYMOUS


async def enforce_rate_limit(
    request: Request,
    response: Response,
    authorization: str | None = Header(default=None, alias="Authorization"),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> QuotaStatus:
    identifier, quota_class = classify_caller(request, authorization)
    quota = await limiter.hit(identifier, quota_class)

    request.state.quota = quota
    for name, value in quota.headers().items():
        response.headers[name] = value
    return quota


async def count_failed_auth(request: Request, limiter: RateLimiter) -> None:
    """Charge a rejected credential to the caller's IP. Raises LocalQuotaExceeded."""
    await limiter.hit(f"{AUTH_FAILURE_PREFIX}{client_address(request)}", QuotaClass.BROWSER)
