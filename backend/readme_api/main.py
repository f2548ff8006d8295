"""
FastAPI application entrypoint.

Lifespan:
  • On startup: build the key store + rate limiter, verify store connectivity.
  • On shutdown: close the store's connection pool.

Routers:
  • /keys-admin      — API key issuance / listing / revocation (admin secret)
  • /v1/generate     — public README generation (API key, 100/hour)
  • /generate-readme — web form README generation (per IP, 10/hour)
  • /health          — shallow liveness probe

Errors:
  Every ServiceError becomes {"success": false, "error", "code", ...} with
  its status code, plus the request's X-RateLimit-* headers when the
  rate limiter already ran. CORS preflights are answered by the CORS
  middleware before any gate runs.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from readme_api.core.config import settings
from readme_api.core.errors import (
    InvalidInput,
    LocalQuotaExceeded,
    ServiceError,
    StoreUnavailable,
    Unexpected,
)
from readme_api.core.store import build_key_store
from readme_api.routers.generate import router as generate_router
from readme_api.routers.keys_admin import router as keys_admin_router
from readme_api.services.rate_limiter import build_rate_limiter

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""

    store = build_key_store(settings)
    app.state.key_store = store
    app.state.rate_limiter = build_rate_limiter(store)

    # Startup: verify the store is reachable (non-fatal, degraded mode)
    if store.configured:
        try:
            await store.ping()
            logger.info("Key store connection verified ✓")
        except StoreUnavailable:
            logger.warning(
                "Could not reach the key store on startup. The app will start, "
                "but key checks use format fallback and rate limiting is "
                "disabled until the store is available."
            )

    yield  # ← application runs here

    # Shutdown: clean up connection pool
    await store.close()
    logger.info("Key store closed ✓")


# ── App ─────────────────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    description=(
        "Generates README.md files for GitHub repositories. "
        "API keys are issued by the admin routes and rate limited per key."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
    expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
)

# Mount routers
app.include_router(keys_admin_router, prefix="/keys-admin")
app.include_router(generate_router)


# ── Error handling ──────────────────────────────────────────
def _quota_headers(request: Request) -> dict[str, str]:
    quota = getattr(request.state, "quota", None)
    return quota.headers() if quota is not None else {}


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if isinstance(exc, LocalQuotaExceeded):
        headers = {
            "X-RateLimit-Limit": str(exc.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(exc.reset),
        }
    else:
        headers = _quota_headers(request)

    if exc.status_code >= 500:
        logger.error("%s %s → %s: %s", request.method, request.url.path, exc.code, exc.message)

    return JSONResponse(status_code=exc.status_code, content=exc.to_body(), headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = InvalidInput()
    body = error.to_body()
    body["details"] = jsonable_encoder(exc.errors())
    return JSONResponse(status_code=error.status_code, content=body, headers=_quota_headers(request))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # Full detail server-side only
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    error = Unexpected()
    return JSONResponse(status_code=error.status_code, content=error.to_body())


# ── Health check ────────────────────────────────────────────
@app.get(
    "/health",
    tags=["System"],
    summary="Liveness probe",
)
async def health_check() -> dict[str, str]:
    """Shallow health check — confirms the process is alive."""
    return {"status": "healthy"}
