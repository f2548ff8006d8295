"""
README generation routers.

  POST /v1/generate      — public API. RATE LIMIT (api class, per key)
                           → API KEY → pipeline.
  POST /generate-readme  — web form. RATE LIMIT (browser class, per IP)
                           → pipeline. No service API key involved.

Every response, errors included, carries X-RateLimit-Limit,
X-RateLimit-Remaining and X-RateLimit-Reset.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from readme_api.auth.dependencies import ApiCaller, require_api_key
from readme_api.auth.rate_limit import enforce_rate_limit
from readme_api.core.config import settings
from readme_api.core.errors import ServiceError, Unexpected
from readme_api.schemas.generate import BrowserGenerateRequest, GenerateRequest, GenerateResponse
from readme_api.services.rate_limiter import QuotaStatus
from readme_api.services.readme_pipeline import ReadmePipeline

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Generation"])


def get_readme_pipeline() -> ReadmePipeline:
    return ReadmePipeline(settings)


Pipeline = Annotated[ReadmePipeline, Depends(get_readme_pipeline)]


async def _run(pipeline: ReadmePipeline, repo_url: str | None, github_token: str | None) -> GenerateResponse:
    try:
        result = await pipeline.run(repo_url, github_token)
    except ServiceError:
        raise
    except Exception as exc:
        logger.exception("README generation failed unexpectedly")
        raise Unexpected("Failed to generate README. Please try again later.") from exc

    return GenerateResponse(readme=result.readme, metadata=result.metadata())


@router.post(
    "/v1/generate",
    response_model=GenerateResponse,
    summary="Generate a README (API key required)",
    description=(
        "Authenticate with `Authorization: Bearer <api key>`. "
        "Rate limited: 100 requests/hour per key."
    ),
)
async def generate_v1(
    payload: GenerateRequest,
    caller: Annotated[ApiCaller, Depends(require_api_key)],
    pipeline: Pipeline,
) -> GenerateResponse:
    logger.info("v1 generate by %s (trust=%s)", caller.key_prefix, caller.trust.value)
    return await _run(pipeline, payload.repo_url, payload.github_token)


@router.post(
    "/generate-readme",
    response_model=GenerateResponse,
    summary="Generate a README from the web form",
    description="No API key. Rate limited: 10 requests/hour per client IP.",
)
async def generate_from_browser(
    payload: BrowserGenerateRequest,
    _quota: Annotated[QuotaStatus, Depends(enforce_rate_limit)],
    pipeline: Pipeline,
) -> GenerateResponse:
    return await _run(pipeline, payload.repo_url, payload.github_token)
