"""
GitHub REST client — the repository data provider.

Fetches the handful of facts the README prompt needs:
  • repository metadata   GET /repos/{owner}/{repo}
  • root directory        GET /repos/{owner}/{repo}/contents/
  • languages             GET /repos/{owner}/{repo}/languages
  • top contributors      GET /repos/{owner}/{repo}/contributors
  • existing README       GET /repos/{owner}/{repo}/readme  (optional)

Upstream failures are translated into the service error taxonomy:
  404 → NotFound, 401 → UpstreamUnauthorized, 403/429 → UpstreamQuota (rate limit)
  or UpstreamForbidden, timeout → UpstreamTimeout, anything else → Unexpected.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass, field
from typing import Any

import httpx

from readme_api.core.errors import (
    NotFound,
    ServiceError,
    Unexpected,
    UpstreamForbidden,
    UpstreamQuota,
    UpstreamTimeout,
    UpstreamUnauthorized,
)

logger = logging.getLogger(__name__)

_GITHUB_API_URL = "https://api.github.com"
_REPO_URL_PATTERN = re.compile(r"github\.com/([^/\s]+)/([^/\s?#]+)")
_MAX_CONTRIBUTORS = 10


def parse_repo_url(repo_url: str) -> tuple[str, str] | None:
    """Extract (owner, repo) from a GitHub URL. None if it is not one."""
    match = _REPO_URL_PATTERN.search(repo_url)
    if not match:
        return None
    owner, repo = match.groups()
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    return (owner, repo) if repo else None


@dataclass(slots=True)
class RepositorySnapshot:
    owner: str
    repo: str
    info: dict[str, Any]
    contents: list[dict[str, Any]] = field(default_factory=list)
    languages: dict[str, int] = field(default_factory=dict)
    contributors: list[dict[str, Any]] = field(default_factory=list)
    readme: str | None = None

    @property
    def primary_language(self) -> str:
        # GitHub returns languages ordered by byte count, largest first
        return next(iter(self.languages), "Unknown")


class GitHubClient:
    """Thin async wrapper around the endpoints listed above."""

    def __init__(
        self,
        token: str | None = None,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            self._headers["Authorization"] = f"Bearer {token}"
        self._timeout = timeout
        self._transport = transport

    async def fetch_repository(self, owner: str, repo: str) -> RepositorySnapshot:
        base = f"/repos/{owner}/{repo}"
        async with httpx.AsyncClient(
            base_url=_GITHUB_API_URL,
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            info = await self._get_json(client, base)

            try:
                contents = await self._get_json(client, f"{base}/contents/")
            except NotFound:
                contents = []  # empty repository

            languages = await self._get_json(client, f"{base}/languages")
            # 204 No Content for repositories without commits
            contributors = await self._get_json(
                client, f"{base}/contributors", params={"per_page": _MAX_CONTRIBUTORS}
            )
            readme = await self._get_readme(client, base)

        return RepositorySnapshot(
            owner=owner,
            repo=repo,
            info=info,
            contents=contents if isinstance(contents, list) else [contents],
            languages=languages or {},
            contributors=contributors or [],
            readme=readme,
        )

    async def _get_readme(self, client: httpx.AsyncClient, base: str) -> str | None:
        try:
            data = await self._get_json(client, f"{base}/readme")
        except ServiceError as exc:
            logger.debug("No README available for %s: %s", base, exc.code)
            return None
        try:
            return base64.b64decode(data.get("content", "")).decode("utf-8", errors="replace")
        except (binascii.Error, AttributeError):
            logger.warning("Could not decode README for %s", base)
            return None

    async def _get_json(
        self,
        client: httpx.AsyncClient,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        try:
            response = await client.get(path, params=params)
        except httpx.TimeoutException as exc:
            raise UpstreamTimeout("The GitHub API did not respond in time.") from exc
        except httpx.HTTPError as exc:
            logger.error("GitHub request %s failed: %s", path, exc)
            raise Unexpected("Failed to reach the GitHub API. Please try again later.") from exc

        _raise_for_status(response)
        if response.status_code == 204:
            return None
        return response.json()


def _raise_for_status(response: httpx.Response) -> None:
    status = response.status_code
    if status < 400:
        return
    if status == 404:
        raise NotFound()
    if status == 401:
        raise UpstreamUnauthorized()
    if status in (403, 429):
        if response.headers.get("x-ratelimit-remaining") == "0" or "rate limit" in response.text.lower():
            raise UpstreamQuota("GitHub API rate limit exceeded. Please provide a GitHub token.")
        raise UpstreamForbidden()

    logger.error("GitHub API error: status=%d body=%s", status, response.text[:500])
    raise Unexpected("Failed to analyze repository. Please try again.")
