"""
README generation pipeline.

  1. Parse the repository URL                      → InvalidInput on failure
  2. Check the text provider is configured          → Misconfigured (500)
  3. Fetch repository facts from GitHub             → NotFound / 401 / 403 / 504
  4. Build a plain-text prompt from those facts
  5. Ask the text provider for Markdown

The whole of steps 3–5 runs under GENERATION_TIMEOUT_SECONDS; exceeding it
raises UpstreamTimeout (504).

The prompt is a flat list of facts. Formatting decisions are left to the
model — this service does not template README content itself.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from readme_api.core.config import Settings
from readme_api.core.errors import InvalidInput, UpstreamTimeout
from readme_api.services.github_client import GitHubClient, RepositorySnapshot, parse_repo_url
from readme_api.services.llm_client import TextGenerationClient

logger = logging.getLogger(__name__)

# Caps on how much of each fact list goes into the prompt
_MAX_TREE_ENTRIES = 50
_MAX_README_CHARS = 4_000


@dataclass(frozen=True, slots=True)
class GeneratedReadme:
    readme: str
    snapshot: RepositorySnapshot

    def metadata(self) -> dict[str, Any]:
        info = self.snapshot.info
        return {
            "repository": {
                "name": info.get("name", self.snapshot.repo),
                "owner": self.snapshot.owner,
                "stars": info.get("stargazers_count", 0),
                "language": self.snapshot.primary_language,
                "created_at": info.get("created_at"),
                "updated_at": info.get("updated_at"),
            }
        }


def build_prompt(snapshot: RepositorySnapshot) -> str:
    info = snapshot.info
    license_info = info.get("license") or {}
    total_bytes = sum(snapshot.languages.values()) or 1

    lines = [
        "Generate a comprehensive, professional README.md for this GitHub repository.",
        "",
        "REPOSITORY INFORMATION:",
        f"- Name: {info.get('name', snapshot.repo)}",
        f"- Description: {info.get('description') or 'No description provided'}",
        f"- Owner: {snapshot.owner}",
        f"- Created: {info.get('created_at', 'unknown')}",
        f"- Last Updated: {info.get('updated_at', 'unknown')}",
        f"- Stars: {info.get('stargazers_count', 0)}",
        f"- Forks: {info.get('forks_count', 0)}",
        f"- Open Issues: {info.get('open_issues_count', 0)}",
        f"- License: {license_info.get('name', 'Not specified')}",
        "",
        "LANGUAGES:",
    ]
    lines += [
        f"- {lang}: {size / total_bytes * 100:.1f}%" for lang, size in snapshot.languages.items()
    ]

    lines += ["", "PROJECT STRUCTURE:"]
    for item in snapshot.contents[:_MAX_TREE_ENTRIES]:
        kind = "Directory" if item.get("type") == "dir" else "File"
        lines.append(f"- {kind}: {item.get('name')}")

    lines += ["", "CONTRIBUTORS:"]
    lines += [
        f"- {c.get('login')}: {c.get('contributions', 0)} contributions"
        for c in snapshot.contributors
    ]

    if snapshot.readme:
        lines += ["", "EXISTING README (for reference):", snapshot.readme[:_MAX_README_CHARS]]

    lines += [
        "",
        "INSTRUCTIONS:",
        "Start with the repository name and a short description, then cover features, "
        "tech stack, installation, usage, contributing and license. Use standard Markdown.",
    ]
    return "\n".join(lines)


class ReadmePipeline:
    """Wires the repository provider and the text provider together."""

    def __init__(
        self,
        cfg: Settings,
        generator: TextGenerationClient | None = None,
        github_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._cfg = cfg
        self._generator = generator or TextGenerationClient(cfg)
        self._github_transport = github_transport

    async def run(self, repo_url: str | None, github_token: str | None = None) -> GeneratedReadme:
        if not repo_url:
            raise InvalidInput("Repository URL is required")
        parsed = parse_repo_url(repo_url)
        if parsed is None:
            raise InvalidInput("Invalid GitHub repository URL")
        owner, repo = parsed

        self._generator.ensure_configured()

        # Caller's token wins; fall back to the server-side token
        client = GitHubClient(
            token=github_token or self._cfg.GITHUB_TOKEN or None,
            transport=self._github_transport,
        )

        try:
            return await asyncio.wait_for(
                self._generate(client, owner, repo),
                timeout=self._cfg.GENERATION_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError as exc:
            logger.warning(
                "README generation for %s/%s exceeded %.0fs",
                owner,
                repo,
                self._cfg.GENERATION_TIMEOUT_SECONDS,
            )
            raise UpstreamTimeout() from exc

    async def _generate(self, client: GitHubClient, owner: str, repo: str) -> GeneratedReadme:
        snapshot = await client.fetch_repository(owner, repo)
        readme = await self._generator.generate(build_prompt(snapshot))
        logger.info("Generated README for %s/%s (%d chars)", owner, repo, len(readme))
        return GeneratedReadme(readme=readme, snapshot=snapshot)
