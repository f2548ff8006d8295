"""
Text-generation client — turns a README prompt into Markdown.

Talks to the provider's REST API directly via httpx:
  • gemini — POST /v1beta/models/{model}:generateContent
  • openai — POST /v1/chat/completions

Configuration:
  TEXT_PROVIDER              — "gemini" (default) or "openai"
  GEMINI_API_KEY/OPENAI_API_KEY — server-side only (never exposed to clients)
  GEMINI_MODEL/OPENAI_MODEL  — model names

Error mapping:
  • missing / rejected API key → Misconfigured (500, names the variable)
  • quota or provider rate limit → UpstreamQuota (403)
  • timeout → UpstreamTimeout (504)
  • anything else → Unexpected (500), body logged server-side only
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from readme_api.core.config import Settings
from readme_api.core.errors import Misconfigured, Unexpected, UpstreamQuota, UpstreamTimeout

logger = logging.getLogger(__name__)

_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
_OPENAI_BASE_URL = "https://api.openai.com/v1"

SYSTEM_PROMPT = (
    "You are a senior technical writer. You write accurate, well-structured "
    "README.md files in GitHub-flavoured Markdown. Use only facts present in "
    "the repository data you are given; never invent features, commands or URLs. "
    "Respond with the Markdown document only, without surrounding code fences."
)

SUPPORTED_PROVIDERS = ("gemini", "openai")


class TextGenerationClient:
    """One provider, chosen from settings at construction time."""

    def __init__(
        self,
        cfg: Settings,
        timeout: float = 55.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.provider = cfg.TEXT_PROVIDER.strip().lower()
        self._cfg = cfg
        self._timeout = timeout
        self._transport = transport

    def ensure_configured(self) -> None:
        """Fail fast — before any upstream work — on missing configuration."""
        if self.provider not in SUPPORTED_PROVIDERS:
            raise Misconfigured(
                f"Unknown TEXT_PROVIDER '{self.provider}'. "
                f"Use one of: {', '.join(SUPPORTED_PROVIDERS)}."
            )
        if self.provider == "gemini" and not self._cfg.GEMINI_API_KEY:
            raise Misconfigured(
                "Gemini API key is not configured. "
                "Please set the GEMINI_API_KEY environment variable."
            )
        if self.provider == "openai" and not self._cfg.OPENAI_API_KEY:
            raise Misconfigured(
                "OpenAI API key is not configured. "
                "Please set the OPENAI_API_KEY environment variable."
            )

    async def generate(self, prompt: str) -> str:
        self.ensure_configured()
        if self.provider == "gemini":
            return await self._generate_with_gemini(prompt)
        return await self._generate_with_openai(prompt)

    # ── Gemini ──────────────────────────────────────────────
    async def _generate_with_gemini(self, prompt: str) -> str:
        payload = {
            "systemInstruction": {"parts": [{"text": SYSTEM_PROMPT}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        }
        response = await self._post(
            f"{_GEMINI_BASE_URL}/models/{self._cfg.GEMINI_MODEL}:generateContent",
            payload,
            headers={"x-goog-api-key": self._cfg.GEMINI_API_KEY},
        )
        self._raise_for_status(response, "Gemini", "GEMINI_API_KEY")

        try:
            parts = response.json()["candidates"][0]["content"]["parts"]
            text = "".join(part.get("text", "") for part in parts)
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            logger.error("Failed to parse Gemini response: %s", exc)
            raise Unexpected("Failed to generate content with Gemini AI. Please try again later.") from exc
        return _strip_fences(text)

    # ── OpenAI ──────────────────────────────────────────────
    async def _generate_with_openai(self, prompt: str) -> str:
        payload = {
            "model": self._cfg.OPENAI_MODEL,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.7,
            "max_tokens": 4000,
        }
        response = await self._post(
            f"{_OPENAI_BASE_URL}/chat/completions",
            payload,
            headers={"Authorization": f"Bearer {self._cfg.OPENAI_API_KEY}"},
        )
        self._raise_for_status(response, "OpenAI", "OPENAI_API_KEY")

        try:
            text = response.json()["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            logger.error("Failed to parse OpenAI response: %s", exc)
            raise Unexpected("Failed to generate content with OpenAI. Please try again later.") from exc
        return _strip_fences(text)

    # ── Transport helpers ───────────────────────────────────
    async def _post(self, url: str, payload: dict[str, Any], headers: dict[str, str]) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                return await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise UpstreamTimeout("The text generation provider did not respond in time.") from exc
        except httpx.HTTPError as exc:
            logger.error("%s request failed: %s", self.provider, exc)
            raise Unexpected("Failed to reach the text generation provider.") from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response, name: str, key_variable: str) -> None:
        if response.status_code == 200:
            return

        body = response.text[:500]
        lowered = body.lower()
        logger.error("%s API error: status=%d body=%s", name, response.status_code, body)

        if response.status_code == 429 or "quota" in lowered or "resource_exhausted" in lowered:
            raise UpstreamQuota(f"{name} API quota exceeded. Please try again later.")
        if response.status_code in (401, 403) or "api key" in lowered:
            raise Misconfigured(
                f"Invalid {name} API key. Please check the {key_variable} configuration."
            )
        raise Unexpected(f"Failed to generate content with {name}. Please try again later.")


def _strip_fences(content: str) -> str:
    # Strip markdown fences if the model wraps output
    content = content.strip()
    if content.startswith("```"):
        content = content.split("\n", 1)[1] if "\n" in content else ""
        if content.endswith("```"):
            content = content[:-3]
        content = content.strip()
    return content
