"""
Application settings loaded from environment variables.

Uses pydantic-settings so that every config value is validated at startup.
All secrets stay in .env on the server — never in frontend code.

Nothing is strictly required at import time: a missing store URL puts the
service in degraded mode, and a missing provider key or admin secret turns
the affected routes into explicit 500s instead of failing the whole app.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration.

    REDIS_URL accepts any redis-py URL:
        redis://host:6379/0   or   rediss://host:6380/0
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ── General ─────────────────────────────────────────────
    APP_NAME: str = "README Generator API"
    DEBUG: bool = False
    CORS_ORIGINS: list[str] = ["*"]

    # ── Key store ───────────────────────────────────────────
    # Empty URL → unconfigured store (degraded mode, in-memory limiter).
    REDIS_URL: str = ""
    REDIS_TOKEN: str = ""
    REDIS_TIMEOUT_SECONDS: float = 2.0

    # ── Admin gate ──────────────────────────────────────────
    ADMIN_SECRET_KEY: str = ""

    # ── Text generation ─────────────────────────────────────
    # API keys stay server-side, never exposed to clients.
    TEXT_PROVIDER: str = "gemini"
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-1.5-pro"
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o"

    # ── Repository provider ─────────────────────────────────
    # Used when the caller does not supply their own GitHub token.
    GITHUB_TOKEN: str = ""

    GENERATION_TIMEOUT_SECONDS: float = 60.0


# Singleton, imported everywhere as `from readme_api.core.config import settings`
settings = Settings()
