"""
Error taxonomy shared by the gate, the services and the routers.

Every ServiceError maps to exactly one HTTP status and a stable `code`.
The exception handler in main.py renders them as:

    {"success": false, "error": <message>, "code": <code>, ...extra}

StoreUnavailable is deliberately NOT a ServiceError: it is an expected
condition that callers absorb into degraded-mode behaviour, and it must
never be rendered to the end caller as-is.
"""

from __future__ import annotations

from typing import Any


class StoreUnavailable(Exception):
    """Raised by the key store adapter when the backend cannot be used."""


class ServiceError(Exception):
    """Base class for errors that are surfaced to the caller."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "An unexpected error occurred. Please try again."

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_body(self) -> dict[str, Any]:
        return {"success": False, "error": self.message, "code": self.code, **self.extra}


class InvalidInput(ServiceError):
    status_code = 400
    code = "INVALID_INPUT"
    default_message = "Invalid request body"


class Unauthorized(ServiceError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Missing or invalid API key."


class UpstreamUnauthorized(ServiceError):
    """The caller's GitHub token was rejected, not the service API key."""

    status_code = 401
    code = "UPSTREAM_UNAUTHORIZED"
    default_message = "Invalid GitHub token or insufficient permissions."


class UpstreamForbidden(ServiceError):
    status_code = 403
    code = "UPSTREAM_FORBIDDEN"
    default_message = "GitHub API access error. Try adding your GitHub token for better access."


class UpstreamQuota(ServiceError):
    status_code = 403
    code = "UPSTREAM_QUOTA"
    default_message = "Upstream provider quota exceeded. Please try again later."


class NotFound(ServiceError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Repository not found. Check the URL or provide a GitHub token for private repositories."


class LocalQuotaExceeded(ServiceError):
    """429 — carries the quota fields both in the body and as headers."""

    status_code = 429
    code = "RATE_LIMITED"
    default_message = "Rate limit exceeded. Please try again later."

    def __init__(self, limit: int, reset: int) -> None:
        self.limit = limit
        self.remaining = 0
        self.reset = reset
        super().__init__(limit=limit, remaining=0, reset=reset)


class Misconfigured(ServiceError):
    """Required configuration is absent — the message names what is missing."""

    status_code = 500
    code = "MISCONFIGURED"


class Unexpected(ServiceError):
    status_code = 500
    code = "INTERNAL_ERROR"


class UpstreamTimeout(ServiceError):
    status_code = 504
    code = "UPSTREAM_TIMEOUT"
    default_message = "README generation took too long. Please try again later."
