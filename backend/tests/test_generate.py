"""
Tests for the generation routes and the gate in front of them.
"""

import pytest
from fastapi.testclient import TestClient

from readme_api.core.errors import (
    InvalidInput,
    NotFound,
    UpstreamForbidden,
    UpstreamQuota,
    UpstreamTimeout,
    UpstreamUnauthorized,
)
from readme_api.main import app
from readme_api.services.rate_limiter import API_LIMIT, BROWSER_LIMIT, WINDOW_SECONDS

REPO_URL = "https://github.com/octocat/Hello-World"


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def api_key(client, admin_headers) -> str:
    return client.post("/keys-admin", headers=admin_headers).json()["apiKey"]


class TestV1Gate:
    """Authentication and rate limiting on POST /v1/generate."""

    def test_missing_key_is_401_with_quota_headers(self, client):
        response = client.post("/v1/generate", json={"repoUrl": REPO_URL})

        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"
        # No usable key → counted in the browser class by IP
        assert response.headers["X-RateLimit-Limit"] == str(BROWSER_LIMIT)

    def test_unknown_key_is_401(self, client, fake_pipeline):
        response = client.post(
            "/v1/generate", json={"repoUrl": REPO_URL}, headers=bearer("readme_api_" + "0" * 32)
        )

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid API key. Please provide a valid API key."
        assert fake_pipeline.calls == []

    def test_guessed_keys_are_throttled_per_client(self, client, api_key):
        guesses = [f"readme_api_{i:032x}" for i in range(BROWSER_LIMIT + 1)]

        statuses = [
            client.post("/v1/generate", json={"repoUrl": REPO_URL}, headers=bearer(g)).status_code
            for g in guesses
        ]

        assert statuses == [401] * BROWSER_LIMIT + [429]
        # A valid key from the same client is unaffected
        response = client.post("/v1/generate", json={"repoUrl": REPO_URL}, headers=bearer(api_key))
        assert response.status_code == 200

    def test_valid_key_generates_with_quota_headers(self, client, api_key, fake_pipeline):
        response = client.post(
            "/v1/generate",
            json={"repoUrl": REPO_URL, "githubToken": "ghp_example"},
            headers=bearer(api_key),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["readme"] == "# Hello-World\n"
        assert body["metadata"]["repository"]["name"] == "Hello-World"
        assert body["metadata"]["repository"]["language"] == "Python"
        assert response.headers["X-RateLimit-Limit"] == str(API_LIMIT)
        assert response.headers["X-RateLimit-Remaining"] == str(API_LIMIT - 1)
        assert response.headers["X-RateLimit-Reset"] == str(WINDOW_SECONDS)
        assert fake_pipeline.calls == [(REPO_URL, "ghp_example")]

    def test_key_quota_exhausts_after_limit(self, client, api_key):
        remaining = []
        for _ in range(API_LIMIT):
            response = client.post("/v1/generate", json={"repoUrl": REPO_URL}, headers=bearer(api_key))
            assert response.status_code == 200
            remaining.append(int(response.headers["X-RateLimit-Remaining"]))
        assert remaining == list(range(API_LIMIT - 1, -1, -1))

        response = client.post("/v1/generate", json={"repoUrl": REPO_URL}, headers=bearer(api_key))

        assert response.status_code == 429
        body = response.json()
        assert body["limit"] == API_LIMIT
        assert body["remaining"] == 0
        assert 0 < body["reset"] <= WINDOW_SECONDS
        assert body["error"] == "Rate limit exceeded. Please try again later."
        assert response.headers["X-RateLimit-Remaining"] == "0"

    def test_quota_is_per_key(self, client, admin_headers, api_key):
        for _ in range(API_LIMIT):
            client.post("/v1/generate", json={"repoUrl": REPO_URL}, headers=bearer(api_key))
        other = client.post("/keys-admin", headers=admin_headers).json()["apiKey"]

        response = client.post("/v1/generate", json={"repoUrl": REPO_URL}, headers=bearer(other))

        assert response.status_code == 200
        assert response.headers["X-RateLimit-Remaining"] == str(API_LIMIT - 1)

    def test_quota_resets_after_window(self, client, api_key, fake_store):
        for _ in range(API_LIMIT):
            client.post("/v1/generate", json={"repoUrl": REPO_URL}, headers=bearer(api_key))
        assert client.post("/v1/generate", json={"repoUrl": REPO_URL}, headers=bearer(api_key)).status_code == 429

        fake_store.advance(WINDOW_SECONDS)
        response = client.post("/v1/generate", json={"repoUrl": REPO_URL}, headers=bearer(api_key))

        assert response.status_code == 200
        assert response.headers["X-RateLimit-Remaining"] == str(API_LIMIT - 1)

    def test_revoked_key_is_rejected(self, client, admin_headers, api_key):
        client.request("DELETE", "/keys-admin", headers=admin_headers, json={"apiKey": api_key})

        response = client.post("/v1/generate", json={"repoUrl": REPO_URL}, headers=bearer(api_key))

        assert response.status_code == 401

    def test_store_outage_fails_open_and_trusts_format(self, client, api_key, fake_store):
        fake_store.available = False

        response = client.post("/v1/generate", json={"repoUrl": REPO_URL}, headers=bearer(api_key))

        assert response.status_code == 200
        assert response.headers["X-RateLimit-Remaining"] == str(API_LIMIT)

    def test_fallback_key_scenario(self, client, admin_headers, fake_store):
        """Fallback key: usable during the outage, rejected once the store recovers."""
        fake_store.available = False
        issued = client.post("/keys-admin", headers=admin_headers).json()
        assert issued["note"] == "fallback"

        during = client.post("/v1/generate", json={"repoUrl": REPO_URL}, headers=bearer(issued["apiKey"]))
        assert during.status_code == 200

        fake_store.available = True
        after = client.post("/v1/generate", json={"repoUrl": REPO_URL}, headers=bearer(issued["apiKey"]))
        assert after.status_code == 401


class TestErrorMapping:
    """Pipeline errors reach the caller as stable JSON with quota headers."""

    @pytest.mark.parametrize(
        "error, status, code",
        [
            (InvalidInput("Invalid GitHub repository URL"), 400, "INVALID_INPUT"),
            (UpstreamUnauthorized(), 401, "UPSTREAM_UNAUTHORIZED"),
            (UpstreamForbidden(), 403, "UPSTREAM_FORBIDDEN"),
            (UpstreamQuota("GitHub API rate limit exceeded. Please provide a GitHub token."), 403, "UPSTREAM_QUOTA"),
            (NotFound(), 404, "NOT_FOUND"),
            (UpstreamTimeout(), 504, "UPSTREAM_TIMEOUT"),
        ],
    )
    def test_service_errors(self, client, api_key, fake_pipeline, error, status, code):
        fake_pipeline.error = error

        response = client.post("/v1/generate", json={"repoUrl": REPO_URL}, headers=bearer(api_key))

        assert response.status_code == status
        body = response.json()
        assert body["success"] is False
        assert body["code"] == code
        assert body["error"] == error.message
        assert response.headers["X-RateLimit-Remaining"] == str(API_LIMIT - 1)

    def test_unexpected_error_is_generic_500(self, client, api_key, fake_pipeline):
        fake_pipeline.error = KeyError("secret internal detail")

        response = client.post("/v1/generate", json={"repoUrl": REPO_URL}, headers=bearer(api_key))

        assert response.status_code == 500
        body = response.json()
        assert body["code"] == "INTERNAL_ERROR"
        assert "secret internal detail" not in response.text
        assert "X-RateLimit-Limit" in response.headers

    def test_malformed_body_is_400(self, client, api_key):
        response = client.post(
            "/v1/generate",
            content=b"{not json",
            headers={**bearer(api_key), "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_INPUT"


class TestBrowserRoute:
    """POST /generate-readme — no API key, per-IP browser quota."""

    def test_generates_without_api_key(self, client, fake_pipeline):
        response = client.post("/generate-readme", json={"repoUrl": REPO_URL, "apiKey": "ghp_example"})

        assert response.status_code == 200
        assert response.headers["X-RateLimit-Limit"] == str(BROWSER_LIMIT)
        # The form's apiKey is a GitHub token
        assert fake_pipeline.calls == [(REPO_URL, "ghp_example")]

    def test_browser_quota(self, client):
        for _ in range(BROWSER_LIMIT):
            assert client.post("/generate-readme", json={"repoUrl": REPO_URL}).status_code == 200

        response = client.post("/generate-readme", json={"repoUrl": REPO_URL})

        assert response.status_code == 429
        assert response.json()["limit"] == BROWSER_LIMIT

    def test_service_key_does_not_lift_browser_quota(self, client, api_key):
        for _ in range(BROWSER_LIMIT):
            client.post("/generate-readme", json={"repoUrl": REPO_URL}, headers=bearer(api_key))

        response = client.post("/generate-readme", json={"repoUrl": REPO_URL}, headers=bearer(api_key))

        assert response.status_code == 429


class TestCors:
    def test_preflight_is_answered_before_the_gate(self, client, fake_store):
        response = client.options(
            "/v1/generate",
            headers={
                "Origin": "https://example.com",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Authorization, Content-Type",
            },
        )

        assert response.status_code == 200
        assert "access-control-allow-origin" in response.headers
        assert fake_store.keys() == []


def test_health():
    response = TestClient(app).get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
