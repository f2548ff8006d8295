"""
Pydantic v2 schemas for README generation.

`repo_url` is optional at the schema level on purpose: a missing URL is
reported by the pipeline as a 400 with a stable message instead of a
framework validation error.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GenerateRequest(BaseModel):
    """Body of POST /v1/generate."""

    model_config = ConfigDict(populate_by_name=True)

    repo_url: str | None = Field(
        default=None,
        alias="repoUrl",
        examples=["https://github.com/octocat/Hello-World"],
    )
    github_token: str | None = Field(
        default=None,
        alias="githubToken",
        description="Optional GitHub token for private repositories or higher GitHub quotas.",
    )


class BrowserGenerateRequest(BaseModel):
    """Body of POST /generate-readme (the web form).

    The form calls its GitHub token `apiKey`; it is NOT a service API key.
    """

    model_config = ConfigDict(populate_by_name=True)

    repo_url: str | None = Field(default=None, alias="repoUrl")
    github_token: str | None = Field(default=None, alias="apiKey")


class RepositoryInfo(BaseModel):
    name: str
    owner: str
    stars: int = 0
    language: str = "Unknown"
    created_at: str | None = None
    updated_at: str | None = None


class GenerationMetadata(BaseModel):
    repository: RepositoryInfo


class GenerateResponse(BaseModel):
    success: bool = True
    readme: str
    metadata: GenerationMetadata | None = None
