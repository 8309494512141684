"""Git hosting backends and backend selection."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from .base import GitServer, PullRequestError
from .bitbucket import BitbucketServer
from .github import GitHubServer
from .gitlab import GitLabServer

if TYPE_CHECKING:
    from ..config import PrerSettings


class UnknownGitServerError(RuntimeError):
    """Raised when the configured git server name is not supported."""


def _secret(value) -> str | None:
    return value.get_secret_value() if value is not None else None


def resolve_git_server(
    settings: "PrerSettings",
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> GitServer:
    """Return the backend named by ``settings.git_server``."""

    if settings.git_server == "github":
        return GitHubServer(
            settings.github_repo_owner,
            settings.github_repo,
            _secret(settings.github_access_token),
            enterprise_host=settings.github_enterprise_host,
            transport=transport,
        )
    if settings.git_server == "gitlab":
        return GitLabServer(
            settings.gitlab_host,
            settings.gitlab_repo,
            _secret(settings.gitlab_access_token),
            transport=transport,
        )
    if settings.git_server == "bitbucket":
        return BitbucketServer(
            settings.bitbucket_api_pr_endpoint,
            settings.bitbucket_user,
            _secret(settings.bitbucket_password),
            transport=transport,
        )
    raise UnknownGitServerError(f"unknown vcs host: {settings.git_server}")


__all__ = [
    "BitbucketServer",
    "GitHubServer",
    "GitLabServer",
    "GitServer",
    "PullRequestError",
    "UnknownGitServerError",
    "resolve_git_server",
]
