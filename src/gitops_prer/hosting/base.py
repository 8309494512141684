"""Common pull request interface for git hosting backends."""

from __future__ import annotations

from typing import Protocol

import httpx


class PullRequestError(RuntimeError):
    """Raised when a pull request cannot be created."""


class GitServer(Protocol):
    """A git hosting service that can open pull requests."""

    async def create_pr(self, source: str, target: str, title: str, body: str) -> None:
        ...


def raise_for_pr_response(response: httpx.Response, backend: str) -> None:
    if response.status_code >= 400:
        raise PullRequestError(
            f"{backend}: pull request creation failed with HTTP {response.status_code}: {response.text[:500]}"
        )


__all__ = ["GitServer", "PullRequestError", "raise_for_pr_response"]
