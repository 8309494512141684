"""GitHub pull request creation."""

from __future__ import annotations

import logging

import httpx

from .base import PullRequestError, raise_for_pr_response

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"


class GitHubServer:
    """Open pull requests through the GitHub REST API."""

    def __init__(
        self,
        owner: str,
        repo: str,
        token: str | None,
        *,
        enterprise_host: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.owner = owner
        self.repo = repo
        self._token = token
        self.api_url = f"https://{enterprise_host}/api/v3" if enterprise_host else DEFAULT_API_URL
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def create_pr(self, source: str, target: str, title: str, body: str) -> None:
        payload = {
            "title": title,
            "head": source,
            "base": target,
            "body": body,
            "maintainer_can_modify": False,
            "draft": False,
        }
        url = f"{self.api_url}/repos/{self.owner}/{self.repo}/pulls"
        try:
            async with httpx.AsyncClient(headers=self._headers(), transport=self._transport) as client:
                response = await client.post(url, json=payload)
        except httpx.HTTPError as exc:
            raise PullRequestError(f"github: request to {url} failed: {exc}") from exc

        if response.status_code == httpx.codes.UNPROCESSABLE_ENTITY:
            logger.info("Reusing existing PR", extra={"source": source, "target": target})
            return
        raise_for_pr_response(response, "github")
        logger.info("Created PR: %s", response.json().get("html_url"))


__all__ = ["GitHubServer"]
