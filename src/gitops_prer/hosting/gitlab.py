"""GitLab merge request creation."""

from __future__ import annotations

import logging
from urllib.parse import quote

import httpx

from .base import PullRequestError, raise_for_pr_response

logger = logging.getLogger(__name__)


class GitLabServer:
    """Open merge requests through the GitLab v4 API."""

    def __init__(
        self,
        host: str,
        repo: str,
        token: str | None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.host = host.rstrip("/")
        self.repo = repo
        self._token = token
        self._transport = transport

    async def create_pr(self, source: str, target: str, title: str, body: str) -> None:
        url = f"{self.host}/api/v4/projects/{quote(self.repo, safe='')}/merge_requests"
        payload = {
            "source_branch": source,
            "target_branch": target,
            "title": title,
            "description": body,
        }
        headers = {"PRIVATE-TOKEN": self._token} if self._token else {}
        try:
            async with httpx.AsyncClient(headers=headers, transport=self._transport) as client:
                response = await client.post(url, json=payload)
        except httpx.HTTPError as exc:
            raise PullRequestError(f"gitlab: request to {url} failed: {exc}") from exc

        if response.status_code == httpx.codes.CONFLICT:
            logger.info("Reusing existing MR", extra={"source": source, "target": target})
            return
        raise_for_pr_response(response, "gitlab")
        logger.info("Created MR: %s", response.json().get("web_url"))


__all__ = ["GitLabServer"]
