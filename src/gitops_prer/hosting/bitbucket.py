"""Bitbucket Server pull request creation."""

from __future__ import annotations

import logging

import httpx

from .base import PullRequestError, raise_for_pr_response

logger = logging.getLogger(__name__)


class BitbucketServer:
    """Open pull requests against a Bitbucket Server pull-requests endpoint."""

    def __init__(
        self,
        endpoint: str,
        user: str,
        password: str | None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = endpoint
        self._auth = httpx.BasicAuth(user, password or "") if user else None
        self._transport = transport

    async def create_pr(self, source: str, target: str, title: str, body: str) -> None:
        payload = {
            "title": title,
            "description": body,
            "state": "OPEN",
            "open": True,
            "closed": False,
            "fromRef": {"id": f"refs/heads/{source}"},
            "toRef": {"id": f"refs/heads/{target}"},
            "locked": False,
        }
        if not self.endpoint:
            raise PullRequestError("bitbucket: bitbucket_api_pr_endpoint is not configured")
        try:
            async with httpx.AsyncClient(auth=self._auth, transport=self._transport) as client:
                response = await client.post(self.endpoint, json=payload)
        except httpx.HTTPError as exc:
            raise PullRequestError(f"bitbucket: request to {self.endpoint} failed: {exc}") from exc

        if response.status_code == httpx.codes.CONFLICT:
            logger.info("Reusing existing PR", extra={"source": source, "target": target})
            return
        raise_for_pr_response(response, "bitbucket")
        logger.info("Created PR", extra={"source": source, "target": target})


__all__ = ["BitbucketServer"]
