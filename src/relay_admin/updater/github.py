"""GitHub REST API client for upstream revision and release lookups."""

from __future__ import annotations

from typing import Any

import httpx

from relay_admin import __version__
from relay_admin.logging import get_logger
from relay_admin.updater.errors import NetworkFailure, NotFound, ParseFailure
from relay_admin.updater.models import ReleaseInfo, RevisionRef

log = get_logger("relay_admin.updater.github")


def _commit_to_ref(data: Any) -> RevisionRef:
    """Convert a GitHub commit object into a ``RevisionRef``."""
    if not isinstance(data, dict) or not isinstance(data.get("sha"), str):
        raise ParseFailure("commit payload has no sha")
    commit = data.get("commit") or {}
    if not isinstance(commit, dict):
        raise ParseFailure("commit payload has no commit object")
    author = commit.get("author") or {}
    committer = commit.get("committer") or author
    if not isinstance(author, dict) or not isinstance(committer, dict):
        raise ParseFailure("commit payload has malformed author or committer")
    message = str(commit.get("message") or "")
    date = committer.get("date")
    return RevisionRef(
        sha=data["sha"],
        message=message.split("\n", 1)[0],
        author=str(author.get("name") or ""),
        timestamp=date if isinstance(date, str) else None,
    )


class GitHubClient:
    """Async client for the handful of GitHub endpoints the updater needs.

    Every method raises :class:`NotFound` for a 404, :class:`NetworkFailure`
    for transport errors and non-2xx statuses, and :class:`ParseFailure`
    for unexpected payloads.
    """

    def __init__(
        self,
        repo: str,
        *,
        branch: str = "main",
        token: str | None = None,
        api_url: str = "https://api.github.com",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not repo or "/" not in repo:
            raise ValueError("repo must be in 'owner/name' form")
        self._repo = repo
        self._branch = branch
        self._token = token
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": f"relay-admin/{__version__}",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        url = f"{self._api_url}/repos/{self._repo}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.get(url, headers=self._headers(), params=params)
        except httpx.RequestError as exc:
            log.debug("github_request_error", path=path, error=str(exc))
            raise NetworkFailure(f"GitHub request failed: {exc}") from exc

        if resp.status_code == 404:
            raise NotFound(f"GitHub returned 404 for {path}")
        if resp.status_code != 200:
            raise NetworkFailure(f"GitHub API error {resp.status_code} for {path}")

        try:
            return resp.json()
        except ValueError as exc:
            raise ParseFailure(f"GitHub returned invalid JSON for {path}") from exc

    async def latest_release(self) -> ReleaseInfo:
        """Return the latest published release."""
        data = await self._get("/releases/latest")
        if not isinstance(data, dict) or not isinstance(data.get("tag_name"), str):
            raise ParseFailure("release payload has no tag_name")
        return ReleaseInfo(
            tag=data["tag_name"],
            name=str(data.get("name") or data["tag_name"]),
            body=str(data.get("body") or ""),
            published_at=str(data.get("published_at") or ""),
            url=str(data.get("html_url") or ""),
        )

    async def branch_head(self) -> RevisionRef:
        """Return the tip commit of the configured branch."""
        data = await self._get(f"/commits/{self._branch}")
        return _commit_to_ref(data)

    async def commits_since(self, since: str | None, limit: int = 20) -> list[RevisionRef]:
        """Return up to *limit* branch commits newer than *since*, newest first."""
        params: dict[str, Any] = {"sha": self._branch, "per_page": limit}
        if since:
            params["since"] = since
        data = await self._get("/commits", params=params)
        if not isinstance(data, list):
            raise ParseFailure("commit list payload is not a list")
        return [_commit_to_ref(item) for item in data[:limit]]

