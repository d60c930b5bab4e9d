"""Tests for relay_admin.updater.sources per-mode revision resolution."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, PropertyMock

import httpx
import pytest

from relay_admin.updater.errors import NetworkFailure, NotFound
from relay_admin.updater.github import GitHubClient
from relay_admin.updater.models import DeploymentMode, RevisionRef
from relay_admin.updater.process import CommandResult
from relay_admin.updater.sources import RevisionSource

LOCAL = RevisionRef(sha="abc1234", message="initial", timestamp="2026-01-01T00:00:00Z")
REMOTE = RevisionRef(sha="def5678", message="fix bug")


def _make_source(
    git: AsyncMock | None = None,
    github: AsyncMock | None = None,
    marker_ref: RevisionRef | None = None,
) -> tuple[RevisionSource, AsyncMock, AsyncMock, MagicMock]:
    git = git or AsyncMock()
    type(git).remote_tracking_ref = PropertyMock(return_value="refs/remotes/origin/main")
    github = github or AsyncMock()
    marker = MagicMock()
    marker.read.return_value = marker_ref
    return RevisionSource(git, github, marker, recent_limit=5), git, github, marker


class TestLocalRef:
    """Tests for RevisionSource.local_ref()."""

    async def test_source_controlled_uses_head(self) -> None:
        source, git, _, marker = _make_source()
        git.head.return_value = LOCAL

        assert await source.local_ref(DeploymentMode.SOURCE_CONTROLLED) == LOCAL
        marker.read.assert_not_called()

    async def test_unmanaged_uses_marker(self) -> None:
        source, git, _, _ = _make_source(marker_ref=LOCAL)

        assert await source.local_ref(DeploymentMode.UNMANAGED) == LOCAL
        git.head.assert_not_awaited()

    async def test_managed_has_no_local_ref(self) -> None:
        source, _, _, _ = _make_source(marker_ref=LOCAL)
        assert await source.local_ref(DeploymentMode.MANAGED) is None


class TestRemoteRef:
    """Tests for remote_ref() and remote_ref_via_sync()."""

    async def test_api_head(self) -> None:
        source, _, github, _ = _make_source()
        github.branch_head.return_value = REMOTE
        assert await source.remote_ref() == REMOTE

    @pytest.mark.parametrize("exc", [NetworkFailure("down"), NotFound("gone")])
    async def test_api_errors_yield_none(self, exc: Exception) -> None:
        source, _, github, _ = _make_source()
        github.branch_head.side_effect = exc
        assert await source.remote_ref() is None

    async def test_sync_fetches_then_reads_tracking_ref(self) -> None:
        source, git, _, _ = _make_source()
        git.fetch.return_value = CommandResult(args=("git",), returncode=0)
        git.remote_head.return_value = REMOTE

        assert await source.remote_ref_via_sync(DeploymentMode.SOURCE_CONTROLLED) == REMOTE
        git.fetch.assert_awaited_once()

    async def test_sync_failure_yields_none(self) -> None:
        source, git, _, _ = _make_source()
        git.fetch.return_value = CommandResult(args=("git",), returncode=128)

        assert await source.remote_ref_via_sync(DeploymentMode.SOURCE_CONTROLLED) is None
        git.remote_head.assert_not_awaited()

    async def test_sync_skipped_outside_checkout(self) -> None:
        source, git, _, _ = _make_source()
        assert await source.remote_ref_via_sync(DeploymentMode.UNMANAGED) is None
        git.fetch.assert_not_awaited()


class TestRecentChanges:
    """Tests for recent_changes()."""

    async def test_prefers_local_range_after_sync(self) -> None:
        source, git, github, _ = _make_source()
        git.log_range.return_value = [REMOTE]

        changes = await source.recent_changes(
            LOCAL, mode=DeploymentMode.SOURCE_CONTROLLED, synced=True
        )

        assert changes == [REMOTE]
        git.log_range.assert_awaited_once_with(
            LOCAL.sha, "refs/remotes/origin/main", limit=5
        )
        github.commits_since.assert_not_awaited()

    async def test_empty_range_falls_back_to_api(self) -> None:
        source, git, github, _ = _make_source()
        git.log_range.return_value = []
        github.commits_since.return_value = [REMOTE]

        changes = await source.recent_changes(
            LOCAL, mode=DeploymentMode.SOURCE_CONTROLLED, synced=True
        )

        assert changes == [REMOTE]
        github.commits_since.assert_awaited_once_with(LOCAL.timestamp, limit=5)

    async def test_falls_back_to_api(self) -> None:
        source, git, github, _ = _make_source()
        github.commits_since.return_value = [REMOTE]

        changes = await source.recent_changes(LOCAL, mode=DeploymentMode.UNMANAGED)

        assert changes == [REMOTE]
        github.commits_since.assert_awaited_once_with(LOCAL.timestamp, limit=5)
        git.log_range.assert_not_awaited()

    async def test_failure_yields_empty_list(self) -> None:
        source, _, github, _ = _make_source()
        github.commits_since.side_effect = NetworkFailure("down")
        assert await source.recent_changes(LOCAL, mode=DeploymentMode.UNMANAGED) == []

    async def test_malformed_api_commits_degrade(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/commits"):
                return httpx.Response(200, json=[{"sha": "def5678", "commit": "garbage"}])
            return httpx.Response(200, json={"sha": "def5678", "commit": {"author": "Dev"}})

        github = GitHubClient(
            "relay-service/relay-service", transport=httpx.MockTransport(handler)
        )
        source = RevisionSource(AsyncMock(), github, MagicMock(), recent_limit=5)

        assert await source.remote_ref() is None
        assert await source.recent_changes(LOCAL, mode=DeploymentMode.UNMANAGED) == []

    async def test_latest_release_propagates(self) -> None:
        source, _, github, _ = _make_source()
        github.latest_release.side_effect = NotFound("no releases")
        with pytest.raises(NotFound):
            await source.latest_release()
