"""Where current and latest revisions come from, per deployment mode.

The three deployment modes need three different answers to "what is
running" and "what is upstream", but every answer is a ``RevisionRef`` so
the checker only dispatches once.
"""

from __future__ import annotations

from relay_admin.logging import get_logger
from relay_admin.updater.errors import UpdaterError
from relay_admin.updater.git import GitRepository
from relay_admin.updater.github import GitHubClient
from relay_admin.updater.marker import AppliedRevisionMarker
from relay_admin.updater.models import DeploymentMode, ReleaseInfo, RevisionRef

log = get_logger("relay_admin.updater.sources")


class RevisionSource:
    """Resolve local and remote revisions for a deployment mode."""

    def __init__(
        self,
        git: GitRepository,
        github: GitHubClient,
        marker: AppliedRevisionMarker,
        recent_limit: int = 20,
    ) -> None:
        self._git = git
        self._github = github
        self._marker = marker
        self._recent_limit = recent_limit

    async def local_ref(self, mode: DeploymentMode) -> RevisionRef | None:
        """Return the revision the deployment is running, if knowable."""
        if mode is DeploymentMode.SOURCE_CONTROLLED:
            ref = await self._git.head()
            if ref is None:
                log.warning("local_ref_unavailable", method=mode.value)
            return ref
        if mode is DeploymentMode.UNMANAGED:
            return self._marker.read()
        return None

    async def remote_ref(self) -> RevisionRef | None:
        """Return the upstream branch tip from the hosted API.

        Network errors, non-2xx statuses and malformed payloads all yield
        None.
        """
        try:
            return await self._github.branch_head()
        except UpdaterError as exc:
            log.warning("remote_ref_unavailable", reason=exc.reason, error=str(exc))
            return None

    async def remote_ref_via_sync(self, mode: DeploymentMode) -> RevisionRef | None:
        """Fetch the tracked branch and return the remote-tracking tip.

        Only meaningful for git checkouts; reflects exactly what an update
        would advance to.
        """
        if mode is not DeploymentMode.SOURCE_CONTROLLED:
            return None
        result = await self._git.fetch()
        if not result.ok:
            log.warning("remote_sync_failed", timed_out=result.timed_out)
            return None
        return await self._git.remote_head()

    async def recent_changes(
        self,
        local_ref: RevisionRef,
        *,
        mode: DeploymentMode,
        synced: bool = False,
    ) -> list[RevisionRef]:
        """Return upstream commits the deployment does not have yet, newest first.

        After a sync the local history answers exactly (``local..tracking``);
        otherwise the API lists branch commits since the local ref's
        committer date.  Best effort: returns an empty list on any failure.
        """
        if mode is DeploymentMode.SOURCE_CONTROLLED and synced:
            changes = await self._git.log_range(
                local_ref.sha, self._git.remote_tracking_ref, limit=self._recent_limit
            )
            if changes:
                return changes
        try:
            return await self._github.commits_since(
                local_ref.timestamp, limit=self._recent_limit
            )
        except UpdaterError as exc:
            log.warning("recent_changes_unavailable", reason=exc.reason, error=str(exc))
            return []

    async def latest_release(self) -> ReleaseInfo:
        """Return the latest published release.

        Unlike the ref lookups this propagates ``NotFound`` and
        ``NetworkFailure`` so the checker can tell "no releases" apart from
        "upstream unreachable".
        """
        return await self._github.latest_release()
