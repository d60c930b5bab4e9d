"""In-place update of a git checkout.

Lifecycle:
1. Precheck: refuse anything but a git working copy
2. Stash local modifications (best effort)
3. Fetch the tracked branch (fatal on failure)
4. Compare HEAD with the fetched tip; stop if already current
5. Hard-reset the working copy to the fetched tip (fatal on failure)
6. Reinstall dependencies if a manifest changed (best effort)
7. Rebuild web assets if asset sources changed (best effort)
8. Invalidate the cached verdict and record the applied revision

The process is never restarted from here; the caller decides when to.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from relay_admin.constants import VERSION_CHECK_CACHE_KEY
from relay_admin.logging import get_logger
from relay_admin.updater.cache import VerdictCache
from relay_admin.updater.classifier import DeploymentClassifier
from relay_admin.updater.errors import (
    ExternalToolFailure,
    PreconditionFailed,
    UpdateInProgress,
)
from relay_admin.updater.git import GitRepository
from relay_admin.updater.marker import AppliedRevisionMarker
from relay_admin.updater.models import DeploymentMode, UpdateOutcome
from relay_admin.updater.process import CommandRunner
from relay_admin.utils import timed_operation

log = get_logger("relay_admin.updater.executor")

SYNC_FAILED = "sync-failed"
ADVANCE_FAILED = "advance-failed"


def touches(paths: Sequence[str] | None, patterns: Sequence[str]) -> bool:
    """Return True if any changed path matches one of *patterns*.

    A pattern ending in ``/`` matches everything below that directory; any
    other pattern matches a file of that name at any depth.  Unknown change
    sets (``None``) count as a match.
    """
    if paths is None:
        return True
    for path in paths:
        for pattern in patterns:
            if pattern.endswith("/"):
                if path.startswith(pattern):
                    return True
            elif path == pattern or path.endswith(f"/{pattern}"):
                return True
    return False


class UpdateExecutor:
    """Advance a git deployment to the upstream branch tip."""

    def __init__(
        self,
        classifier: DeploymentClassifier,
        git: GitRepository,
        runner: CommandRunner,
        cache: VerdictCache,
        marker: AppliedRevisionMarker,
        *,
        remote: str = "origin",
        branch: str = "main",
        install_command: Sequence[str] = ("pip", "install", "-e", "."),
        build_command: Sequence[str] = ("npm", "run", "build:web"),
        dependency_manifests: Sequence[str] = ("pyproject.toml", "requirements.txt"),
        asset_paths: Sequence[str] = ("web/",),
        install_timeout: float = 300,
        build_timeout: float = 600,
        lock: asyncio.Lock | None = None,
        cache_key: str = VERSION_CHECK_CACHE_KEY,
    ) -> None:
        self._classifier = classifier
        self._git = git
        self._runner = runner
        self._cache = cache
        self._marker = marker
        self._remote = remote
        self._branch = branch
        self._install_command = tuple(install_command)
        self._build_command = tuple(build_command)
        self._dependency_manifests = tuple(dependency_manifests)
        self._asset_paths = tuple(asset_paths)
        self._install_timeout = install_timeout
        self._build_timeout = build_timeout
        self._lock = lock or asyncio.Lock()
        self._cache_key = cache_key

    @property
    def is_busy(self) -> bool:
        return self._lock.locked()

    async def execute(self) -> UpdateOutcome:
        """Run the update.

        Raises:
            UpdateInProgress: Another execute holds the lock.
            PreconditionFailed: The deployment is not a git checkout.
            ExternalToolFailure: Fetch (``sync-failed``) or reset
                (``advance-failed``) failed.
        """
        if self._lock.locked():
            raise UpdateInProgress("An update is already in progress")

        async with self._lock:
            async with timed_operation("update_execute", log=log, branch=self._branch):
                return await self._do_execute()

    async def _do_execute(self) -> UpdateOutcome:
        mode = await self._classifier.classify()
        if mode is not DeploymentMode.SOURCE_CONTROLLED:
            raise PreconditionFailed(
                f"In-place updates require a git checkout (deployment is {mode.value})",
                details={"method": mode.value},
            )

        outcome = UpdateOutcome(updated=False)
        log.info("update_started", remote=self._remote, branch=self._branch)

        await self._stash_local_changes(outcome)

        fetch = await self._git.fetch()
        fetch.raise_for_status(reason=SYNC_FAILED)
        outcome.record(f"Fetched {self._remote}/{self._branch}")

        local = await self._git.head()
        remote = await self._git.remote_head()
        if local is None or remote is None:
            raise ExternalToolFailure(
                "Could not resolve local or remote revision after fetch", reason=SYNC_FAILED
            )
        outcome.previous_ref = local.sha
        outcome.current_ref = local.sha

        if local.matches(remote):
            outcome.record("Already up to date")
            log.info("update_not_needed", ref=local.short)
            return outcome

        reset = await self._git.reset_hard(remote.sha)
        reset.raise_for_status(reason=ADVANCE_FAILED)
        outcome.record(f"Advanced {local.short} -> {remote.short}")
        outcome.current_ref = remote.sha
        outcome.updated = True

        changed = await self._git.changed_paths(local.sha, remote.sha)
        if changed is None:
            log.warning("update_changed_paths_unknown")

        await self._refresh_dependencies(outcome, changed)
        await self._rebuild_assets(outcome, changed)

        await self._cache.invalidate(self._cache_key)
        outcome.record("Cleared cached update status")
        if self._marker.write(remote):
            outcome.record("Recorded applied revision")
        else:
            outcome.record("Recording applied revision failed", succeeded=False)

        outcome.need_restart = True
        log.info(
            "update_applied",
            previous=local.short,
            current=remote.short,
            warnings=sum(1 for step in outcome.steps if not step.succeeded),
        )
        return outcome

    # ------------------------------------------------------------------
    # Best-effort steps
    # ------------------------------------------------------------------

    async def _stash_local_changes(self, outcome: UpdateOutcome) -> None:
        dirty = await self._git.has_local_changes()
        if dirty is False:
            return
        if dirty is None:
            log.warning("update_status_unknown")
            outcome.record("Checking for local modifications failed", succeeded=False)
            return
        result = await self._git.stash()
        if result.ok:
            outcome.record("Stashed local modifications")
        else:
            log.warning("update_stash_failed", stderr=result.stderr)
            outcome.record("Stashing local modifications failed", succeeded=False)

    async def _refresh_dependencies(
        self, outcome: UpdateOutcome, changed: Sequence[str] | None
    ) -> None:
        if not self._install_command:
            return
        if not touches(changed, self._dependency_manifests):
            outcome.record("Dependencies unchanged")
            return
        result = await self._runner.run(self._install_command, timeout=self._install_timeout)
        if result.ok:
            outcome.record("Reinstalled dependencies")
        else:
            log.warning("update_dependency_install_failed", timed_out=result.timed_out)
            outcome.record("Reinstalling dependencies failed", succeeded=False)

    async def _rebuild_assets(self, outcome: UpdateOutcome, changed: Sequence[str] | None) -> None:
        if not self._build_command:
            return
        if not touches(changed, self._asset_paths):
            outcome.record("Web assets unchanged")
            return
        result = await self._runner.run(self._build_command, timeout=self._build_timeout)
        if result.ok:
            outcome.record("Rebuilt web assets")
        else:
            log.warning("update_asset_build_failed", timed_out=result.timed_out)
            outcome.record("Rebuilding web assets failed", succeeded=False)
