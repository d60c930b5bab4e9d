"""Update availability checks.

Produces an :class:`UpdateVerdict` by reconciling the local and upstream
revisions for the classified deployment mode, memoized in a
:class:`VerdictCache`.  The check path degrades instead of raising: callers
always get a verdict, possibly stale or flagged with a warning.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from pathlib import Path

from relay_admin.constants import DEFAULT_VERSION, VERSION_CHECK_CACHE_KEY
from relay_admin.logging import get_logger
from relay_admin.updater.cache import CacheEntry, VerdictCache
from relay_admin.updater.classifier import DeploymentClassifier
from relay_admin.updater.errors import NetworkFailure, NotFound, ParseFailure
from relay_admin.updater.models import (
    DeploymentMode,
    ReleaseInfo,
    RevisionRef,
    UpdateVerdict,
    compute_has_update,
)
from relay_admin.updater.sources import RevisionSource
from relay_admin.updater.versioning import normalize_tag
from relay_admin.utils import read_version_label

log = get_logger("relay_admin.updater.checker")

NO_RELEASES_WARNING = "GitHub repository has no releases"
NETWORK_WARNING = "Using cached data due to network error"
IN_PROGRESS_WARNING = "An update is in progress; showing the last known status"

# A verdict superseded by an update is recomputed at most this many times
_REFRESH_ATTEMPTS = 2


class UpdateChecker:
    """Answer "is an update available" for this deployment."""

    def __init__(
        self,
        classifier: DeploymentClassifier,
        source: RevisionSource,
        cache: VerdictCache,
        version_path: str | Path,
        *,
        default_version: str = DEFAULT_VERSION,
        update_lock: asyncio.Lock | None = None,
        cache_key: str = VERSION_CHECK_CACHE_KEY,
    ) -> None:
        self._classifier = classifier
        self._source = source
        self._cache = cache
        self._version_path = Path(version_path)
        self._default_version = default_version
        self._update_lock = update_lock
        self._cache_key = cache_key

    def current_version(self) -> str:
        return read_version_label(self._version_path, self._default_version)

    async def check(self, force: bool = False) -> UpdateVerdict:
        """Return the current update verdict.

        Args:
            force: Skip the freshness cache and query upstream.
        """
        current = self.current_version()
        mode = await self._classifier.classify()

        if self._update_lock is not None and self._update_lock.locked():
            return await self._while_updating(mode, current)

        if not force:
            entry = await self._cache.get(self._cache_key)
            if entry is not None and self._cache.is_fresh(entry):
                cached = self._rehydrate(entry, current, mode)
                if cached is not None:
                    log.debug("update_check_cache_hit", method=mode.value)
                    return cached

        try:
            verdict = await self._refresh(mode, current)
        except NetworkFailure as exc:
            log.warning("update_check_network_failure", error=str(exc))
            return await self._stale_or_failed(mode, current, str(exc))
        except Exception as exc:
            log.exception("update_check_failed", method=mode.value)
            return self._failed(mode, current, str(exc) or type(exc).__name__)

        log.info(
            "update_check_complete",
            method=mode.value,
            has_update=verdict.has_update,
            current=verdict.current,
            latest=verdict.latest,
        )
        return verdict

    # ------------------------------------------------------------------
    # Computation
    # ------------------------------------------------------------------

    async def _refresh(self, mode: DeploymentMode, current: str) -> UpdateVerdict:
        """Compute a verdict and cache it.

        An update that completes while the computation is in flight
        invalidates the cache, and the verdict then describes the replaced
        code.  It is discarded and recomputed against the new working copy.
        """
        for attempt in range(1, _REFRESH_ATTEMPTS + 1):
            generation = self._cache.generation
            verdict = await self._compute(mode, current)
            stored = await self._cache.put(
                self._cache_key, verdict.to_cache_payload(), generation=generation
            )
            if stored:
                break
            log.info("update_check_superseded", attempt=attempt)
            current = self.current_version()
        return verdict

    async def _compute(self, mode: DeploymentMode, current: str) -> UpdateVerdict:
        local_ref = await self._source.local_ref(mode)

        remote_ref: RevisionRef | None = None
        synced = False
        if mode is DeploymentMode.SOURCE_CONTROLLED:
            remote_ref = await self._source.remote_ref_via_sync(mode)
            synced = remote_ref is not None
        if remote_ref is None and mode is not DeploymentMode.MANAGED:
            remote_ref = await self._source.remote_ref()

        release: ReleaseInfo | None = None
        warning: str | None = None
        try:
            release = await self._source.latest_release()
        except NotFound:
            log.info("update_check_no_releases")
            warning = NO_RELEASES_WARNING
        except (NetworkFailure, ParseFailure) as exc:
            # Without both refs the release tag is the only evidence left.
            if local_ref is None or remote_ref is None:
                raise NetworkFailure(str(exc)) from exc
            warning = f"Release information unavailable: {exc}"

        latest = normalize_tag(release.tag) if release else None
        has_update = compute_has_update(current, latest, local_ref, remote_ref)

        changes: tuple[RevisionRef, ...] = ()
        if has_update and local_ref is not None:
            fetched = await self._source.recent_changes(local_ref, mode=mode, synced=synced)
            changes = tuple(ref for ref in fetched if not ref.matches(local_ref))

        return UpdateVerdict.build(
            current=current,
            latest=latest,
            method=mode,
            local_ref=local_ref,
            remote_ref=remote_ref,
            change_summary=self._summarize(
                mode, current, latest, local_ref, remote_ref, changes, has_update
            ),
            recent_changes=changes,
            release=release,
            warning=warning,
        )

    @staticmethod
    def _summarize(
        mode: DeploymentMode,
        current: str,
        latest: str | None,
        local_ref: RevisionRef | None,
        remote_ref: RevisionRef | None,
        changes: tuple[RevisionRef, ...],
        has_update: bool,
    ) -> str:
        if not has_update:
            if latest is None and (local_ref is None or remote_ref is None):
                return "No releases found"
            return "Up to date"

        if local_ref is not None and remote_ref is not None:
            if not changes:
                summary = f"Upstream is at {remote_ref.short}, running {local_ref.short}"
            elif len(changes) == 1:
                summary = f"1 new commit: {changes[0].message}"
            else:
                summary = f"{len(changes)} new commits, latest: {changes[0].message}"
        else:
            summary = f"Version {latest} is available (running {current})"

        if mode is DeploymentMode.MANAGED:
            summary += "; update by pulling the new container image"
        return summary

    # ------------------------------------------------------------------
    # Degraded paths
    # ------------------------------------------------------------------

    def _rehydrate(
        self, entry: CacheEntry, current: str, mode: DeploymentMode
    ) -> UpdateVerdict | None:
        try:
            verdict = UpdateVerdict.from_cache_payload(entry.payload, current)
        except ParseFailure as exc:
            log.warning("update_check_cache_unusable", error=str(exc))
            return None
        if verdict.method is not mode:
            log.debug(
                "update_check_cache_mode_mismatch",
                cached=verdict.method.value,
                current=mode.value,
            )
            return None
        return verdict

    async def _stale_or_failed(
        self, mode: DeploymentMode, current: str, message: str
    ) -> UpdateVerdict:
        entry = await self._cache.get(self._cache_key)
        if entry is not None:
            cached = self._rehydrate(entry, current, mode)
            if cached is not None:
                return replace(cached, warning=NETWORK_WARNING)
        return self._failed(mode, current, message)

    async def _while_updating(self, mode: DeploymentMode, current: str) -> UpdateVerdict:
        entry = await self._cache.get(self._cache_key)
        if entry is not None:
            cached = self._rehydrate(entry, current, mode)
            if cached is not None:
                return replace(cached, warning=IN_PROGRESS_WARNING)
        return UpdateVerdict.build(
            current=current,
            latest=None,
            method=mode,
            change_summary="Update in progress",
            warning=IN_PROGRESS_WARNING,
        )

    @staticmethod
    def _failed(mode: DeploymentMode, current: str, message: str) -> UpdateVerdict:
        return UpdateVerdict.build(
            current=current,
            latest=None,
            method=mode,
            change_summary=f"Unable to check for updates: {message}",
            warning=message,
            error=True,
        )
