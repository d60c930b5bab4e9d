"""Deployment mode detection."""

from __future__ import annotations

from pathlib import Path

from relay_admin.logging import get_logger
from relay_admin.updater.git import GitRepository
from relay_admin.updater.models import DeploymentMode

log = get_logger("relay_admin.updater.classifier")


class DeploymentClassifier:
    """Decide which update strategy applies to this deployment.

    Runs on every check and execute, so it only does a path lookup and one
    short git probe.  It never raises: an inconclusive probe classifies the
    deployment as unmanaged, which offers no in-place update.
    """

    def __init__(
        self,
        git: GitRepository,
        container_marker: str | Path = "/.dockerenv",
        probe_timeout: float = 3,
    ) -> None:
        self._git = git
        self._container_marker = Path(container_marker)
        self._probe_timeout = probe_timeout

    async def classify(self) -> DeploymentMode:
        try:
            if self._container_marker.exists():
                return DeploymentMode.MANAGED
            if await self._git.is_work_tree(timeout=self._probe_timeout):
                return DeploymentMode.SOURCE_CONTROLLED
        except Exception as exc:
            log.warning("deployment_probe_failed", error=str(exc))
        return DeploymentMode.UNMANAGED
