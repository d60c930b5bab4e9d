"""Admin HTTP API (aiohttp).

Endpoints:
    GET  /health                 liveness (no auth)
    GET  /admin/check-updates    update verdict (``?force=1`` bypasses the cache)
    POST /admin/perform-update   in-place update of a git checkout
    POST /admin/restart-service  acknowledge, then terminate after a delay
    GET  /admin/system-info      version, deployment mode, uptime, memory, pid

When a secret is configured every ``/admin`` route requires it in the
``X-Admin-Secret`` header.
"""

from __future__ import annotations

import asyncio
import hmac
from typing import Any

from aiohttp import web

from relay_admin.config import Settings
from relay_admin.lifecycle import RestartScheduler
from relay_admin.logging import get_logger
from relay_admin.store import KeyValueStore, MemoryStore
from relay_admin.system_info import collect_system_info
from relay_admin.updater.cache import VerdictCache
from relay_admin.updater.checker import UpdateChecker
from relay_admin.updater.classifier import DeploymentClassifier
from relay_admin.updater.errors import (
    ExternalToolFailure,
    PreconditionFailed,
    UpdateInProgress,
    UpdaterError,
)
from relay_admin.updater.executor import ADVANCE_FAILED, SYNC_FAILED, UpdateExecutor
from relay_admin.updater.git import GitRepository
from relay_admin.updater.github import GitHubClient
from relay_admin.updater.marker import AppliedRevisionMarker
from relay_admin.updater.models import DeploymentMode
from relay_admin.updater.process import CommandRunner
from relay_admin.updater.sources import RevisionSource

log = get_logger("relay_admin.server")

ADMIN_SECRET_HEADER = "X-Admin-Secret"

CHECKER = web.AppKey("checker", UpdateChecker)
EXECUTOR = web.AppKey("executor", UpdateExecutor)
CLASSIFIER = web.AppKey("classifier", DeploymentClassifier)
RESTARTER = web.AppKey("restarter", RestartScheduler)
SECRET = web.AppKey("secret", str)
RESTART_DELAY = web.AppKey("restart_delay", float)

# Commands an operator runs on the container host to update a managed deployment
MANAGED_UPDATE_COMMANDS = [
    "docker compose pull",
    "docker compose up -d",
]

_ERROR_STATUS = {
    PreconditionFailed.reason: 400,
    UpdateInProgress.reason: 409,
    SYNC_FAILED: 502,
    ADVANCE_FAILED: 500,
}


def validate_secret(provided: str | None, expected: str) -> bool:
    """Constant-time comparison of the provided secret against the expected one."""
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


def _error(status: int, reason: str, message: str, **extra: Any) -> web.Response:
    body: dict[str, Any] = {"success": False, "error": reason, "message": message}
    body.update(extra)
    return web.json_response(body, status=status)


@web.middleware
async def auth_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
    secret = request.app[SECRET]
    if secret and request.path.startswith("/admin"):
        if not validate_secret(request.headers.get(ADMIN_SECRET_HEADER), secret):
            log.warning("admin_auth_rejected", path=request.path)
            return _error(401, "unauthorized", "Missing or invalid admin secret")
    return await handler(request)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def handle_health(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok"})


async def handle_check_updates(request: web.Request) -> web.Response:
    force = request.query.get("force", "").lower() in ("1", "true", "yes")
    verdict = await request.app[CHECKER].check(force=force)
    return web.json_response({"success": True, "data": verdict.to_dict()})


async def handle_perform_update(request: web.Request) -> web.Response:
    log.info("perform_update_requested")
    try:
        outcome = await request.app[EXECUTOR].execute()
    except PreconditionFailed as exc:
        extra: dict[str, Any] = {"method": exc.details.get("method")}
        if exc.details.get("method") == DeploymentMode.MANAGED.value:
            extra["isManaged"] = True
            extra["commands"] = MANAGED_UPDATE_COMMANDS
        return _error(400, exc.reason, str(exc), **extra)
    except (UpdateInProgress, ExternalToolFailure) as exc:
        log.warning("perform_update_failed", reason=exc.reason, error=str(exc))
        return _error(_ERROR_STATUS.get(exc.reason, 500), exc.reason, str(exc))
    except UpdaterError as exc:
        log.error("perform_update_failed", reason=exc.reason, error=str(exc))
        return _error(500, exc.reason, str(exc))
    except Exception as exc:
        log.exception("perform_update_unexpected_error")
        return _error(500, "update-failed", str(exc) or type(exc).__name__)

    message = (
        "Update complete; restart the service to load it"
        if outcome.updated
        else "Already up to date"
    )
    return web.json_response({"success": True, "message": message, "data": outcome.to_dict()})


async def handle_restart_service(request: web.Request) -> web.Response:
    delay = request.app[RESTART_DELAY]
    scheduled = request.app[RESTARTER].schedule(delay)
    log.info("restart_requested", scheduled=scheduled)
    return web.json_response(
        {
            "success": True,
            "message": "Service is restarting",
            "data": {"scheduled": scheduled, "delaySeconds": delay},
        }
    )


async def handle_system_info(request: web.Request) -> web.Response:
    mode = await request.app[CLASSIFIER].classify()
    version = request.app[CHECKER].current_version()
    return web.json_response({"success": True, "data": collect_system_info(version, mode)})


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def create_app(
    *,
    checker: UpdateChecker,
    executor: UpdateExecutor,
    classifier: DeploymentClassifier,
    restarter: RestartScheduler,
    secret: str = "",
    restart_delay: float = 1.0,
) -> web.Application:
    """Create the aiohttp application with all admin routes."""
    app = web.Application(middlewares=[auth_middleware])
    app[CHECKER] = checker
    app[EXECUTOR] = executor
    app[CLASSIFIER] = classifier
    app[RESTARTER] = restarter
    app[SECRET] = secret
    app[RESTART_DELAY] = restart_delay

    app.router.add_get("/health", handle_health)
    app.router.add_get("/admin/check-updates", handle_check_updates)
    app.router.add_post("/admin/perform-update", handle_perform_update)
    app.router.add_post("/admin/restart-service", handle_restart_service)
    app.router.add_get("/admin/system-info", handle_system_info)
    return app


def build_app(
    settings: Settings,
    *,
    store: KeyValueStore | None = None,
    restarter: RestartScheduler | None = None,
) -> web.Application:
    """Wire the update orchestrator from settings and return the app."""
    project_dir = settings.project_path
    runner = CommandRunner(project_dir, default_timeout=settings.git_timeout)
    git = GitRepository(
        runner,
        remote=settings.update_remote,
        branch=settings.update_branch,
        timeout=settings.git_timeout,
        fetch_timeout=settings.fetch_timeout,
    )
    github = GitHubClient(
        settings.github_repo,
        branch=settings.update_branch,
        token=settings.github_token.get_secret_value() if settings.github_token else None,
        api_url=settings.github_api_url,
        timeout=settings.github_timeout,
    )
    marker = AppliedRevisionMarker(settings.applied_revision_file)
    cache = VerdictCache(
        store or MemoryStore(),
        ttl_seconds=settings.check_cache_ttl,
        retention_seconds=settings.check_cache_retention,
    )
    classifier = DeploymentClassifier(
        git,
        container_marker=settings.container_marker_path,
        probe_timeout=settings.probe_timeout,
    )
    update_lock = asyncio.Lock()

    checker = UpdateChecker(
        classifier,
        RevisionSource(git, github, marker, recent_limit=settings.recent_changes_limit),
        cache,
        settings.version_path,
        default_version=settings.default_version,
        update_lock=update_lock,
    )
    executor = UpdateExecutor(
        classifier,
        git,
        runner,
        cache,
        marker,
        remote=settings.update_remote,
        branch=settings.update_branch,
        install_command=settings.install_command,
        build_command=settings.build_command,
        dependency_manifests=settings.dependency_manifests,
        asset_paths=settings.asset_paths,
        install_timeout=settings.install_timeout,
        build_timeout=settings.build_timeout,
        lock=update_lock,
    )
    return create_app(
        checker=checker,
        executor=executor,
        classifier=classifier,
        restarter=restarter or RestartScheduler(),
        secret=settings.admin_secret.get_secret_value() if settings.admin_secret else "",
        restart_delay=settings.restart_delay,
    )


class AdminServer:
    """Run the admin application on a TCP site."""

    def __init__(self, app: web.Application, host: str = "0.0.0.0", port: int = 3000) -> None:
        self._app = app
        self._host = host
        self._port = port
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()
        log.info("admin_server_started", host=self._host, port=self._port)

    async def stop(self) -> None:
        if self._runner is None:
            return
        await self._runner.cleanup()
        self._runner = None
        log.info("admin_server_stopped")
