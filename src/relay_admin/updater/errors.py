"""Exceptions raised by the update orchestrator.

Every exception carries a machine-readable ``reason`` that the HTTP layer
forwards to clients unchanged.
"""

from __future__ import annotations

from typing import Any


class UpdaterError(Exception):
    """Base class for update orchestration failures."""

    reason = "update-failed"

    def __init__(
        self,
        message: str,
        *,
        reason: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        if reason is not None:
            self.reason = reason
        self.details = details or {}


class NetworkFailure(UpdaterError):
    """Upstream could not be reached (timeout, DNS, connection refused)."""

    reason = "network-failure"


class NotFound(UpdaterError):
    """Upstream has no release or branch for the configured repository."""

    reason = "not-found"


class ParseFailure(UpdaterError):
    """A cached or upstream payload was malformed."""

    reason = "parse-failure"


class PreconditionFailed(UpdaterError):
    """An update was requested on a deployment that cannot update in place."""

    reason = "not-source-controlled"


class UpdateInProgress(UpdaterError):
    """Another update currently holds the update lock."""

    reason = "update-in-progress"


class ExternalToolFailure(UpdaterError):
    """An external process exited non-zero, timed out or could not start."""

    reason = "tool-failed"

    def __init__(
        self,
        message: str,
        *,
        reason: str | None = None,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message, reason=reason)
        self.returncode = returncode
        self.stderr = stderr
