"""Data model for update detection and execution."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from relay_admin.constants import RELEASE_BODY_MAX_LENGTH
from relay_admin.updater.errors import ParseFailure
from relay_admin.updater.versioning import compare_versions

SHORT_REF_LENGTH = 7


class DeploymentMode(Enum):
    """How the running deployment can be updated."""

    MANAGED = "managed"  # container image, updated by image replacement
    SOURCE_CONTROLLED = "source_controlled"  # git working copy
    UNMANAGED = "unmanaged"  # archive install, no VCS metadata


def refs_match(a: str, b: str) -> bool:
    """Return True if two refs name the same commit.

    Tolerates one side being an abbreviated hash of the other.
    """
    a = a.strip().lower()
    b = b.strip().lower()
    if not a or not b:
        return False
    return a.startswith(b) or b.startswith(a)


@dataclass(frozen=True)
class RevisionRef:
    """A point in upstream history plus optional commit metadata."""

    sha: str
    message: str = ""
    timestamp: str | None = None  # committer date, ISO-8601
    author: str = ""

    @property
    def short(self) -> str:
        return self.sha[:SHORT_REF_LENGTH]

    def matches(self, other: RevisionRef | str) -> bool:
        other_sha = other.sha if isinstance(other, RevisionRef) else other
        return refs_match(self.sha, other_sha)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ref": self.sha,
            "short": self.short,
            "summary": self.message,
            "timestamp": self.timestamp,
            "author": self.author,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RevisionRef:
        sha = data.get("ref")
        if not isinstance(sha, str) or not sha:
            raise ParseFailure("revision entry is missing 'ref'")
        return cls(
            sha=sha,
            message=str(data.get("summary") or ""),
            timestamp=data.get("timestamp"),
            author=str(data.get("author") or ""),
        )


@dataclass(frozen=True)
class ReleaseInfo:
    """Information about the latest published release."""

    tag: str
    name: str
    body: str = ""
    published_at: str = ""
    url: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "tag": self.tag,
            "name": self.name,
            "body": self.body[:RELEASE_BODY_MAX_LENGTH],
            "publishedAt": self.published_at,
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReleaseInfo:
        return cls(
            tag=str(data.get("tag") or ""),
            name=str(data.get("name") or ""),
            body=str(data.get("body") or ""),
            published_at=str(data.get("publishedAt") or ""),
            url=str(data.get("url") or ""),
        )


def compute_has_update(
    current: str,
    latest: str | None,
    local_ref: RevisionRef | None,
    remote_ref: RevisionRef | None,
) -> bool:
    """Decide whether an update is available.

    Two known refs are compared directly; otherwise the version labels are
    compared numerically.
    """
    if local_ref is not None and remote_ref is not None:
        return not local_ref.matches(remote_ref)
    if latest:
        return compare_versions(current, latest) < 0
    return False


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class UpdateVerdict:
    """Answer to "is an update available", with supporting evidence.

    Build instances with :meth:`build` (fresh computation) or
    :meth:`from_cache_payload` (rehydration); both derive ``has_update``
    from the refs and labels instead of trusting a stored flag.
    """

    current: str
    latest: str
    method: DeploymentMode
    has_update: bool
    local_ref: RevisionRef | None = None
    remote_ref: RevisionRef | None = None
    change_summary: str = ""
    recent_changes: tuple[RevisionRef, ...] = ()
    release: ReleaseInfo | None = None
    computed_at: str = field(default_factory=_now_iso)
    cached: bool = False
    warning: str | None = None
    error: bool = False

    @classmethod
    def build(
        cls,
        *,
        current: str,
        latest: str | None,
        method: DeploymentMode,
        local_ref: RevisionRef | None = None,
        remote_ref: RevisionRef | None = None,
        change_summary: str = "",
        recent_changes: tuple[RevisionRef, ...] = (),
        release: ReleaseInfo | None = None,
        computed_at: str | None = None,
        cached: bool = False,
        warning: str | None = None,
        error: bool = False,
    ) -> UpdateVerdict:
        return cls(
            current=current,
            latest=latest or current,
            method=method,
            has_update=compute_has_update(current, latest, local_ref, remote_ref),
            local_ref=local_ref,
            remote_ref=remote_ref,
            change_summary=change_summary,
            recent_changes=recent_changes,
            release=release,
            computed_at=computed_at or _now_iso(),
            cached=cached,
            warning=warning,
            error=error,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the check-updates response."""
        data: dict[str, Any] = {
            "current": self.current,
            "latest": self.latest,
            "hasUpdate": self.has_update,
            "method": self.method.value,
            "isManaged": self.method is DeploymentMode.MANAGED,
            "isSourceControlled": self.method is DeploymentMode.SOURCE_CONTROLLED,
            "localRef": self.local_ref.sha if self.local_ref else None,
            "remoteRef": self.remote_ref.sha if self.remote_ref else None,
            "releaseInfo": self.release.to_dict() if self.release else None,
            "changeSummary": self.change_summary,
            "recentChanges": [ref.to_dict() for ref in self.recent_changes],
            "computedAt": self.computed_at,
            "cached": self.cached,
        }
        if self.warning:
            data["warning"] = self.warning
        if self.error:
            data["error"] = True
        return data

    def to_cache_payload(self) -> dict[str, Any]:
        """Serialize for the verdict cache.

        ``hasUpdate`` is deliberately absent: it is always recomputed on read.
        """
        return {
            "current": self.current,
            "latest": self.latest,
            "method": self.method.value,
            "localRef": self.local_ref.to_dict() if self.local_ref else None,
            "remoteRef": self.remote_ref.to_dict() if self.remote_ref else None,
            "releaseInfo": self.release.to_dict() if self.release else None,
            "changeSummary": self.change_summary,
            "recentChanges": [ref.to_dict() for ref in self.recent_changes],
            "computedAt": self.computed_at,
        }

    @classmethod
    def from_cache_payload(cls, payload: dict[str, Any], current: str) -> UpdateVerdict:
        """Rehydrate a cached verdict, recomputing ``has_update``.

        Raises:
            ParseFailure: If the payload does not have the expected shape.
        """
        try:
            method = DeploymentMode(payload["method"])
            latest = payload.get("latest")
            local_raw = payload.get("localRef")
            remote_raw = payload.get("remoteRef")
            release_raw = payload.get("releaseInfo")
            changes_raw = payload.get("recentChanges") or []
            return cls.build(
                current=current,
                latest=str(latest) if latest else None,
                method=method,
                local_ref=RevisionRef.from_dict(local_raw) if local_raw else None,
                remote_ref=RevisionRef.from_dict(remote_raw) if remote_raw else None,
                change_summary=str(payload.get("changeSummary") or ""),
                recent_changes=tuple(RevisionRef.from_dict(c) for c in changes_raw),
                release=ReleaseInfo.from_dict(release_raw) if release_raw else None,
                computed_at=str(payload["computedAt"]),
                cached=True,
            )
        except ParseFailure:
            raise
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ParseFailure(f"malformed cached verdict: {exc}") from exc


@dataclass
class StepEntry:
    """One line of the update step report."""

    description: str
    succeeded: bool

    def to_dict(self) -> dict[str, Any]:
        return {"description": self.description, "succeeded": self.succeeded}


@dataclass
class UpdateOutcome:
    """Result of a completed execute call."""

    updated: bool
    previous_ref: str | None = None
    current_ref: str | None = None
    steps: list[StepEntry] = field(default_factory=list)
    need_restart: bool = False

    def record(self, description: str, succeeded: bool = True) -> None:
        self.steps.append(StepEntry(description=description, succeeded=succeeded))

    def to_dict(self) -> dict[str, Any]:
        return {
            "updated": self.updated,
            "previousRef": self.previous_ref,
            "currentRef": self.current_ref,
            "steps": [step.to_dict() for step in self.steps],
            "needRestart": self.need_restart,
        }
