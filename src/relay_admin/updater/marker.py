"""Marker file recording the last applied revision.

Archive installs have no git metadata, so the revision they were built from
is persisted here (JSON, or a bare hash written by an install script).
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

from relay_admin.logging import get_logger
from relay_admin.updater.errors import ParseFailure
from relay_admin.updater.models import RevisionRef

log = get_logger("relay_admin.updater.marker")


class AppliedRevisionMarker:
    """Read and write the applied-revision marker file."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> RevisionRef | None:
        """Return the recorded revision, or None if absent or unreadable."""
        if not self._path.exists():
            return None
        try:
            raw = self._path.read_text(encoding="utf-8").strip()
            if not raw:
                return None
            if not raw.startswith("{"):
                return RevisionRef(sha=raw.split()[0])
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ParseFailure("marker is not a JSON object")
            return RevisionRef.from_dict(data)
        except (OSError, ValueError, ParseFailure) as exc:
            log.warning("applied_revision_unreadable", path=str(self._path), error=str(exc))
            return None

    def write(self, ref: RevisionRef) -> bool:
        """Atomically record *ref* as the applied revision."""
        payload = {**ref.to_dict(), "appliedAt": datetime.now(UTC).isoformat()}
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".tmp")
            tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            tmp_path.replace(self._path)
            return True
        except OSError:
            log.exception("applied_revision_write_failed", path=str(self._path))
            return False
