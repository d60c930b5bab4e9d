"""Unit tests for the applied-revision marker file."""

import json

from relay_admin.updater.marker import AppliedRevisionMarker
from relay_admin.updater.models import RevisionRef


class TestAppliedRevisionMarker:
    """Tests for AppliedRevisionMarker read/write."""

    def test_missing_file(self, tmp_path):
        assert AppliedRevisionMarker(tmp_path / "missing").read() is None

    def test_write_then_read(self, tmp_path):
        marker = AppliedRevisionMarker(tmp_path / "data" / ".applied-revision")
        ref = RevisionRef(sha="def5678", message="fix bug", timestamp="2026-01-02T00:00:00Z")

        assert marker.write(ref) is True

        stored = json.loads(marker.path.read_text(encoding="utf-8"))
        assert stored["ref"] == "def5678"
        assert "appliedAt" in stored
        assert not marker.path.with_suffix(".tmp").exists()

        loaded = marker.read()
        assert loaded is not None
        assert loaded.sha == "def5678"
        assert loaded.message == "fix bug"

    def test_bare_hash(self, tmp_path):
        path = tmp_path / ".applied-revision"
        path.write_text("abc1234\n", encoding="utf-8")
        ref = AppliedRevisionMarker(path).read()
        assert ref is not None and ref.sha == "abc1234"

    def test_corrupt_json(self, tmp_path):
        path = tmp_path / ".applied-revision"
        path.write_text("{not json", encoding="utf-8")
        assert AppliedRevisionMarker(path).read() is None

    def test_json_without_ref(self, tmp_path):
        path = tmp_path / ".applied-revision"
        path.write_text('{"summary": "x"}', encoding="utf-8")
        assert AppliedRevisionMarker(path).read() is None

    def test_write_failure_returns_false(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        marker = AppliedRevisionMarker(blocker / "nested" / ".applied-revision")
        assert marker.write(RevisionRef(sha="abc")) is False
