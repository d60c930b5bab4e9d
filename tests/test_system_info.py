"""Tests for relay_admin.system_info."""

from __future__ import annotations

import os
from unittest.mock import patch

import psutil

from relay_admin.system_info import collect_system_info, memory_usage_mb
from relay_admin.updater.models import DeploymentMode


class TestCollectSystemInfo:
    """Tests for collect_system_info()."""

    def test_fields(self) -> None:
        info = collect_system_info("1.2.0", DeploymentMode.MANAGED)

        assert info["version"] == "1.2.0"
        assert info["method"] == "managed"
        assert info["isManaged"] is True
        assert info["pid"] == os.getpid()
        assert info["uptime"] >= 0
        assert info["memory"]["rss"] > 0
        assert info["pythonVersion"]

    def test_not_managed(self) -> None:
        info = collect_system_info("1.0.0", DeploymentMode.SOURCE_CONTROLLED)
        assert info["isManaged"] is False
        assert info["method"] == "source_controlled"


class TestMemoryUsage:
    """Tests for memory_usage_mb()."""

    def test_psutil_error_yields_zeros(self) -> None:
        with patch("relay_admin.system_info.psutil.Process", side_effect=psutil.AccessDenied()):
            assert memory_usage_mb() == {"rss": 0.0, "vms": 0.0}
