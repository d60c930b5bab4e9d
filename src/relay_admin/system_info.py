"""Process and runtime introspection for the system-info endpoint."""

from __future__ import annotations

import os
import platform
import time
from typing import Any

import psutil

from relay_admin.logging import get_logger
from relay_admin.updater.models import DeploymentMode

log = get_logger("relay_admin.system_info")

# Monotonic start time recorded when the module is first imported
_START_MONOTONIC = time.monotonic()


def uptime_seconds() -> int:
    return int(time.monotonic() - _START_MONOTONIC)


def memory_usage_mb() -> dict[str, float]:
    """Return resident and virtual memory of this process in MiB."""
    try:
        mem = psutil.Process().memory_info()
    except psutil.Error as exc:
        log.debug("memory_usage_unavailable", error=str(exc))
        return {"rss": 0.0, "vms": 0.0}
    return {
        "rss": round(mem.rss / (1024 * 1024), 1),
        "vms": round(mem.vms / (1024 * 1024), 1),
    }


def collect_system_info(version: str, mode: DeploymentMode) -> dict[str, Any]:
    return {
        "version": version,
        "method": mode.value,
        "isManaged": mode is DeploymentMode.MANAGED,
        "pythonVersion": platform.python_version(),
        "platform": platform.system().lower(),
        "uptime": uptime_seconds(),
        "memory": memory_usage_mb(),
        "pid": os.getpid(),
    }
