"""Shared utilities for the relay admin service."""

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import structlog

from relay_admin.logging import get_logger

log = get_logger("relay_admin.utils")


@asynccontextmanager
async def timed_operation(
    name: str,
    log: structlog.stdlib.BoundLogger | None = None,
    **extra: Any,
) -> AsyncIterator[dict[str, Any]]:
    """Context manager that measures elapsed time for an async operation.

    Usage::

        async with timed_operation("updater_fetch", log=log) as timing:
            await git.fetch()
        print(timing["elapsed_ms"])

    Args:
        name: A label for the operation (used in log messages).
        log: Optional structlog logger; if provided, an info-level message
             is emitted on exit.
        **extra: Additional key-value pairs forwarded to the log call.

    Yields:
        A mutable dict that will contain ``elapsed_ms`` after the block exits.
    """
    start = time.perf_counter()
    result: dict[str, Any] = {}
    try:
        yield result
    finally:
        result["elapsed_ms"] = round((time.perf_counter() - start) * 1000, 2)
        if log:
            log.info(name, duration_ms=result["elapsed_ms"], **extra)


def read_version_label(path: Path, default: str) -> str:
    """Read the deployed version label, falling back to *default*.

    An empty or unreadable file yields the default.
    """
    try:
        label = path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        log.warning("version_file_unreadable", path=str(path), error=str(exc))
        return default
    return label or default
