"""Process lifecycle management: delayed self-termination.

The restart endpoint acknowledges first and terminates afterwards, so the
response reaches the client before the process goes away.  Termination is
an explicitly owned timer so tests can arm and cancel it without killing
the test process.
"""

from __future__ import annotations

import asyncio
import os
import signal
from collections.abc import Callable

from relay_admin.logging import get_logger

log = get_logger("relay_admin.lifecycle")


def terminate_self() -> None:
    """Ask the running server to shut down.

    SIGTERM triggers the graceful shutdown path in ``main``; the process
    exits with status 0 and the supervisor (systemd, pm2, Docker) starts it
    again.
    """
    os.kill(os.getpid(), signal.SIGTERM)


class RestartScheduler:
    """Own a single pending restart timer."""

    def __init__(self, terminate: Callable[[], None] = terminate_self) -> None:
        self._terminate = terminate
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None and not self._handle.cancelled()

    def schedule(self, delay: float = 1.0) -> bool:
        """Arm the restart timer.

        Returns False if a restart is already pending.
        """
        if self.pending:
            return False
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(delay, self._fire)
        log.info("restart_scheduled", delay_seconds=delay)
        return True

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
            log.info("restart_cancelled")

    def _fire(self) -> None:
        self._handle = None
        log.info("restarting_now")
        self._terminate()
