"""External process invocation with bounded timeouts.

All subprocess calls made by the updater go through :class:`CommandRunner`.
Commands are passed as argv lists (no shell) and every call site supplies a
timeout.  Outcomes are classified into :class:`CommandResult`; callers that
cannot proceed on failure use :meth:`CommandResult.raise_for_status`.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from relay_admin.logging import get_logger
from relay_admin.updater.errors import ExternalToolFailure

log = get_logger("relay_admin.updater.process")

# stderr kept in logs and errors
_STDERR_LIMIT = 500


@dataclass(frozen=True)
class CommandResult:
    """Captured outcome of one process invocation."""

    args: tuple[str, ...]
    returncode: int | None
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def command(self) -> str:
        return " ".join(self.args)

    def raise_for_status(self, reason: str | None = None) -> CommandResult:
        """Raise :class:`ExternalToolFailure` unless the command succeeded."""
        if self.ok:
            return self
        if self.timed_out:
            message = f"{self.command} timed out"
        elif self.returncode is None:
            message = f"{self.command} could not be started: {self.stderr}"
        else:
            message = f"{self.command} exited with {self.returncode}: {self.stderr.strip()}"
        raise ExternalToolFailure(
            message,
            reason=reason,
            returncode=self.returncode,
            stderr=self.stderr,
        )


class CommandRunner:
    """Run commands inside a fixed working directory."""

    def __init__(self, cwd: str | Path, default_timeout: float = 120) -> None:
        self._cwd = str(cwd)
        self._default_timeout = default_timeout

    async def run(self, args: Sequence[str], timeout: float | None = None) -> CommandResult:
        """Run *args* and return the captured result.  Never raises."""
        argv = tuple(args)
        limit = timeout if timeout is not None else self._default_timeout
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._cwd,
            )
        except OSError as exc:
            log.warning("command_start_failed", cmd=" ".join(argv), error=str(exc))
            return CommandResult(args=argv, returncode=None, stderr=str(exc))

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=limit)
        except TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
            log.warning("command_timeout", cmd=" ".join(argv), timeout=limit)
            return CommandResult(args=argv, returncode=proc.returncode, timed_out=True)

        result = CommandResult(
            args=argv,
            returncode=proc.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace")[:_STDERR_LIMIT],
        )
        if not result.ok:
            log.warning(
                "command_failed",
                cmd=result.command,
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return result
