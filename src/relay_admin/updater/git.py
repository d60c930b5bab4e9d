"""Local git working copy inspection and mutation."""

from __future__ import annotations

from datetime import UTC, datetime

from relay_admin.logging import get_logger
from relay_admin.updater.models import RevisionRef
from relay_admin.updater.process import CommandResult, CommandRunner

log = get_logger("relay_admin.updater.git")

# hash, subject, author name, committer date (strict ISO-8601)
_LOG_FORMAT = "--format=%H%x1f%s%x1f%an%x1f%cI"
_FIELD_SEP = "\x1f"


def parse_log(output: str) -> list[RevisionRef]:
    """Parse ``git log`` output produced with the module's log format."""
    refs: list[RevisionRef] = []
    for line in output.splitlines():
        parts = line.split(_FIELD_SEP)
        if len(parts) != 4 or not parts[0]:
            continue
        sha, subject, author, date = parts
        refs.append(RevisionRef(sha=sha, message=subject, author=author, timestamp=date or None))
    return refs


class GitRepository:
    """Thin wrapper around the git CLI for one working copy."""

    def __init__(
        self,
        runner: CommandRunner,
        remote: str = "origin",
        branch: str = "main",
        timeout: float = 15,
        fetch_timeout: float = 60,
    ) -> None:
        self._runner = runner
        self._remote = remote
        self._branch = branch
        self._timeout = timeout
        self._fetch_timeout = fetch_timeout

    @property
    def remote_tracking_ref(self) -> str:
        return f"refs/remotes/{self._remote}/{self._branch}"

    async def _git(self, *args: str, timeout: float | None = None) -> CommandResult:
        return await self._runner.run(("git", *args), timeout=timeout or self._timeout)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    async def is_work_tree(self, timeout: float = 3) -> bool:
        result = await self._git("rev-parse", "--is-inside-work-tree", timeout=timeout)
        return result.ok and result.stdout.strip() == "true"

    async def describe(self, rev: str) -> RevisionRef | None:
        """Return the commit *rev* points at, with metadata."""
        result = await self._git("log", "-1", _LOG_FORMAT, rev, "--")
        if not result.ok:
            return None
        refs = parse_log(result.stdout)
        return refs[0] if refs else None

    async def head(self) -> RevisionRef | None:
        return await self.describe("HEAD")

    async def remote_head(self) -> RevisionRef | None:
        """Return the remote-tracking branch tip as of the last fetch."""
        return await self.describe(self.remote_tracking_ref)

    async def has_local_changes(self) -> bool | None:
        """Return True if tracked files were modified, None if git failed.

        Untracked files are ignored: a hard reset leaves them in place.
        """
        result = await self._git("status", "--porcelain", "--untracked-files=no")
        if not result.ok:
            return None
        return bool(result.stdout.strip())

    async def changed_paths(self, old: str, new: str) -> list[str] | None:
        """Return paths that differ between two commits, None if unknown."""
        result = await self._git("diff", "--name-only", old, new)
        if not result.ok:
            return None
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    async def log_range(self, base: str, rev: str, limit: int = 20) -> list[RevisionRef]:
        """Return up to *limit* commits reachable from *rev* but not from *base*.

        This is exactly the set of commits a hard reset from *base* to *rev*
        brings in, newest first.
        """
        result = await self._git(
            "log", f"--max-count={limit}", _LOG_FORMAT, f"{base}..{rev}", "--"
        )
        if not result.ok:
            return []
        return parse_log(result.stdout)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    async def fetch(self) -> CommandResult:
        """Fetch the tracked branch without merging."""
        return await self._git(
            "fetch",
            "--quiet",
            self._remote,
            f"+refs/heads/{self._branch}:{self.remote_tracking_ref}",
            timeout=self._fetch_timeout,
        )

    async def stash(self) -> CommandResult:
        stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")
        return await self._git("stash", "push", "-m", f"relay-admin auto-stash {stamp}")

    async def reset_hard(self, rev: str) -> CommandResult:
        log.info("git_reset_hard", rev=rev)
        return await self._git("reset", "--hard", rev)
