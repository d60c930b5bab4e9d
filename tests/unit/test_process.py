"""Unit tests for the subprocess runner."""

import sys

import pytest

from relay_admin.updater.errors import ExternalToolFailure
from relay_admin.updater.process import CommandResult, CommandRunner


class TestCommandResult:
    """Tests for CommandResult classification."""

    def test_ok(self):
        result = CommandResult(args=("git", "fetch"), returncode=0)
        assert result.ok is True
        assert result.raise_for_status() is result

    def test_nonzero_raises_with_reason(self):
        result = CommandResult(args=("git", "fetch"), returncode=128, stderr="fatal: no remote\n")
        with pytest.raises(ExternalToolFailure) as exc_info:
            result.raise_for_status(reason="sync-failed")
        assert exc_info.value.reason == "sync-failed"
        assert exc_info.value.returncode == 128
        assert "fatal: no remote" in str(exc_info.value)

    def test_timeout_is_not_ok(self):
        result = CommandResult(args=("npm", "run"), returncode=-9, timed_out=True)
        assert result.ok is False
        with pytest.raises(ExternalToolFailure, match="timed out"):
            result.raise_for_status()

    def test_default_reason(self):
        result = CommandResult(args=("x",), returncode=None, stderr="not found")
        with pytest.raises(ExternalToolFailure) as exc_info:
            result.raise_for_status()
        assert exc_info.value.reason == "tool-failed"


class TestCommandRunner:
    """Tests for CommandRunner against real short-lived processes."""

    async def test_captures_stdout(self, tmp_path):
        runner = CommandRunner(tmp_path)
        result = await runner.run([sys.executable, "-c", "print('hello')"])
        assert result.ok is True
        assert result.stdout.strip() == "hello"

    async def test_runs_in_working_directory(self, tmp_path):
        runner = CommandRunner(tmp_path)
        result = await runner.run([sys.executable, "-c", "import os; print(os.getcwd())"])
        assert result.stdout.strip() == str(tmp_path)

    async def test_nonzero_exit(self, tmp_path):
        runner = CommandRunner(tmp_path)
        result = await runner.run(
            [sys.executable, "-c", "import sys; sys.stderr.write('boom'); sys.exit(3)"]
        )
        assert result.ok is False
        assert result.returncode == 3
        assert result.stderr == "boom"

    async def test_stderr_is_truncated(self, tmp_path):
        runner = CommandRunner(tmp_path)
        result = await runner.run(
            [sys.executable, "-c", "import sys; sys.stderr.write('e' * 5000); sys.exit(1)"]
        )
        assert len(result.stderr) == 500

    async def test_timeout_kills_process(self, tmp_path):
        runner = CommandRunner(tmp_path)
        result = await runner.run(
            [sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.2
        )
        assert result.timed_out is True
        assert result.ok is False

    async def test_missing_binary_never_raises(self, tmp_path):
        runner = CommandRunner(tmp_path)
        result = await runner.run(["definitely-not-a-real-binary-xyz"])
        assert result.returncode is None
        assert result.ok is False
