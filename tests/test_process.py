"""Tests for common.process: the child process primitive."""

import subprocess
from unittest.mock import patch

import pytest

from common.errors import SpawnError
from common.process import ProcessStatus, command_for, spawn_process


def _completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestSpawnProcess:
    """Mapping exit codes and stderr to process statuses."""

    def test_success(self):
        with patch("common.process.subprocess.run", return_value=_completed(0, "out", "")) as run:
            result = spawn_process("npm", ["ls", "--json"], cwd="/tmp/project")
        assert result.status is ProcessStatus.SUCCEEDED
        assert result.ok
        assert result.stdout == "out"
        argv = run.call_args[0][0]
        assert argv == ["npm", "ls", "--json"]
        assert run.call_args.kwargs["cwd"] == "/tmp/project"
        assert run.call_args.kwargs["capture_output"] is True

    def test_failure_raises_with_streams(self):
        with patch("common.process.subprocess.run", return_value=_completed(1, "partial", "boom")):
            result = spawn_process("npm", ["install"], cwd="/tmp/project")
        assert result.status is ProcessStatus.FAILED
        with pytest.raises(SpawnError) as excinfo:
            result.raise_for_status()
        err = excinfo.value
        assert err.command == "npm"
        assert err.args_list == ["install"]
        assert err.returncode == 1
        assert err.stdout == "partial"
        assert err.stderr == "boom"
        assert "npm install failed with code 1" in str(err)
        assert "boom" in str(err)

    def test_ignorable_stderr_with_stdout(self):
        with patch("common.process.subprocess.run", return_value=_completed(1, "{}", "warning a\nwarning b\n")):
            result = spawn_process("yarn", ["list"], ignore_stderr=lambda s: True)
        assert result.status is ProcessStatus.SUCCEEDED_WITH_WARNINGS
        assert result.warnings == ["warning a", "warning b"]
        assert result.raise_for_status() is result

    def test_ignorable_stderr_without_stdout_fails(self):
        with patch("common.process.subprocess.run", return_value=_completed(1, "  ", "warning a")):
            result = spawn_process("yarn", ["list"], ignore_stderr=lambda s: True)
        assert result.status is ProcessStatus.FAILED

    def test_predicate_rejecting_stderr_fails(self):
        with patch("common.process.subprocess.run", return_value=_completed(1, "{}", "fatal")):
            result = spawn_process("yarn", ["list"], ignore_stderr=lambda s: False)
        assert result.status is ProcessStatus.FAILED

    def test_launch_failure(self):
        with patch("common.process.subprocess.run", side_effect=FileNotFoundError("npm not found")):
            result = spawn_process("npm", ["ls"])
        assert result.status is ProcessStatus.FAILED
        assert result.returncode == -1
        assert "npm not found" in result.stderr

    def test_env_is_layered_over_environment(self):
        with patch("common.process.subprocess.run", return_value=_completed()) as run, \
                patch.dict("os.environ", {"EXISTING": "1"}):
            spawn_process("yarn", ["install"], env={"YARN_ENABLE_IMMUTABLE_INSTALLS": "false"})
        env = run.call_args.kwargs["env"]
        assert env["EXISTING"] == "1"
        assert env["YARN_ENABLE_IMMUTABLE_INSTALLS"] == "false"

    def test_no_env_inherits(self):
        with patch("common.process.subprocess.run", return_value=_completed()) as run:
            spawn_process("npm", ["ls"])
        assert run.call_args.kwargs["env"] is None


class TestCommandFor:
    """Platform executable names."""

    def test_posix(self):
        with patch("common.process.os.name", "posix"):
            assert command_for("npm") == "npm"

    def test_windows(self):
        with patch("common.process.os.name", "nt"):
            assert command_for("yarn") == "yarn.cmd"
