"""Child process primitive used by every packager backend.

Runs a command to completion, captures stdout and stderr in full and maps the
exit status to a :class:`ProcessResult`. Callers that know a manager's benign
warning patterns pass a predicate so a non-zero exit with usable stdout is
reported as ``SUCCEEDED_WITH_WARNINGS`` instead of ``FAILED``.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from common.errors import SpawnError
from common.logging_utils import Timer, extra_context, is_debug_enabled

logger = logging.getLogger(__name__)

StderrPredicate = Callable[[str], bool]


class ProcessStatus(Enum):
    """Outcome of a spawned command."""

    SUCCEEDED = "succeeded"
    SUCCEEDED_WITH_WARNINGS = "succeeded_with_warnings"
    FAILED = "failed"


@dataclass
class ProcessResult:
    """Captured result of one spawned command."""

    command: str
    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    cwd: Optional[str] = None
    status: ProcessStatus = ProcessStatus.SUCCEEDED
    duration_ms: int = 0
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is not ProcessStatus.FAILED

    def raise_for_status(self) -> "ProcessResult":
        """Raise :class:`SpawnError` if the command failed, else return self."""
        if self.status is ProcessStatus.FAILED:
            raise SpawnError(
                self.command,
                self.args,
                self.returncode,
                stdout=self.stdout,
                stderr=self.stderr,
                cwd=self.cwd,
            )
        return self


def command_for(name: str) -> str:
    """Return the platform executable name for a package manager."""
    if os.name == "nt":
        return f"{name}.cmd"
    return name


def spawn_process(
    command: str,
    args: Sequence[str],
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    ignore_stderr: Optional[StderrPredicate] = None,
) -> ProcessResult:
    """Run ``command args`` in ``cwd`` and capture both streams.

    Args:
        command: Executable name (see :func:`command_for`).
        args: Argument vector.
        cwd: Working directory.
        env: Extra environment variables layered over ``os.environ``.
        ignore_stderr: Predicate deciding whether the captured stderr of a
            failed run only holds known-benign warnings.

    Returns:
        ProcessResult; never raises for non-zero exits. A command that cannot
        be launched at all yields a FAILED result with returncode -1.
    """
    argv = [command] + list(args)
    child_env = None
    if env:
        child_env = os.environ.copy()
        child_env.update(env)

    if is_debug_enabled(logger):
        logger.debug(
            "Spawning process",
            extra=extra_context(
                event="spawn",
                component="process",
                action=command,
                target=" ".join(argv),
                cwd=cwd,
            ),
        )

    with Timer() as t:
        try:
            completed = subprocess.run(  # noqa: S603
                argv,
                cwd=cwd,
                env=child_env,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
            )
            returncode = completed.returncode
            stdout = completed.stdout or ""
            stderr = completed.stderr or ""
        except OSError as exc:
            returncode = -1
            stdout = ""
            stderr = str(exc)

    result = ProcessResult(
        command=command,
        args=list(args),
        returncode=returncode,
        stdout=stdout,
        stderr=stderr,
        cwd=cwd,
        duration_ms=t.duration_ms(),
    )

    if returncode != 0:
        if (
            returncode > 0
            and ignore_stderr is not None
            and stdout.strip()
            and ignore_stderr(stderr)
        ):
            result.status = ProcessStatus.SUCCEEDED_WITH_WARNINGS
            result.warnings = [line for line in stderr.splitlines() if line.strip()]
        else:
            result.status = ProcessStatus.FAILED

    if is_debug_enabled(logger):
        logger.debug(
            "Process finished",
            extra=extra_context(
                event="spawn_exit",
                component="process",
                action=command,
                outcome=result.status.value,
                returncode=returncode,
                duration_ms=result.duration_ms,
            ),
        )
    return result
