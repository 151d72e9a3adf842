"""Exception hierarchy shared by the resolver, packagers and installers."""

from __future__ import annotations

from typing import Optional, Sequence


class ExtpackError(Exception):
    """Base class for all fatal packaging errors."""


class ConfigError(ExtpackError, ValueError):
    """Raised when configuration is invalid (unknown packager, bad schema)."""


class LockfileError(ExtpackError):
    """Raised when a lockfile that must be read cannot be parsed."""


class SpawnError(ExtpackError):
    """A spawned command exited with a non-zero status.

    Carries the full argument vector and both captured streams so callers can
    decide whether the failure is one of the known-benign warning patterns.
    """

    def __init__(
        self,
        command: str,
        args: Sequence[str],
        returncode: int,
        stdout: str = "",
        stderr: str = "",
        cwd: Optional[str] = None,
    ):
        self.command = command
        self.args_list = list(args)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.cwd = cwd
        super().__init__(
            f"{command} {' '.join(self.args_list)} failed with code {returncode}"
        )

    def __str__(self) -> str:
        message = super().__str__()
        if self.stderr:
            return f"{message}\n{self.stderr}"
        return message


class RuntimeDependencyMisplaced(ExtpackError):
    """A module used at runtime is only declared in devDependencies."""

    def __init__(self, package: str):
        self.package = package
        super().__init__(
            f"Runtime dependency '{package}' found in devDependencies. "
            "Move it to dependencies or use forceExclude to explicitly exclude it."
        )


class WorkspaceInvariantViolation(ExtpackError):
    """A precondition of the workspace installer state machine failed."""

    def __init__(self, step: str, message: str):
        self.step = step
        super().__init__(f"[{step}] {message}")
