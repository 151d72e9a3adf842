"""Capability set shared by every package manager backend."""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from common.process import ProcessResult, ProcessStatus, command_for, spawn_process
from options import PackagerOptions
from resolution.models import DependencyGraph

logger = logging.getLogger(__name__)


def stderr_matcher(line_prefixes: Iterable[str], stop_line: Optional[str] = None) -> Callable[[str], bool]:
    """Build a predicate accepting stderr made only of known-benign lines.

    Every non-empty line (up to ``stop_line``) must start with one of
    ``line_prefixes``.
    """
    patterns = tuple(line_prefixes)

    def _matches(stderr: str) -> bool:
        for line in stderr.split("\n"):
            line = line.rstrip("\r")
            if stop_line is not None and line == stop_line:
                break
            if not line.strip():
                continue
            if not line.startswith(patterns):
                return False
        return True

    return _matches


class PackagerBackend(ABC):
    """A package manager as seen by the staging packager.

    Attributes:
        name: Configuration key.
        executable: Binary name, resolved per platform by ``command_for``.
        lockfile_name: File name of the manager's lockfile.
        copy_package_section_names: Root manifest sections (besides
            ``dependencies``) carried verbatim into the synthetic manifest.
        must_copy_modules: Whether the staged ``node_modules`` tree must be
            copied into the build path.
        installs_standalone: Whether ``install`` produces the finished build
            directory by itself, bypassing the staging directory.
    """

    name: str = ""
    executable: str = ""
    lockfile_name: str = ""
    copy_package_section_names: Tuple[str, ...] = ()
    must_copy_modules: bool = False
    installs_standalone: bool = False

    def __init__(self, cwd: Optional[str] = None):
        self.cwd = os.path.abspath(cwd or os.getcwd())

    def _spawn(
        self,
        args: List[str],
        cwd: str,
        ignore_stderr: Optional[Callable[[str], bool]] = None,
        env=None,
    ) -> ProcessResult:
        result = spawn_process(command_for(self.executable), args, cwd=cwd, env=env, ignore_stderr=ignore_stderr)
        if result.status is ProcessStatus.SUCCEEDED_WITH_WARNINGS:
            logger.debug("%s %s exited with ignorable warnings", self.executable, " ".join(args))
        return result.raise_for_status()

    @abstractmethod
    def get_prod_dependencies(self, directory: str, depth: int = 1) -> DependencyGraph:
        """Return the production dependency graph of the project in ``directory``."""

    @abstractmethod
    def rebase_lockfile(self, path_to_package_root: str, lockfile: str) -> str:
        """Rewrite relative references so the lockfile works from a nested directory."""

    @abstractmethod
    def install(self, directory: str, options: Optional[PackagerOptions] = None) -> None:
        """Install the manifest in ``directory``."""

    @abstractmethod
    def prune(self, directory: str, options: Optional[PackagerOptions] = None) -> None:
        """Remove modules not declared in the manifest in ``directory``."""

    def run_scripts(self, directory: str, script_names: Sequence[str]) -> None:
        """Run manifest scripts one after another, in order."""
        for script_name in script_names:
            logger.info("Running script %s in %s", script_name, directory)
            self._spawn(["run", script_name], cwd=directory)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(cwd={self.cwd!r})"
