"""npm backend."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, List, Optional

from common.errors import LockfileError
from constants import Constants
from options import PackagerOptions
from packagers.base import PackagerBackend, stderr_matcher
from resolution.models import DependencyGraph

logger = logging.getLogger(__name__)

NPM_ERROR_PREFIXES = ("npm ERR! ", "npm error ")

# (message, log it) pairs tolerated on stderr of `npm ls`
IGNORED_NPM_ERRORS = [
    ("code ELSPROBLEMS", False),  # npm >= 7
    ("extraneous", False),
    ("missing", False),
    ("invalid", False),
    ("peer dep missing", True),
    ("A complete log of this run can be found in", False),
    ("    ", False),
]

_FILE_REFERENCE = re.compile(r"^file:[^/]{2}")


def rebase_npm_file_reference(path_to_package_root: str, module_version: str) -> str:
    """Prefix a relative ``file:`` reference with the path back to the project."""
    if _FILE_REFERENCE.match(module_version):
        file_path = module_version[len(Constants.FILE_PROTOCOL):]
        return f"file:{path_to_package_root}/{file_path}".replace("\\", "/")
    return module_version


_BENIGN_LS_LINES = [
    prefix + message for prefix in NPM_ERROR_PREFIXES for message, _ in IGNORED_NPM_ERRORS
] + ["npm WARN "]

# npm >= 7 appends the JSON document to stderr; stop at its first line
_is_benign_ls_stderr = stderr_matcher(_BENIGN_LS_LINES, stop_line="{")


class NpmPackager(PackagerBackend):
    """Installs externals with ``npm``; modules are copied out of staging.

    Requires npm 7 or later: the production listing uses ``--omit=dev``.
    """

    name = "npm"
    executable = "npm"
    lockfile_name = Constants.PACKAGE_LOCK_FILE
    copy_package_section_names = ()
    must_copy_modules = True

    def get_prod_dependencies(self, directory: str, depth: int = 1) -> DependencyGraph:
        args = ["ls", "--omit=dev", "--json", f"--depth={depth or 1}"]
        result = self._spawn(args, cwd=directory, ignore_stderr=_is_benign_ls_stderr)

        for line in result.warnings:
            if any(f"{prefix}{message}" in line for prefix in NPM_ERROR_PREFIXES
                   for message, log in IGNORED_NPM_ERRORS if log):
                logger.warning("%s", line)

        if not result.stdout.strip():
            return DependencyGraph()
        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise LockfileError(f"Could not parse npm ls output: {e}") from e
        return DependencyGraph.from_tree(data)

    def rebase_lockfile_data(self, path_to_package_root: str, lockfile: Any) -> Any:
        """Rebase ``version`` fields and file ranges in a parsed package-lock.

        Walks nested ``dependencies`` (lockfile v1) and the flat ``packages``
        map (v2/v3) with an explicit stack.
        """
        stack: List[Any] = [lockfile]
        while stack:
            node = stack.pop()
            if not isinstance(node, dict):
                continue
            version = node.get("version")
            if isinstance(version, str):
                node["version"] = rebase_npm_file_reference(path_to_package_root, version)

            dependencies = node.get("dependencies")
            if isinstance(dependencies, dict):
                for dep_name, dep in dependencies.items():
                    if isinstance(dep, str):
                        dependencies[dep_name] = rebase_npm_file_reference(path_to_package_root, dep)
                    else:
                        stack.append(dep)

            packages = node.get("packages")
            if isinstance(packages, dict):
                stack.extend(packages.values())
        return lockfile

    def rebase_lockfile(self, path_to_package_root: str, lockfile: str) -> str:
        # Temporary workaround until npm stops writing relative file references
        # that break when the lockfile is relocated.
        try:
            data = json.loads(lockfile)
        except json.JSONDecodeError as e:
            raise LockfileError(f"Could not parse {self.lockfile_name}: {e}") from e
        data = self.rebase_lockfile_data(path_to_package_root, data)
        return json.dumps(data, indent=2) + "\n"

    def install(self, directory: str, options: Optional[PackagerOptions] = None) -> None:
        options = options or PackagerOptions()
        if options.no_install:
            logger.info("Skipping npm install (noInstall)")
            return
        args = ["install"]
        if options.ignore_scripts:
            args.append("--ignore-scripts")
        self._spawn(args, cwd=directory)

    def prune(self, directory: str, options: Optional[PackagerOptions] = None) -> None:
        self._spawn(["prune"], cwd=directory)
