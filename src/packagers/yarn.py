"""Yarn classic (v1) backend."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from constants import Constants
from options import PackagerOptions
from packagers.base import PackagerBackend, stderr_matcher
from resolution.models import DependencyGraph, DependencyNode, split_module

logger = logging.getLogger(__name__)

# yarn reports deprecations and hints on stderr even when the listing is usable
IGNORED_YARN_LINES = ["warning ", "info "]

_FILE_VERSION_MATCHER = re.compile(r'[^"/]@(?:file:)?((?:\./|\.\./).*?)[":,]', re.MULTILINE)


def _parse_json_lines(stdout: str) -> List[Any]:
    parsed = []
    for line in stdout.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            parsed.append(json.loads(line))
        except json.JSONDecodeError:
            continue
    return parsed


def rebase_yarn_lockfile(path_to_package_root: str, lockfile: str) -> str:
    """Rebase ``./`` and ``../`` references found anywhere in yarn.lock text."""
    def _rebase(match: "re.Match[str]") -> str:
        whole = match.group(0)
        start = match.start(1) - match.start(0)
        end = match.end(1) - match.start(0)
        new_ref = f"{path_to_package_root}/{match.group(1)}".replace("\\", "/")
        return whole[:start] + new_ref + whole[end:]

    return _FILE_VERSION_MATCHER.sub(_rebase, lockfile)


def convert_trees(trees: List[Dict[str, Any]]) -> Dict[str, DependencyNode]:
    """Convert ``yarn list --json`` trees into dependency nodes."""
    root: Dict[str, DependencyNode] = {}
    stack: List[Tuple[Dict[str, DependencyNode], Any]] = [(root, trees)]
    while stack:
        target, children = stack.pop()
        if not isinstance(children, list):
            continue
        for tree in children:
            if not isinstance(tree, dict) or not tree.get("name"):
                continue
            name, version = split_module(tree["name"])
            node = DependencyNode(version=version)
            target[name] = node
            stack.append((node.dependencies, tree.get("children")))
    return root


class YarnPackager(PackagerBackend):
    """Installs externals with yarn classic; ``yarn install`` also prunes."""

    name = "yarn"
    executable = "yarn"
    lockfile_name = Constants.YARN_LOCK_FILE
    copy_package_section_names = ("resolutions",)
    must_copy_modules = False

    def get_prod_dependencies(self, directory: str, depth: int = 1) -> DependencyGraph:
        args = ["list", f"--depth={depth or 1}", "--json", "--production"]
        result = self._spawn(args, cwd=directory, ignore_stderr=stderr_matcher(IGNORED_YARN_LINES))

        tree = next(
            (line for line in _parse_json_lines(result.stdout)
             if isinstance(line, dict) and line.get("type") == "tree"),
            None,
        )
        trees = (tree or {}).get("data", {}).get("trees", [])
        return DependencyGraph(dependencies=convert_trees(trees), problems=[])

    def rebase_lockfile(self, path_to_package_root: str, lockfile: str) -> str:
        return rebase_yarn_lockfile(path_to_package_root, lockfile)

    def _install_args(self, options: PackagerOptions) -> List[str]:
        args = ["install", "--non-interactive"]
        if not options.no_frozen_lockfile:
            args.append("--frozen-lockfile")
        if options.ignore_scripts:
            args.append("--ignore-scripts")
        if options.network_concurrency:
            args.extend(["--network-concurrency", str(options.network_concurrency)])
        return args

    def install(self, directory: str, options: Optional[PackagerOptions] = None) -> None:
        options = options or PackagerOptions()
        if options.no_install:
            logger.info("Skipping yarn install (noInstall)")
            return
        self._spawn(self._install_args(options), cwd=directory)

    def prune(self, directory: str, options: Optional[PackagerOptions] = None) -> None:
        # "yarn install" prunes automatically
        self.install(directory, options)
