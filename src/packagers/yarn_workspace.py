"""Yarn (Berry) backend for workspace projects.

Berry has no ``list`` command, so the production graph is read straight from
the restored lockfile. Installing delegates to :class:`WorkspaceInstaller`,
which turns the workspace into a standalone project inside the build path.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from constants import Constants
from options import PackagerOptions
from packagers.base import PackagerBackend
from packagers.yarn import rebase_yarn_lockfile
from resolution.models import DependencyGraph, DependencyNode
from workspace.installer import WorkspaceInstaller
from workspace.project import Project, load_project

logger = logging.getLogger(__name__)


def _resolve(project: Project, name: str, range_: str) -> Tuple[Optional[str], Dict[str, str]]:
    """Version and dependency ranges a descriptor resolves to."""
    workspace = project.try_workspace_by_descriptor(name, range_)
    if workspace is not None:
        return workspace.version, dict(workspace.dependencies)
    if project.lockfile is None:
        return None, {}
    entry = project.lockfile.lookup(name, range_)
    if entry is None:
        return None, {}
    dependencies = entry.get("dependencies") or {}
    return entry.get("version"), {str(k): str(v) for k, v in dependencies.items()}


def build_dependency_graph(project: Project, cwd: str, depth: int = 1) -> DependencyGraph:
    """Production graph of the workspace at ``cwd``, ``depth`` levels deep."""
    workspace = project.workspace_by_cwd(cwd)
    graph = DependencyGraph()
    stack: List[Tuple[Dict[str, DependencyNode], Dict[str, str], int]] = [
        (graph.dependencies, dict(workspace.dependencies), 0)
    ]
    while stack:
        target, dependencies, level = stack.pop()
        for name, range_ in dependencies.items():
            version, children = _resolve(project, name, range_)
            if version is None:
                graph.problems.append(f"missing: {name}@{range_}")
            node = DependencyNode(version=version)
            target[name] = node
            if level < depth:
                stack.append((node.dependencies, children, level + 1))
    return graph


class YarnWorkspacePackager(PackagerBackend):
    """Installs one workspace of a Berry monorepo as a standalone project."""

    name = "yarn-workspace"
    executable = "yarn"
    lockfile_name = Constants.YARN_LOCK_FILE
    copy_package_section_names = ("resolutions",)
    must_copy_modules = False
    installs_standalone = True

    def get_prod_dependencies(self, directory: str, depth: int = 1) -> DependencyGraph:
        project = load_project(directory)
        return build_dependency_graph(project, directory, depth or 1)

    def rebase_lockfile(self, path_to_package_root: str, lockfile: str) -> str:
        return rebase_yarn_lockfile(path_to_package_root, lockfile)

    def install(self, directory: str, options: Optional[PackagerOptions] = None) -> None:
        """Install the workspace at ``self.cwd`` into ``directory``."""
        installer = WorkspaceInstaller(target=directory, cwd=self.cwd, options=options)
        installer.install()

    def prune(self, directory: str, options: Optional[PackagerOptions] = None) -> None:
        # the standalone install only ever holds the workspace's own closure
        logger.debug("Nothing to prune in %s", directory)
