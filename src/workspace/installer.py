"""Standalone install of one workspace out of a Yarn (Berry) monorepo.

The installer moves strictly forward through::

    UNINITIALIZED -> INPUTS_POPULATED -> CLOSURE_COMPUTED
        -> REFERENCES_REWRITTEN -> LOCKFILE_GENERATED -> INSTALLED

1. The project around ``cwd`` is loaded as an immutable snapshot together with
   its ``.yarnrc.yml`` and restored ``yarn.lock``.
2. The closure of workspaces the target depends on is computed. Workspaces
   outside it lose all dependencies and scripts; the others lose their
   devDependencies.
3. Every ``workspace:`` range becomes a ``file:`` reference: ``file:.`` for the
   target itself, the absolute workspace directory for the others.
4. A manifest, a lockfile scoped to what the target reaches and a
   ``.yarnrc.yml`` are written into the target directory.
5. ``yarn install`` runs against that directory as a new, independent project,
   so the original monorepo on disk is never modified.
"""

from __future__ import annotations

import json
import logging
import os
from collections import deque
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

import yaml

from common.errors import SpawnError, WorkspaceInvariantViolation
from common.logging_utils import Timer
from common.process import command_for, spawn_process
from constants import Constants
from options import PackagerOptions
from workspace.lockfile import BerryLockfile
from workspace.project import Project, WorkspaceManifest, load_project

logger = logging.getLogger(__name__)

# .yarnrc.yml settings holding paths relative to the project root
PATH_SETTINGS = (
    "yarnPath",
    "cacheFolder",
    "globalFolder",
    "installStatePath",
    "pnpUnpluggedFolder",
    "virtualFolder",
    "patchFolder",
)


class InstallerState(Enum):
    UNINITIALIZED = "Uninitialized"
    INPUTS_POPULATED = "InputsPopulated"
    CLOSURE_COMPUTED = "ClosureComputed"
    REFERENCES_REWRITTEN = "ReferencesRewritten"
    LOCKFILE_GENERATED = "LockfileGenerated"
    INSTALLED = "Installed"


def compute_closure(project: Project, target: WorkspaceManifest) -> List[WorkspaceManifest]:
    """Workspaces reachable from ``target`` through ``dependencies``.

    Breadth-first; a workspace already in the closure is not revisited, so
    dependency cycles terminate.
    """
    closure: Dict[str, WorkspaceManifest] = {target.cwd: target}
    queue = deque([target])
    while queue:
        workspace = queue.popleft()
        for name, range_ in workspace.dependencies.items():
            match = project.try_workspace_by_descriptor(name, range_)
            if match is None or match.cwd in closure:
                continue
            closure[match.cwd] = match
            queue.append(match)
    return list(closure.values())


class WorkspaceInstaller:
    """Install a single workspace as a self-contained project in ``target``.

    Args:
        target: Directory receiving the standalone manifest, lockfile and
            install tree.
        cwd: Directory of the workspace to install.
        options: Packager flags for the final ``yarn install``.
    """

    _ORDER = list(InstallerState)

    def __init__(self, target: str, cwd: str, options: Optional[PackagerOptions] = None):
        self.target = os.path.abspath(target)
        self.cwd = os.path.abspath(cwd)
        self.options = options or PackagerOptions()
        self.state = InstallerState.UNINITIALIZED
        self.project: Optional[Project] = None
        self.closure: List[WorkspaceManifest] = []
        self.lockfile: Optional[BerryLockfile] = None
        self.manifest: Optional[Dict[str, Any]] = None

    def _enter(self, new_state: InstallerState) -> Project:
        """Check ``new_state`` directly follows the current one.

        Returns the loaded project for every step after INPUTS_POPULATED.
        """
        previous = self._ORDER[self._ORDER.index(new_state) - 1]
        if self.state is not previous:
            raise WorkspaceInvariantViolation(
                new_state.value, f"Cannot enter {new_state.value} from {self.state.value}"
            )
        if new_state is InstallerState.INPUTS_POPULATED:
            return None  # type: ignore[return-value]
        if self.project is None:
            raise WorkspaceInvariantViolation(new_state.value, "Project not initiated.")
        return self.project

    @property
    def target_workspace(self) -> WorkspaceManifest:
        if self.project is None:
            raise WorkspaceInvariantViolation(self.state.value, "Project not initiated.")
        return self.project.workspace_by_cwd(self.cwd)

    def populate_inputs(self) -> Project:
        """Load configuration, workspaces and persisted resolutions."""
        self._enter(InstallerState.INPUTS_POPULATED)
        project = load_project(self.cwd)
        # fail early when cwd is not one of the project's workspaces
        project.workspace_by_cwd(self.cwd)
        for workspace in project.workspaces:
            if workspace.cwd == self.target:
                raise WorkspaceInvariantViolation(
                    InstallerState.INPUTS_POPULATED.value,
                    f"Install target {self.target} is a workspace of the project",
                )
        self.project = project
        self.state = InstallerState.INPUTS_POPULATED
        return project

    def compute_workspace(self) -> Project:
        """Strip every workspace the target does not depend on."""
        project = self._enter(InstallerState.CLOSURE_COMPUTED)
        target = self.target_workspace
        closure = compute_closure(project, target)
        required = {workspace.cwd for workspace in closure}

        workspaces = []
        for workspace in project.workspaces:
            if workspace.cwd == target.cwd:
                workspaces.append(workspace)
            elif workspace.cwd in required:
                workspaces.append(workspace.with_changes(dev_dependencies={}))
            else:
                workspaces.append(workspace.with_changes(
                    dependencies={}, dev_dependencies={}, peer_dependencies={}, scripts={},
                ))

        self.project = project.with_workspaces(tuple(workspaces))
        self.closure = [self.project.workspace_by_cwd(w.cwd) for w in closure]
        logger.info(
            "Workspace closure for %s: %s",
            target.name or target.relative_cwd,
            ", ".join(w.name or w.relative_cwd for w in self.closure),
        )
        self.state = InstallerState.CLOSURE_COMPUTED
        return self.project

    def rewrite_range(self, name: str, range_: str) -> str:
        """Turn a ``workspace:`` range into a ``file:`` reference."""
        if not range_.startswith(Constants.WORKSPACE_PROTOCOL):
            return range_
        if self.project is None:
            raise WorkspaceInvariantViolation(self.state.value, "Project not initiated.")
        project = self.project
        workspace = project.try_workspace_by_descriptor(name, range_)
        if workspace is None:
            # unknown workspace; keep the path the range spells out
            path = range_[len(Constants.WORKSPACE_PROTOCOL):]
            return f"{Constants.FILE_PROTOCOL}{os.path.join(project.root_cwd, path)}".replace("\\", "/")
        if workspace.cwd == self.cwd:
            return f"{Constants.FILE_PROTOCOL}."
        return f"{Constants.FILE_PROTOCOL}{workspace.cwd}".replace("\\", "/")

    def rewrite_references(self) -> Project:
        """Rewrite workspace ranges in manifests, descriptors and packages."""
        project = self._enter(InstallerState.REFERENCES_REWRITTEN)

        workspaces = []
        for workspace in project.workspaces:
            workspaces.append(workspace.with_changes(dependencies={
                name: self.rewrite_range(name, range_) for name, range_ in workspace.dependencies.items()
            }))

        lockfile = project.lockfile.rewritten(self.rewrite_range) if project.lockfile else None
        self.project = project.with_workspaces(tuple(workspaces), lockfile=lockfile)
        self.state = InstallerState.REFERENCES_REWRITTEN
        return self.project

    def _configuration(self, project: Project) -> Dict[str, Any]:
        config = dict(project.configuration)
        for key in PATH_SETTINGS:
            value = config.get(key)
            if isinstance(value, str) and not os.path.isabs(value):
                config[key] = os.path.join(project.root_cwd, value).replace("\\", "/")
        return config

    def _workspace_dependencies(self, project: Project) -> Dict[str, Mapping[str, str]]:
        # workspace entries of the lockfile list devDependencies too; the
        # stripped manifests decide what the scoped lockfile keeps
        overrides: Dict[str, Mapping[str, str]] = {}
        for workspace in project.workspaces:
            if not workspace.name:
                continue
            reference = "." if workspace.cwd == self.cwd else workspace.cwd.replace("\\", "/")
            overrides[f"{workspace.name}@{Constants.FILE_PROTOCOL}{reference}"] = workspace.dependencies
        return overrides

    def generate_lockfile(self) -> Dict[str, Any]:
        """Write manifest, scoped lockfile and configuration into the target."""
        project = self._enter(InstallerState.LOCKFILE_GENERATED)
        target = self.target_workspace
        if not target.name:
            raise WorkspaceInvariantViolation(
                InstallerState.LOCKFILE_GENERATED.value, "Target Workspace does not have a name."
            )

        os.makedirs(self.target, exist_ok=True)

        manifest: Dict[str, Any] = {
            "name": target.name,
            "private": True,
            "version": target.version or Constants.COMPOSITE_VERSION,
            "scripts": dict(target.scripts),
            "description": Constants.WORKSPACE_DESCRIPTION.format(id=target.name),
            "dependencies": dict(target.dependencies),
        }
        with open(os.path.join(self.target, Constants.PACKAGE_JSON_FILE), "w", encoding="utf-8") as f:
            json.dump(manifest, f, indent=2)
            f.write("\n")

        if project.lockfile is not None:
            self.lockfile = project.lockfile.subset(
                target.dependencies.items(), self._workspace_dependencies(project)
            )
            with open(os.path.join(self.target, Constants.YARN_LOCK_FILE), "w", encoding="utf-8") as f:
                f.write(self.lockfile.dumps())
        else:
            logger.warning("No lockfile to scope for %s; yarn will resolve from scratch", target.name)

        with open(os.path.join(self.target, Constants.YARNRC_FILE), "w", encoding="utf-8") as f:
            yaml.safe_dump(self._configuration(project), f, sort_keys=False, default_flow_style=False)

        self.manifest = manifest
        self.state = InstallerState.LOCKFILE_GENERATED
        return manifest

    def run_install(self) -> None:
        """Install the generated standalone project in the target directory."""
        self._enter(InstallerState.INSTALLED)
        step = InstallerState.INSTALLED.value

        manifest_path = os.path.join(self.target, Constants.PACKAGE_JSON_FILE)
        try:
            with open(manifest_path, "r", encoding="utf-8") as f:
                standalone = json.load(f)
        except (OSError, ValueError) as e:
            raise WorkspaceInvariantViolation(step, f"Standalone manifest unreadable: {e}") from e
        if "workspaces" in standalone:
            raise WorkspaceInvariantViolation(step, "Standalone manifest must not declare workspaces")

        if self.options.no_install:
            logger.info("Skipping yarn install (noInstall)")
            self.state = InstallerState.INSTALLED
            return

        args = ["install"]
        if self.options.ignore_scripts:
            args.append("--mode=skip-build")
        env = {"YARN_ENABLE_IMMUTABLE_INSTALLS": "false"}
        if self.options.network_concurrency:
            env["YARN_NETWORK_CONCURRENCY"] = str(self.options.network_concurrency)

        with Timer() as t:
            result = spawn_process(command_for("yarn"), args, cwd=self.target, env=env)
        try:
            result.raise_for_status()
        except SpawnError as e:
            logger.error("%s", e.stdout or e.stderr)
            raise WorkspaceInvariantViolation(step, "Yarn execution error, see output above.") from e

        logger.info("Installed %s [%d ms]", standalone.get("name"), t.duration_ms())
        self.state = InstallerState.INSTALLED

    def install(self) -> None:
        """Run every step in order."""
        self.populate_inputs()
        self.compute_workspace()
        self.rewrite_references()
        self.generate_lockfile()
        self.run_install()
