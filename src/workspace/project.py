"""Read-only snapshot of a Yarn workspace project."""

from __future__ import annotations

import glob
import json
import logging
import os
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

import semantic_version
import yaml

from common.errors import WorkspaceInvariantViolation
from constants import Constants
from workspace.lockfile import BerryLockfile

logger = logging.getLogger(__name__)

_EMPTY: Mapping[str, str] = MappingProxyType({})


def _frozen(value: Any) -> Mapping[str, str]:
    if not isinstance(value, dict):
        return _EMPTY
    return MappingProxyType({str(k): str(v) for k, v in value.items()})


@dataclass(frozen=True)
class WorkspaceManifest:
    """One workspace: its location and the manifest fields that matter here."""
    cwd: str
    relative_cwd: str
    name: Optional[str] = None
    version: Optional[str] = None
    dependencies: Mapping[str, str] = field(default_factory=lambda: _EMPTY)
    dev_dependencies: Mapping[str, str] = field(default_factory=lambda: _EMPTY)
    peer_dependencies: Mapping[str, str] = field(default_factory=lambda: _EMPTY)
    scripts: Mapping[str, str] = field(default_factory=lambda: _EMPTY)

    @classmethod
    def read(cls, cwd: str, root_cwd: str) -> "WorkspaceManifest":
        path = os.path.join(cwd, Constants.PACKAGE_JSON_FILE)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        relative = os.path.relpath(cwd, root_cwd).replace("\\", "/")
        return cls(
            cwd=os.path.abspath(cwd),
            relative_cwd=relative,
            name=data.get("name") or None,
            version=data.get("version") or None,
            dependencies=_frozen(data.get("dependencies")),
            dev_dependencies=_frozen(data.get("devDependencies")),
            peer_dependencies=_frozen(data.get("peerDependencies")),
            scripts=_frozen(data.get("scripts")),
        )

    def with_changes(self, **changes: Any) -> "WorkspaceManifest":
        """Copy with the given mapping fields replaced (dicts are frozen)."""
        frozen = {
            key: (_frozen(value) if isinstance(value, dict) else value)
            for key, value in changes.items()
        }
        return replace(self, **frozen)


@dataclass(frozen=True)
class Project:
    """Workspaces, configuration and restored lockfile of a project."""
    root_cwd: str
    workspaces: Tuple[WorkspaceManifest, ...]
    configuration: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    lockfile: Optional[BerryLockfile] = None

    def workspace_by_cwd(self, cwd: str) -> WorkspaceManifest:
        wanted = os.path.abspath(cwd)
        for workspace in self.workspaces:
            if workspace.cwd == wanted:
                return workspace
        raise WorkspaceInvariantViolation("InputsPopulated", f"Target workspace not found: {cwd}")

    def workspace_by_name(self, name: str) -> Optional[WorkspaceManifest]:
        for workspace in self.workspaces:
            if workspace.name == name:
                return workspace
        return None

    def try_workspace_by_descriptor(self, name: str, range_: str) -> Optional[WorkspaceManifest]:
        """Return the workspace a dependency descriptor resolves to, if any.

        ``workspace:`` ranges match by relative path or name; plain semver
        ranges match a same-named workspace whose version satisfies them
        (transparent workspaces).
        """
        workspace = self.workspace_by_name(name)
        if range_.startswith(Constants.WORKSPACE_PROTOCOL):
            target = range_[len(Constants.WORKSPACE_PROTOCOL):]
            for candidate in self.workspaces:
                if candidate.relative_cwd == target.rstrip("/") and (candidate.name == name or not candidate.name):
                    return candidate
            return workspace
        if workspace is None or not workspace.version:
            return None
        try:
            spec = semantic_version.NpmSpec(range_)
            return workspace if spec.match(semantic_version.Version(workspace.version)) else None
        except ValueError:
            return None

    def with_workspaces(self, workspaces: Tuple[WorkspaceManifest, ...], **changes: Any) -> "Project":
        return replace(self, workspaces=tuple(workspaces), **changes)


def find_project_root(cwd: str) -> Optional[str]:
    """Walk up from ``cwd`` to the nearest manifest declaring ``workspaces``."""
    current = os.path.abspath(cwd)
    while True:
        manifest = os.path.join(current, Constants.PACKAGE_JSON_FILE)
        if os.path.isfile(manifest):
            try:
                with open(manifest, "r", encoding="utf-8") as f:
                    if "workspaces" in (json.load(f) or {}):
                        return current
            except (OSError, ValueError) as e:
                logger.debug("Skipping unreadable manifest %s: %s", manifest, e)
        parent = os.path.dirname(current)
        if parent == current:
            return None
        current = parent


def _workspace_patterns(root_manifest: Dict[str, Any]) -> Tuple[str, ...]:
    patterns = root_manifest.get("workspaces") or []
    if isinstance(patterns, dict):
        patterns = patterns.get("packages") or []
    return tuple(p for p in patterns if isinstance(p, str))


def load_configuration(root_cwd: str) -> Mapping[str, Any]:
    path = os.path.join(root_cwd, Constants.YARNRC_FILE)
    if not os.path.isfile(path):
        return MappingProxyType({})
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return MappingProxyType(dict(data) if isinstance(data, dict) else {})


def load_project(cwd: str) -> Project:
    """Load the workspace project containing ``cwd``.

    Raises:
        WorkspaceInvariantViolation: no workspace root is found above ``cwd``.
    """
    step = "InputsPopulated"
    root = find_project_root(cwd)
    if root is None:
        raise WorkspaceInvariantViolation(step, f"No workspace project found from {cwd}")

    with open(os.path.join(root, Constants.PACKAGE_JSON_FILE), "r", encoding="utf-8") as f:
        root_manifest = json.load(f)

    workspaces = [WorkspaceManifest.read(root, root)]
    seen = {root}
    for pattern in _workspace_patterns(root_manifest):
        for match in sorted(glob.glob(os.path.join(root, pattern))):
            match = os.path.abspath(match)
            if match in seen or not os.path.isfile(os.path.join(match, Constants.PACKAGE_JSON_FILE)):
                continue
            seen.add(match)
            workspaces.append(WorkspaceManifest.read(match, root))

    lockfile = None
    lockfile_path = os.path.join(root, Constants.YARN_LOCK_FILE)
    if os.path.isfile(lockfile_path):
        lockfile = BerryLockfile.load(lockfile_path)
    else:
        logger.warning("No %s found in %s; resolutions cannot be restored", Constants.YARN_LOCK_FILE, root)

    logger.debug("Loaded project %s with %d workspaces", root, len(workspaces))
    return Project(
        root_cwd=root,
        workspaces=tuple(workspaces),
        configuration=load_configuration(root),
        lockfile=lockfile,
    )
