"""Standalone installs of single workspaces out of Yarn (Berry) monorepos."""

from .installer import InstallerState, WorkspaceInstaller, compute_closure
from .lockfile import BerryLockfile, make_descriptor, parse_descriptor
from .project import Project, WorkspaceManifest, load_project

__all__ = [
    "InstallerState",
    "WorkspaceInstaller",
    "compute_closure",
    "BerryLockfile",
    "make_descriptor",
    "parse_descriptor",
    "Project",
    "WorkspaceManifest",
    "load_project",
]
