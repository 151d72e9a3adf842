"""Resolve the exact module versions that must ship with a compiled artifact.

Given the external references reported by the bundler, the project's root
manifest and its first-level production dependency graph, the resolver picks
``name@version`` pins:

* names declared in ``dependencies`` are pinned at the declared range and pull
  in their non-optional peer dependencies, read from the installed copy;
* names only declared in ``devDependencies`` are an error unless force
  excluded or provided by the execution environment;
* anything else is a transitive dependency whose version comes from the
  dependency graph, falling back to an unpinned name.
"""

from __future__ import annotations

import json
import logging
import os
from collections import deque
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from common.errors import RuntimeDependencyMisplaced
from common.logging_utils import extra_context, is_debug_enabled
from constants import Constants
from resolution.models import (
    DependencyGraph,
    Diagnostic,
    DiagnosticKind,
    ExternalModuleRef,
    ResolvedModuleSet,
    join_module,
)

logger = logging.getLogger(__name__)

PeerManifestLoader = Callable[[str], Dict[str, Any]]


def resolve_node_modules_dir(
    package_json_path: str,
    node_modules_relative_dir: Optional[str] = None,
    cwd: Optional[str] = None,
) -> str:
    """Locate the install tree used for peer dependency lookups.

    Defaults to ``node_modules`` next to the manifest. A configured
    ``nodeModulesRelativeDir`` (relative to ``cwd``) wins when it exists.
    """
    base = os.path.join(os.path.dirname(os.path.abspath(package_json_path)), Constants.NODE_MODULES_DIR)
    if node_modules_relative_dir:
        custom = os.path.join(cwd or os.getcwd(), node_modules_relative_dir, Constants.NODE_MODULES_DIR)
        if os.path.isdir(custom):
            return custom
        logger.warning(
            "%s does not exist. Please check nodeModulesRelativeDir setting", custom
        )
    return base


def node_modules_loader(node_modules_dir: str) -> PeerManifestLoader:
    """Return a loader reading ``<node_modules>/<name>/package.json``."""
    def _load(name: str) -> Dict[str, Any]:
        path = os.path.join(node_modules_dir, name, Constants.PACKAGE_JSON_FILE)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{path} does not contain a JSON object")
        return data

    return _load


class DependencyResolver:
    """Select the production modules needed for a set of external references.

    Deterministic for fixed inputs; the only I/O is reading peer dependency
    declarations through ``peer_manifest_loader``.
    """

    def __init__(
        self,
        root_manifest: Dict[str, Any],
        dependency_graph: DependencyGraph,
        peer_manifest_loader: Optional[PeerManifestLoader] = None,
        always_available: Sequence[str] = tuple(Constants.ALWAYS_AVAILABLE_DEPENDENCIES),
    ):
        self.dependencies: Dict[str, str] = dict(root_manifest.get("dependencies") or {})
        self.dev_dependencies: Dict[str, str] = dict(root_manifest.get("devDependencies") or {})
        self.dependency_graph = dependency_graph
        self.peer_manifest_loader = peer_manifest_loader
        self.always_available = set(always_available)
        self.diagnostics: List[Diagnostic] = []

    def _note(self, kind: DiagnosticKind, module: str, message: str, level: int = logging.WARNING) -> None:
        self.diagnostics.append(Diagnostic(kind=kind, module=module, message=message))
        logger.log(level, message)

    def _peer_dependencies(self, name: str) -> List[str]:
        """Non-optional peer dependency names of the installed ``name``."""
        if self.peer_manifest_loader is None:
            return []
        try:
            manifest = self.peer_manifest_loader(name)
        except (OSError, ValueError) as exc:
            self._note(
                DiagnosticKind.PEER_DEPENDENCY_LOOKUP_FAILED,
                name,
                f"Could not check for peer dependencies of {name}. "
                "Set nodeModulesRelativeDir if node_modules is in different directory.",
            )
            logger.debug("Peer lookup error for %s: %s", name, exc)
            return []

        peers = manifest.get("peerDependencies") or {}
        if not isinstance(peers, dict) or not peers:
            return []
        logger.info("Adding explicit peers for dependency %s", name)

        meta = manifest.get("peerDependenciesMeta") or {}
        required = []
        for peer in peers:
            peer_meta = meta.get(peer) if isinstance(meta, dict) else None
            if isinstance(peer_meta, dict) and peer_meta.get("optional") is True:
                self._note(
                    DiagnosticKind.OPTIONAL_PEER_SKIPPED,
                    peer,
                    f"Skipping peers dependency {peer} for dependency {name} because it's optional",
                    level=logging.INFO,
                )
                continue
            required.append(peer)
        return required

    def resolve(
        self,
        externals: Iterable[ExternalModuleRef],
        force_include: Iterable[str] = (),
        force_exclude: Iterable[str] = (),
        log_excluded: bool = False,
    ) -> ResolvedModuleSet:
        """Resolve externals plus forced includes into a module set.

        Raises:
            RuntimeDependencyMisplaced: an external is only a devDependency and
                is neither force excluded nor always available.
        """
        self.diagnostics = []
        excludes = list(force_exclude)
        modules = ResolvedModuleSet()

        queue = deque(externals)
        queue.extend(ExternalModuleRef(external=name) for name in force_include)
        # Names whose peers were already expanded; breaks peer cycles.
        expanded = set()

        while queue:
            ref = queue.popleft()
            name = ref.external

            version = self.dependencies.get(name)
            if version:
                modules.add(join_module(name, version))
                if name in expanded:
                    continue
                expanded.add(name)
                for peer in self._peer_dependencies(name):
                    queue.append(ExternalModuleRef(external=peer))
                continue

            if name in self.dev_dependencies:
                if name in excludes:
                    self._note(
                        DiagnosticKind.DEV_DEPENDENCY_EXCLUDED,
                        name,
                        f"Runtime dependency '{name}' found in devDependencies is force excluded.",
                    )
                    continue
                if name in self.always_available:
                    self._note(
                        DiagnosticKind.DEV_DEPENDENCY_EXCLUDED,
                        name,
                        f"Runtime dependency '{name}' found in devDependencies. "
                        "It has been excluded automatically.",
                        level=logging.INFO,
                    )
                    continue
                error = RuntimeDependencyMisplaced(name)
                logger.error("%s", error)
                raise error

            # Transitive dependency: take the version installed under its origin
            version = self.dependency_graph.version_of(name, ref.origin)
            if not version:
                self._note(
                    DiagnosticKind.VERSION_UNRESOLVED,
                    name,
                    f"Could not determine version of module {name}",
                )
            modules.add(join_module(name, version))

        removed = modules.remove_names(excludes)
        if removed:
            for module in removed:
                self.diagnostics.append(
                    Diagnostic(DiagnosticKind.MODULE_EXCLUDED, module, f"Excluded {module}")
                )
            if log_excluded:
                logger.info("Excluding external modules: %s", ", ".join(removed))

        if is_debug_enabled(logger):
            logger.debug(
                "Resolved modules",
                extra=extra_context(
                    event="resolve",
                    component="resolver",
                    action="resolve",
                    count=len(modules),
                    excluded=len(removed),
                ),
            )
        return modules


def resolve_modules(
    externals: Iterable[ExternalModuleRef],
    force_include: Iterable[str],
    force_exclude: Iterable[str],
    root_manifest: Dict[str, Any],
    dependency_graph: DependencyGraph,
    peer_manifest_loader: Optional[PeerManifestLoader] = None,
) -> ResolvedModuleSet:
    """Functional form of :meth:`DependencyResolver.resolve`."""
    resolver = DependencyResolver(root_manifest, dependency_graph, peer_manifest_loader)
    return resolver.resolve(externals, force_include, force_exclude)
