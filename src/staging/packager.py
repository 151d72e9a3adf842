"""Turn resolved externals into an installed module tree beside the artifact.

Classic backends go through a ``dependencies`` staging directory:

1. create the staging directory under the build path;
2. write the composite manifest there;
3. copy the rebased project lockfile, when one exists;
4. install in staging;
5. resolve again and write the final manifest into the build path;
6. copy the staged ``node_modules`` when the backend requires it;
7. copy the rebased lockfile into the build path;
8. prune the build path;
9. remove the staging directory;
10. run the configured scripts in the build path, one at a time.

Standalone backends (Yarn workspaces) install straight into the build path
and only share the final script step.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from common.errors import LockfileError
from common.logging_utils import Timer, extra_context, is_debug_enabled
from constants import Constants
from options import IncludeModules, PackOptions
from packagers.base import PackagerBackend
from resolution.models import CompileStats, DependencyGraph, Diagnostic, ResolvedModuleSet
from resolution.resolver import (
    DependencyResolver,
    PeerManifestLoader,
    node_modules_loader,
    resolve_node_modules_dir,
)
from staging.manifest import (
    build_composite_manifest,
    package_sections,
    read_manifest,
    script_map,
    write_manifest,
)

logger = logging.getLogger(__name__)


@dataclass
class PackResult:
    """Outcome of one :meth:`StagingPackager.pack` call."""
    build_path: str
    modules: ResolvedModuleSet = field(default_factory=ResolvedModuleSet)
    manifest: Optional[Dict[str, Any]] = None
    has_lockfile: bool = False
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def skipped(self) -> bool:
        return self.manifest is None


class StagingPackager:
    """Drive a :class:`PackagerBackend` through one build.

    Args:
        options: Packaging configuration.
        backend: Package manager backend.
        cwd: Project directory; ``includeModules.packagePath`` is relative to it.
        peer_manifest_loader: Overrides reading peer declarations from
            ``node_modules``.
    """

    def __init__(
        self,
        options: PackOptions,
        backend: PackagerBackend,
        cwd: Optional[str] = None,
        peer_manifest_loader: Optional[PeerManifestLoader] = None,
    ):
        self.options = options
        self.backend = backend
        self.cwd = os.path.abspath(cwd or os.getcwd())
        self.peer_manifest_loader = peer_manifest_loader

    def _dependency_graph(self, package_root: str) -> DependencyGraph:
        logger.info("Fetch dependency graph from %s", package_root)
        graph = self.backend.get_prod_dependencies(package_root, Constants.DEPENDENCY_GRAPH_DEPTH)
        if graph.problems:
            logger.info("Ignoring %d NPM errors:", len(graph.problems))
            for problem in graph.problems:
                logger.info("=> %s", problem)
        return graph

    def _resolver(self, include: IncludeModules, package_json_path: str) -> DependencyResolver:
        root_manifest = read_manifest(package_json_path)
        graph = self._dependency_graph(os.path.dirname(package_json_path))
        loader = self.peer_manifest_loader
        if loader is None:
            loader = node_modules_loader(resolve_node_modules_dir(
                package_json_path, include.node_modules_relative_dir, cwd=self.cwd
            ))
        return DependencyResolver(root_manifest, graph, loader)

    def _copy_lockfile(self, source_dir: str, destination: str) -> bool:
        """Copy the lockfile of ``source_dir`` into ``destination``, rebased to it.

        Returns whether a lockfile was written. Read failures are logged and
        packaging goes on without one.
        """
        source = os.path.join(source_dir, self.backend.lockfile_name)
        if not os.path.isfile(source):
            return False
        try:
            with open(source, "r", encoding="utf-8") as f:
                contents = f.read()
            contents = self.backend.rebase_lockfile(os.path.relpath(source_dir, destination), contents)
            with open(os.path.join(destination, self.backend.lockfile_name), "w", encoding="utf-8") as f:
                f.write(contents)
        except (OSError, LockfileError) as e:
            logger.warning("Could not read lock file: %s", e)
            return False
        return True

    def pack(self, stats: CompileStats, build_id: str, build_path: Optional[str] = None) -> PackResult:
        """Package the externals of one compiled artifact.

        Args:
            stats: External references and output directory from the bundler.
            build_id: Name given to the synthetic package.
            build_path: Directory receiving the manifest and modules; defaults
                to ``stats.output_path``.

        Returns:
            PackResult: ``skipped`` when packaging is disabled or nothing
            needs installing.

        Raises:
            RuntimeDependencyMisplaced: an external is only a devDependency.
            SpawnError: a package manager command failed.
            WorkspaceInvariantViolation: the workspace install could not run.
        """
        build_path = os.path.abspath(build_path or stats.output_path)
        result = PackResult(build_path=build_path)
        include = self.options.include_modules
        if include is None:
            logger.debug("Module packaging disabled for %s", build_id)
            return result

        package_json_path = os.path.abspath(os.path.join(self.cwd, include.package_path))
        package_root = os.path.dirname(package_json_path)
        resolver = self._resolver(include, package_json_path)

        modules = resolver.resolve(
            stats.external_modules, include.force_include, include.force_exclude, log_excluded=True
        )
        result.modules = modules
        result.diagnostics = list(resolver.diagnostics)
        if not modules:
            logger.info("No external modules needed")
            return result

        scripts = script_map(self.options.scripts)
        sections = package_sections(read_manifest(package_json_path), self.backend.copy_package_section_names)

        with Timer() as total:
            if self.backend.installs_standalone:
                result.manifest = self._install_standalone(build_path, scripts)
            else:
                result.manifest, result.has_lockfile = self._install_staged(
                    stats, build_id, build_path, package_root, resolver, modules, sections, scripts
                )
            self._run_scripts(build_path, scripts)

        if is_debug_enabled(logger):
            logger.debug(
                "Packed externals",
                extra=extra_context(
                    event="pack",
                    component="staging",
                    action="pack",
                    outcome="success",
                    count=len(modules),
                    duration_ms=total.duration_ms(),
                    packager=self.backend.name,
                ),
            )
        return result

    def _install_staged(
        self,
        stats: CompileStats,
        build_id: str,
        build_path: str,
        package_root: str,
        resolver: DependencyResolver,
        modules: ResolvedModuleSet,
        sections: Dict[str, Any],
        scripts: Dict[str, str],
    ) -> Tuple[Dict[str, Any], bool]:
        include = self.options.include_modules
        staging_path = os.path.join(build_path, Constants.STAGING_DIR_NAME)
        os.makedirs(staging_path, exist_ok=True)

        manifest = build_composite_manifest(
            build_id, modules, os.path.relpath(package_root, staging_path), sections, scripts
        )
        write_manifest(os.path.join(staging_path, Constants.PACKAGE_JSON_FILE), manifest)

        has_lockfile = self._copy_lockfile(package_root, staging_path)
        if has_lockfile:
            logger.info("Package lock found - Using locked versions")

        logger.info("Packing external modules: %s", ", ".join(modules))
        with Timer() as t:
            self.backend.install(staging_path, self.options.options)
        logger.info("Package took [%d ms]", t.duration_ms())

        prod_modules = resolver.resolve(stats.external_modules, include.force_include, include.force_exclude)
        final_manifest = build_composite_manifest(
            build_id, prod_modules, os.path.relpath(package_root, build_path), sections, scripts
        )
        write_manifest(os.path.join(build_path, Constants.PACKAGE_JSON_FILE), final_manifest)

        with Timer() as t:
            if self.backend.must_copy_modules:
                staged_modules = os.path.join(staging_path, Constants.NODE_MODULES_DIR)
                if os.path.isdir(staged_modules):
                    shutil.copytree(
                        staged_modules,
                        os.path.join(build_path, Constants.NODE_MODULES_DIR),
                        symlinks=True,
                        dirs_exist_ok=True,
                    )
                else:
                    logger.warning("No modules were installed in %s", staging_path)
            if has_lockfile:
                # the installed lockfile describes the composite manifest
                self._copy_lockfile(staging_path, build_path)
        logger.info("Copy modules: %s [%d ms]", build_path, t.duration_ms())

        with Timer() as t:
            self.backend.prune(build_path, self.options.options)
        logger.info("Prune: %s [%d ms]", build_path, t.duration_ms())

        shutil.rmtree(staging_path, ignore_errors=True)
        return final_manifest, has_lockfile

    def _install_standalone(self, build_path: str, scripts: Dict[str, str]) -> Dict[str, Any]:
        logger.info("Installing workspace %s into %s", self.backend.cwd, build_path)
        with Timer() as t:
            self.backend.install(build_path, self.options.options)
        logger.info("Package took [%d ms]", t.duration_ms())

        manifest_path = os.path.join(build_path, Constants.PACKAGE_JSON_FILE)
        manifest = read_manifest(manifest_path)
        if scripts:
            manifest["scripts"] = {**(manifest.get("scripts") or {}), **scripts}
            write_manifest(manifest_path, manifest)
        return manifest

    def _run_scripts(self, build_path: str, scripts: Dict[str, str]) -> None:
        if not scripts:
            return
        with Timer() as t:
            self.backend.run_scripts(build_path, list(scripts))
        logger.info("Run scripts: %s [%d ms]", build_path, t.duration_ms())
