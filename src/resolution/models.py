"""Data models for dependency resolution."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from resolution.builtins import is_builtin_module

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExternalModuleRef:
    """A module the bundler left for the runtime loader to supply.

    ``origin`` is the first non-relative importer, or None for a first-level
    import.
    """
    external: str
    origin: Optional[str] = None


@dataclass
class CompileStats:
    """What the bundler hands over: output directory and external references."""
    output_path: str
    external_modules: List[ExternalModuleRef] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompileStats":
        """Build stats from the bundler's JSON shape, dropping builtin modules."""
        output_path = data.get("outputPath") or data.get("output_path")
        if not output_path:
            raise ValueError("Compile stats are missing 'outputPath'")
        refs: List[ExternalModuleRef] = []
        seen = set()
        for entry in data.get("externalModules", data.get("external_modules", [])) or []:
            if isinstance(entry, str):
                ref = ExternalModuleRef(external=entry)
            elif isinstance(entry, dict) and entry.get("external"):
                ref = ExternalModuleRef(external=entry["external"], origin=entry.get("origin") or None)
            else:
                logger.debug("Skipping malformed external entry: %r", entry)
                continue
            if is_builtin_module(ref.external):
                continue
            if ref in seen:
                continue
            seen.add(ref)
            refs.append(ref)
        return cls(output_path=str(output_path), external_modules=refs)


def load_compile_stats(path: str) -> CompileStats:
    """Load bundler stats from a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return CompileStats.from_dict(json.load(f))


def split_module(module: str) -> Tuple[str, Optional[str]]:
    """Split ``name@version`` into (name, version), keeping a leading @scope.

    >>> split_module("@aws/sdk@1.0.0")
    ('@aws/sdk', '1.0.0')
    >>> split_module("left-pad")
    ('left-pad', None)
    """
    parts = module.split("@")
    # If we have a scoped module we have to re-add the @
    if module.startswith("@"):
        parts = parts[1:]
        parts[0] = "@" + parts[0]
    name = parts[0]
    version = "@".join(parts[1:]) if len(parts) > 1 else None
    return name, (version or None)


def join_module(name: str, version: Optional[str]) -> str:
    return f"{name}@{version}" if version else name


@dataclass
class DependencyNode:
    """One package in a dependency graph."""
    version: Optional[str] = None
    dependencies: Dict[str, "DependencyNode"] = field(default_factory=dict)


@dataclass
class DependencyGraph:
    """Production dependency tree reported by a package manager.

    ``dependencies`` maps first-level package names to their nodes; each node
    nests its own sub-dependencies up to the requested depth.
    """
    dependencies: Dict[str, DependencyNode] = field(default_factory=dict)
    problems: List[str] = field(default_factory=list)

    @classmethod
    def from_tree(cls, data: Optional[Dict[str, Any]]) -> "DependencyGraph":
        """Convert an ``npm ls --json`` shaped mapping into a graph.

        Walks the nested ``dependencies`` maps with an explicit stack.
        """
        graph = cls()
        if not isinstance(data, dict):
            return graph
        problems = data.get("problems") or []
        graph.problems = [str(p) for p in problems] if isinstance(problems, list) else []

        stack: List[Tuple[Dict[str, DependencyNode], Any]] = [
            (graph.dependencies, data.get("dependencies"))
        ]
        while stack:
            target, source = stack.pop()
            if not isinstance(source, dict):
                continue
            for name, info in source.items():
                if not isinstance(info, dict):
                    continue
                version = info.get("version")
                node = DependencyNode(version=str(version) if version else None)
                target[name] = node
                stack.append((node.dependencies, info.get("dependencies")))
        return graph

    def version_of(self, name: str, origin: Optional[str] = None) -> Optional[str]:
        """Version of ``name`` as a sub-dependency of ``origin``, else top-level."""
        if origin:
            origin_node = self.dependencies.get(origin)
            if origin_node is not None:
                child = origin_node.dependencies.get(name)
                if child is not None and child.version:
                    return child.version
        node = self.dependencies.get(name)
        if node is not None and node.version:
            return node.version
        return None


class ResolvedModuleSet:
    """Ordered set of ``name@version`` strings selected for installation."""

    def __init__(self, modules: Iterable[str] = ()):
        self._modules: Dict[str, None] = {}
        for module in modules:
            self.add(module)

    def add(self, module: str) -> bool:
        if module in self._modules:
            return False
        self._modules[module] = None
        return True

    def remove_names(self, names: Iterable[str]) -> List[str]:
        """Remove every entry whose base name is in ``names``; return removed."""
        excluded = set(names)
        removed = [m for m in self._modules if split_module(m)[0] in excluded]
        for module in removed:
            del self._modules[module]
        return removed

    def names(self) -> List[str]:
        return [split_module(m)[0] for m in self._modules]

    def __contains__(self, module: object) -> bool:
        return module in self._modules

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._modules))

    def __len__(self) -> int:
        return len(self._modules)

    def __bool__(self) -> bool:
        return bool(self._modules)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ResolvedModuleSet):
            return set(self._modules) == set(other._modules)
        return NotImplemented

    def __repr__(self) -> str:
        return f"ResolvedModuleSet({list(self._modules)!r})"


class DiagnosticKind(Enum):
    """Non-fatal findings collected during resolution."""
    VERSION_UNRESOLVED = "version_unresolved"
    PEER_DEPENDENCY_LOOKUP_FAILED = "peer_dependency_lookup_failed"
    OPTIONAL_PEER_SKIPPED = "optional_peer_skipped"
    DEV_DEPENDENCY_EXCLUDED = "dev_dependency_excluded"
    MODULE_EXCLUDED = "module_excluded"


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    module: str
    message: str
