"""Dependency resolution for externalized modules."""

from .models import (
    CompileStats,
    DependencyGraph,
    DependencyNode,
    Diagnostic,
    DiagnosticKind,
    ExternalModuleRef,
    ResolvedModuleSet,
    load_compile_stats,
    split_module,
)
from .resolver import DependencyResolver, resolve_modules

__all__ = [
    "CompileStats",
    "DependencyGraph",
    "DependencyNode",
    "Diagnostic",
    "DiagnosticKind",
    "ExternalModuleRef",
    "ResolvedModuleSet",
    "load_compile_stats",
    "split_module",
    "DependencyResolver",
    "resolve_modules",
]
