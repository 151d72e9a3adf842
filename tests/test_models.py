"""Tests for resolution data models and the builtin filter."""

import json

import pytest

from resolution.builtins import is_builtin_module
from resolution.models import (
    CompileStats,
    DependencyGraph,
    ExternalModuleRef,
    ResolvedModuleSet,
    load_compile_stats,
    split_module,
)


class TestBuiltins:
    """Node.js builtin module detection."""

    @pytest.mark.parametrize("name", ["fs", "path", "fs/promises", "node:fs", "node:test"])
    def test_builtin(self, name):
        assert is_builtin_module(name)

    @pytest.mark.parametrize("name", ["left-pad", "@aws-sdk/client-s3", "fsevents"])
    def test_not_builtin(self, name):
        assert not is_builtin_module(name)

    def test_rejects_non_string(self):
        with pytest.raises(TypeError):
            is_builtin_module(42)


class TestSplitModule:
    """Scope-aware name@version splitting."""

    def test_plain(self):
        assert split_module("left-pad@1.2.0") == ("left-pad", "1.2.0")

    def test_scoped(self):
        assert split_module("@aws/sdk@1.0.0") == ("@aws/sdk", "1.0.0")

    def test_unversioned(self):
        assert split_module("@aws/sdk") == ("@aws/sdk", None)
        assert split_module("left-pad") == ("left-pad", None)

    def test_version_with_at(self):
        assert split_module("alias@npm:other@1.0.0") == ("alias", "npm:other@1.0.0")


class TestCompileStats:
    """Loading the bundler's external module report."""

    def test_filters_builtins_and_duplicates(self):
        stats = CompileStats.from_dict({
            "outputPath": "/tmp/out",
            "externalModules": [
                {"external": "left-pad"},
                {"external": "fs"},
                {"external": "node:path"},
                {"external": "debug", "origin": "express"},
                {"external": "left-pad"},
                "pg",
            ],
        })
        assert stats.output_path == "/tmp/out"
        assert stats.external_modules == [
            ExternalModuleRef("left-pad"),
            ExternalModuleRef("debug", origin="express"),
            ExternalModuleRef("pg"),
        ]

    def test_missing_output_path(self):
        with pytest.raises(ValueError):
            CompileStats.from_dict({"externalModules": []})

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "stats.json"
        path.write_text(json.dumps({"outputPath": "dist", "externalModules": []}), encoding="utf-8")
        stats = load_compile_stats(str(path))
        assert stats.output_path == "dist"
        assert stats.external_modules == []


class TestDependencyGraph:
    """Graph conversion from package manager output."""

    def test_from_tree(self):
        graph = DependencyGraph.from_tree({
            "problems": ["missing: foo@1"],
            "dependencies": {
                "express": {"version": "4.18.2", "dependencies": {"debug": {"version": "2.6.9"}}},
                "broken": "not-a-node",
            },
        })
        assert graph.problems == ["missing: foo@1"]
        assert graph.dependencies["express"].dependencies["debug"].version == "2.6.9"
        assert "broken" not in graph.dependencies

    def test_from_non_mapping(self):
        assert DependencyGraph.from_tree(None).dependencies == {}


class TestResolvedModuleSet:
    """Ordered module set semantics."""

    def test_remove_names_ignores_versions(self):
        modules = ResolvedModuleSet(["a@1.0.0", "a@2.0.0", "@s/b@1.0.0", "c"])
        removed = modules.remove_names(["a", "@s/b"])
        assert removed == ["a@1.0.0", "a@2.0.0", "@s/b@1.0.0"]
        assert list(modules) == ["c"]

    def test_equality_ignores_order(self):
        assert ResolvedModuleSet(["a", "b"]) == ResolvedModuleSet(["b", "a"])
        assert len(ResolvedModuleSet(["a", "a"])) == 1
