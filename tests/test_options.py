"""Tests for options: packaging configuration parsing and validation."""

import json

import pytest

from common.errors import ConfigError
from constants import PackagerType
from options import IncludeModules, PackOptions, load_options, parse_packager


class TestPackOptions:
    """Parsing configuration mappings."""

    def test_defaults(self):
        options = PackOptions.from_dict({})
        assert options.packager is PackagerType.NPM
        assert options.include_modules == IncludeModules()
        assert options.include_modules.package_path == "./package.json"
        assert options.options.no_install is False
        assert options.scripts == []

    def test_full_document(self):
        options = PackOptions.from_dict({
            "packager": "yarn",
            "includeModules": {
                "packagePath": "../package.json",
                "forceInclude": ["pg"],
                "forceExclude": ["aws-sdk"],
                "nodeModulesRelativeDir": "../../",
            },
            "options": {"noFrozenLockfile": True, "ignoreScripts": True, "networkConcurrency": 4},
            "scripts": ["rm -rf node_modules/aws-sdk"],
        })
        assert options.packager is PackagerType.YARN
        assert options.include_modules.package_path == "../package.json"
        assert options.include_modules.force_include == ["pg"]
        assert options.include_modules.force_exclude == ["aws-sdk"]
        assert options.include_modules.node_modules_relative_dir == "../../"
        assert options.options.no_frozen_lockfile is True
        assert options.options.ignore_scripts is True
        assert options.options.network_concurrency == 4
        assert options.scripts == ["rm -rf node_modules/aws-sdk"]

    def test_include_modules_disabled(self):
        assert PackOptions.from_dict({"includeModules": False}).include_modules is None

    def test_include_modules_true(self):
        assert PackOptions.from_dict({"includeModules": True}).include_modules == IncludeModules()

    def test_nested_section(self):
        options = PackOptions.from_dict({"extpack": {"packager": "yarn-workspace"}})
        assert options.packager is PackagerType.YARN_WORKSPACE

    def test_unknown_packager(self):
        with pytest.raises(ConfigError) as excinfo:
            PackOptions.from_dict({"packager": "pnpm"})
        assert "packager" in str(excinfo.value)

    def test_unknown_key(self):
        with pytest.raises(ConfigError):
            PackOptions.from_dict({"includeModules": {"forceIncludes": ["typo"]}})

    def test_invalid_concurrency(self):
        with pytest.raises(ConfigError) as excinfo:
            PackOptions.from_dict({"options": {"networkConcurrency": 0}})
        assert "options/networkConcurrency" in str(excinfo.value)

    def test_not_a_mapping(self):
        with pytest.raises(ConfigError):
            PackOptions.from_dict(["npm"])


class TestParsePackager:
    """Packager key lookup."""

    def test_case_insensitive(self):
        assert parse_packager("YARN") is PackagerType.YARN

    def test_unknown(self):
        with pytest.raises(ConfigError) as excinfo:
            parse_packager("bower")
        assert "Could not find packager 'bower'" in str(excinfo.value)


class TestLoadOptions:
    """Loading configuration files."""

    def test_no_path(self):
        assert load_options(None) == PackOptions()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_options(str(tmp_path / "missing.yml"))

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "extpack.yml"
        path.write_text("packager: yarn\nincludeModules:\n  forceExclude: [aws-sdk]\n", encoding="utf-8")
        options = load_options(str(path))
        assert options.packager is PackagerType.YARN
        assert options.include_modules.force_exclude == ["aws-sdk"]

    def test_json_file(self, tmp_path):
        path = tmp_path / "extpack.json"
        path.write_text(json.dumps({"extpack": {"scripts": ["echo done"]}}), encoding="utf-8")
        assert load_options(str(path)).scripts == ["echo done"]

    def test_unparseable_file(self, tmp_path):
        path = tmp_path / "broken.yml"
        path.write_text("packager: [npm\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_options(str(path))
