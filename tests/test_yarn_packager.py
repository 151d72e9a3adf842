"""Tests for packagers.yarn: yarn classic backend."""

import json
from unittest.mock import patch

from common.process import ProcessResult
from options import PackagerOptions
from packagers.base import stderr_matcher
from packagers.yarn import IGNORED_YARN_LINES, YarnPackager, convert_trees, rebase_yarn_lockfile

LOCKFILE = '''# yarn lockfile v1


"local-pkg@file:../lib/local":
  version "1.0.0"

left-pad@^1.3.0:
  version "1.3.0"
  resolved "https://registry.yarnpkg.com/left-pad/-/left-pad-1.3.0.tgz"
'''


def _result(stdout=""):
    return ProcessResult(command="yarn", args=[], returncode=0, stdout=stdout)


class TestRebaseLockfile:
    """Regex rebasing of relative references in yarn.lock text."""

    def test_relative_reference(self):
        rebased = rebase_yarn_lockfile("../..", LOCKFILE)
        assert '"local-pkg@file:../../../lib/local":' in rebased
        assert "left-pad@^1.3.0:" in rebased

    def test_dot_slash_reference(self):
        rebased = YarnPackager().rebase_lockfile("..", 'a@./vendor/a, b@1.0.0:\n')
        assert rebased == 'a@.././vendor/a, b@1.0.0:\n'

    def test_no_references_is_unchanged(self):
        text = 'left-pad@^1.3.0:\n  version "1.3.0"\n'
        assert rebase_yarn_lockfile("..", text) == text


class TestStderrMatcher:
    """Benign yarn output on stderr."""

    def test_warnings_and_info(self):
        matcher = stderr_matcher(IGNORED_YARN_LINES)
        assert matcher("warning package.json: No license field\ninfo fsevents skipped\n")

    def test_errors(self):
        matcher = stderr_matcher(IGNORED_YARN_LINES)
        assert not matcher("error An unexpected error occurred\n")

    def test_stop_line(self):
        matcher = stderr_matcher(["warn "], stop_line="{")
        assert matcher("warn x\n{\nanything goes\n")


class TestDependencyListing:
    """Converting yarn list --json output."""

    TREE = {
        "type": "tree",
        "data": {
            "type": "list",
            "trees": [
                {"name": "left-pad@1.3.0", "children": []},
                {"name": "@scope/a@2.0.0", "children": [{"name": "b@1.0.0"}]},
            ],
        },
    }

    def test_convert_trees(self):
        nodes = convert_trees(self.TREE["data"]["trees"])
        assert nodes["left-pad"].version == "1.3.0"
        assert nodes["@scope/a"].dependencies["b"].version == "1.0.0"

    def test_get_prod_dependencies(self):
        stdout = json.dumps({"type": "info", "data": "hint"}) + "\n" + json.dumps(self.TREE) + "\n"
        with patch("packagers.base.spawn_process", return_value=_result(stdout)) as spawn:
            graph = YarnPackager().get_prod_dependencies("/tmp/project", 1)
        assert spawn.call_args[0][1] == ["list", "--depth=1", "--json", "--production"]
        assert graph.version_of("b", "@scope/a") == "1.0.0"
        assert graph.version_of("left-pad") == "1.3.0"

    def test_missing_tree(self):
        with patch("packagers.base.spawn_process", return_value=_result("not json\n")):
            graph = YarnPackager().get_prod_dependencies("/tmp/project")
        assert graph.dependencies == {}


class TestYarnCommands:
    """Install and prune flags."""

    def test_install_defaults(self):
        with patch("packagers.base.spawn_process", return_value=_result()) as spawn:
            YarnPackager().install("/tmp/staging")
        assert spawn.call_args[0][1] == ["install", "--non-interactive", "--frozen-lockfile"]

    def test_install_flags(self):
        options = PackagerOptions(no_frozen_lockfile=True, ignore_scripts=True, network_concurrency=8)
        with patch("packagers.base.spawn_process", return_value=_result()) as spawn:
            YarnPackager().install("/tmp/staging", options)
        assert spawn.call_args[0][1] == [
            "install", "--non-interactive", "--ignore-scripts", "--network-concurrency", "8",
        ]

    def test_prune_reinstalls(self):
        with patch("packagers.base.spawn_process", return_value=_result()) as spawn:
            YarnPackager().prune("/tmp/build", PackagerOptions(ignore_scripts=True))
        assert spawn.call_args[0][1] == ["install", "--non-interactive", "--frozen-lockfile", "--ignore-scripts"]

    def test_no_install(self):
        with patch("packagers.base.spawn_process") as spawn:
            YarnPackager().prune("/tmp/build", PackagerOptions(no_install=True))
        spawn.assert_not_called()

    def test_capabilities(self):
        packager = YarnPackager()
        assert packager.lockfile_name == "yarn.lock"
        assert packager.copy_package_section_names == ("resolutions",)
        assert packager.must_copy_modules is False
