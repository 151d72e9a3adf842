"""Tests for packagers.npm: npm backend."""

import json
import logging
from unittest.mock import patch

import pytest

from common.errors import LockfileError, SpawnError
from common.process import ProcessResult, ProcessStatus
from options import PackagerOptions
from packagers.npm import NpmPackager, _is_benign_ls_stderr, rebase_npm_file_reference


def _result(stdout="", stderr="", returncode=0, status=ProcessStatus.SUCCEEDED, warnings=None):
    return ProcessResult(
        command="npm", args=[], returncode=returncode, stdout=stdout, stderr=stderr,
        status=status, warnings=warnings or [],
    )


class TestRebaseFileReference:
    """Relative file: references in package-lock.json."""

    def test_relative_file_reference(self):
        assert rebase_npm_file_reference("../..", "file:lib/local") == "file:../../lib/local"

    def test_absolute_and_plain_versions_unchanged(self):
        assert rebase_npm_file_reference("../..", "file:/opt/lib") == "file:/opt/lib"
        assert rebase_npm_file_reference("../..", "1.2.3") == "1.2.3"

    def test_windows_separators(self):
        assert rebase_npm_file_reference("..\\..", "file:lib") == "file:../../lib"


class TestRebaseLockfile:
    """Walking parsed package-lock documents."""

    def test_v1_nested_dependencies(self):
        lockfile = {
            "lockfileVersion": 1,
            "dependencies": {
                "local": {"version": "file:local", "dependencies": {"inner": {"version": "file:inner"}}},
                "left-pad": {"version": "1.3.0", "requires": {"x": "1"}},
            },
        }
        rebased = json.loads(NpmPackager().rebase_lockfile("..", json.dumps(lockfile)))
        assert rebased["dependencies"]["local"]["version"] == "file:../local"
        assert rebased["dependencies"]["local"]["dependencies"]["inner"]["version"] == "file:../inner"
        assert rebased["dependencies"]["left-pad"]["version"] == "1.3.0"

    def test_v2_packages(self):
        lockfile = {
            "lockfileVersion": 2,
            "packages": {
                "": {"dependencies": {"local": "file:local", "left-pad": "^1.3.0"}},
                "node_modules/left-pad": {"version": "1.3.0"},
            },
        }
        rebased = json.loads(NpmPackager().rebase_lockfile("..", json.dumps(lockfile)))
        assert rebased["packages"][""]["dependencies"] == {"local": "file:../local", "left-pad": "^1.3.0"}
        assert rebased["packages"]["node_modules/left-pad"]["version"] == "1.3.0"

    def test_no_references_is_unchanged(self):
        lockfile = {"lockfileVersion": 2, "packages": {"node_modules/a": {"version": "1.0.0"}}}
        assert json.loads(NpmPackager().rebase_lockfile("..", json.dumps(lockfile))) == lockfile

    def test_invalid_json(self):
        with pytest.raises(LockfileError):
            NpmPackager().rebase_lockfile("..", "{not json")


class TestBenignStderr:
    """npm ls warnings that must not fail dependency listing."""

    def test_known_problems(self):
        stderr = "npm ERR! extraneous: foo@1.0.0\nnpm ERR! missing: bar@^2\nnpm WARN config\n"
        assert _is_benign_ls_stderr(stderr)

    def test_npm7_prefix_and_json_tail(self):
        stderr = "npm error code ELSPROBLEMS\nnpm error invalid: x\n{\n  \"error\": {}\n}\n"
        assert _is_benign_ls_stderr(stderr)

    def test_unknown_error(self):
        assert not _is_benign_ls_stderr("npm ERR! code E404\n")


class TestNpmCommands:
    """Commands issued by the npm backend."""

    def test_get_prod_dependencies(self):
        stdout = json.dumps({
            "dependencies": {"express": {"version": "4.18.2", "dependencies": {"debug": {"version": "2.6.9"}}}},
            "problems": ["extraneous: foo"],
        })
        with patch("packagers.base.spawn_process", return_value=_result(stdout)) as spawn:
            graph = NpmPackager().get_prod_dependencies("/tmp/project", 1)
        spawn.assert_called_once()
        assert spawn.call_args[0][1] == ["ls", "--omit=dev", "--json", "--depth=1"]
        assert spawn.call_args.kwargs["cwd"] == "/tmp/project"
        assert graph.version_of("debug", "express") == "2.6.9"
        assert graph.problems == ["extraneous: foo"]

    def test_peer_dep_missing_is_logged(self, caplog):
        warning = "npm ERR! peer dep missing: react@^17, required by react-dom@17.0.2"
        result = _result("{}", warning, 1, ProcessStatus.SUCCEEDED_WITH_WARNINGS, [warning])
        with patch("packagers.base.spawn_process", return_value=result), caplog.at_level(logging.WARNING):
            NpmPackager().get_prod_dependencies("/tmp/project")
        assert "peer dep missing" in caplog.text

    def test_unparseable_listing(self):
        with patch("packagers.base.spawn_process", return_value=_result("oops")):
            with pytest.raises(LockfileError):
                NpmPackager().get_prod_dependencies("/tmp/project")

    def test_failed_listing_raises(self):
        result = _result("", "npm ERR! code E404", 1, ProcessStatus.FAILED)
        with patch("packagers.base.spawn_process", return_value=result):
            with pytest.raises(SpawnError):
                NpmPackager().get_prod_dependencies("/tmp/project")

    def test_install(self):
        with patch("packagers.base.spawn_process", return_value=_result()) as spawn:
            NpmPackager().install("/tmp/staging", PackagerOptions(ignore_scripts=True))
        assert spawn.call_args[0][1] == ["install", "--ignore-scripts"]

    def test_install_skipped(self):
        with patch("packagers.base.spawn_process") as spawn:
            NpmPackager().install("/tmp/staging", PackagerOptions(no_install=True))
        spawn.assert_not_called()

    def test_prune(self):
        with patch("packagers.base.spawn_process", return_value=_result()) as spawn:
            NpmPackager().prune("/tmp/build")
        assert spawn.call_args[0][1] == ["prune"]

    def test_run_scripts_in_order(self):
        with patch("packagers.base.spawn_process", return_value=_result()) as spawn:
            NpmPackager().run_scripts("/tmp/build", ["script0", "script1"])
        assert [c[0][1] for c in spawn.call_args_list] == [["run", "script0"], ["run", "script1"]]
