"""Integration tests for the version command.

Runs ReleaseRunner.version() against a temporary workspace on disk with git
replaced by an in-memory fake, covering:
- change detection with ignore patterns and implicit dependencies
- manifest rewriting (version and sibling ranges)
- prompts (chosen bump, declined confirmations)
- commit and tag creation
"""

import io
import json

import pytest
from rich.console import Console

from releaser.config import ChangeDetectionConfig, ReleaseConfig
from releaser.execution.runner import ReleaseRunner
from releaser.observability.report import MessageCategory, Report
from releaser.prompts import Prompter

pytestmark = pytest.mark.integration


def read(workspace, name):
    return json.loads((workspace / "packages" / name / "package.json").read_text())


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=200)


@pytest.fixture
def make_runner(workspace, fake_vcs, console):
    def _make(config=None, assume_yes=True, cwd=None):
        report = Report()
        runner = ReleaseRunner(
            config or ReleaseConfig(),
            console,
            root=workspace,
            cwd=cwd,
            report=report,
            prompter=Prompter(console, assume_yes=assume_yes),
            vcs=fake_vcs,
        )
        return runner, report

    return _make


class TestVersionWorkflow:
    """End-to-end version bumps."""

    def test_bumps_changed_packages_and_tags(self, workspace, fake_vcs, make_runner):
        fake_vcs.changes = {
            "packages/core": ["packages/core/src/index.ts"],
            "packages/utils": ["packages/utils/README.md"],
        }
        runner, report = make_runner()

        exit_code = runner.version("1.1.0")

        assert exit_code == 0
        assert read(workspace, "core")["version"] == "1.1.0"
        # README-only change is ignored
        assert read(workspace, "utils")["version"] == "1.0.0"
        assert fake_vcs.commits == ["v1.1.0"]
        assert fake_vcs.tags == ["v1.1.0"]
        assert ("v1.0.0", "packages/core") in fake_vcs.calls

    def test_sibling_ranges_rewritten(self, workspace, fake_vcs, make_runner):
        fake_vcs.changes = {
            "packages/core": ["packages/core/src/index.ts"],
            "packages/utils": ["packages/utils/src/index.ts"],
            "packages/cli": ["packages/cli/bin/cli.js"],
        }
        runner, _ = make_runner()

        runner.version("2.0.0")

        utils = read(workspace, "utils")
        cli = read(workspace, "cli")
        assert utils["dependencies"] == {"@demo/core": "workspace:^2.0.0", "lodash": "^4.17.21"}
        assert cli["dependencies"] == {"@demo/utils": "workspace:~2.0.0"}
        assert cli["devDependencies"] == {"@demo/core": "workspace:*"}

    def test_manifest_formatting(self, workspace, fake_vcs, make_runner):
        fake_vcs.changes = {"packages/core": ["packages/core/index.js"]}
        runner, _ = make_runner()

        runner.version("1.0.1")

        text = (workspace / "packages" / "core" / "package.json").read_text()
        assert text == '{\n  "name": "@demo/core",\n  "version": "1.0.1"\n}\n'

    def test_implicit_dependencies_pulled_in(self, workspace, fake_vcs, make_runner):
        fake_vcs.changes = {"packages/core": ["packages/core/index.js"]}
        config = ReleaseConfig(
            changes=ChangeDetectionConfig(implicit_dependencies={"@demo/cli": ["@demo/core"]})
        )
        runner, _ = make_runner(config)

        runner.version("1.1.0")

        assert read(workspace, "cli")["version"] == "1.1.0"
        assert read(workspace, "utils")["version"] == "1.0.0"

    def test_forced_and_all(self, workspace, fake_vcs, make_runner):
        runner, _ = make_runner()

        runner.version("1.0.1", forced=["@demo/utils"])
        assert read(workspace, "utils")["version"] == "1.0.1"
        assert read(workspace, "core")["version"] == "1.0.0"

        runner.version("1.0.2", release_all=True)
        assert {read(workspace, n)["version"] for n in ("core", "utils", "cli", "internal")} == {
            "1.0.2"
        }

    def test_custom_tag_prefix(self, workspace, fake_vcs, make_runner):
        runner, _ = make_runner()

        runner.version("3.0.0", release_all=True, tag_prefix="release-")

        assert fake_vcs.tags == ["release-3.0.0"]

    def test_nothing_changed(self, fake_vcs, make_runner):
        runner, report = make_runner()

        assert runner.version("1.1.0") == 0
        assert fake_vcs.commits == []
        assert "No packages changed since v1.0.0" in [m.text for m in report.messages]


class TestVersionPrompts:
    """Interactive paths."""

    def test_prompted_bump(self, workspace, fake_vcs, make_runner, mocker):
        fake_vcs.changes = {"packages/core": ["packages/core/index.js"]}
        mocker.patch("releaser.prompts.Prompt.ask", return_value="minor")
        runner, _ = make_runner()

        runner.version()

        assert read(workspace, "core")["version"] == "1.1.0"
        assert fake_vcs.tags == ["v1.1.0"]

    def test_plan_declined(self, workspace, fake_vcs, make_runner, mocker):
        fake_vcs.changes = {"packages/core": ["packages/core/index.js"]}
        mocker.patch("releaser.prompts.Confirm.ask", return_value=False)
        runner, report = make_runner(assume_yes=False)

        assert runner.version("1.1.0") == 0
        assert read(workspace, "core")["version"] == "1.0.0"
        assert fake_vcs.commits == []
        assert not report.has_errors()

    def test_commit_declined_keeps_manifests(self, workspace, fake_vcs, make_runner, mocker):
        fake_vcs.changes = {"packages/core": ["packages/core/index.js"]}
        confirm = mocker.patch("releaser.prompts.Confirm.ask", side_effect=[True, False])
        runner, _ = make_runner(assume_yes=False)

        runner.version("1.1.0")

        assert read(workspace, "core")["version"] == "1.1.0"
        assert fake_vcs.commits == []
        assert fake_vcs.tags == []
        assert confirm.call_args_list[1][0][0] == (
            'Are you sure you want to commit and tag these changes as "v1.1.0"?'
        )


class TestVersionPreconditions:
    """Usage errors leave the workspace untouched."""

    def test_invalid_version(self, workspace, fake_vcs, make_runner):
        fake_vcs.changes = {"packages/core": ["packages/core/index.js"]}
        runner, report = make_runner()

        assert runner.version("banana") == 1
        assert report.errors_in(MessageCategory.USAGE_ERROR)
        assert read(workspace, "core")["version"] == "1.0.0"

    def test_not_at_root(self, workspace, fake_vcs, make_runner):
        runner, report = make_runner(cwd=workspace / "packages")

        assert runner.version("1.1.0") == 1
        assert report.errors_in(MessageCategory.USAGE_ERROR)[0].text == (
            'The "release-tool version" command must be run in the root workspace.'
        )
        assert fake_vcs.calls == []
