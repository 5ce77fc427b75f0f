"""Pytest configuration and shared fixtures.

Fixtures are organized by category:
- Model factories: packages with declared dependencies
- Collaborator fakes: an in-memory VCS
- Workspace fixtures: a temporary monorepo on disk
"""

import json
from pathlib import Path
from typing import Any

import pytest

from releaser.config import ReleasePolicyConfig
from releaser.models.package import Package, PackageIdentity
from releaser.observability.report import Report

# =============================================================================
# Model Factories
# =============================================================================


def make_package(
    name: str,
    version: str | None = "1.0.0",
    dependencies: dict[str, str] | None = None,
    dev_dependencies: dict[str, str] | None = None,
    private: bool = False,
    relative_path: str | None = None,
    root: Path | None = None,
) -> Package:
    """Build a Package without touching the filesystem."""
    identity = PackageIdentity.parse(name)
    relative_path = relative_path or f"packages/{identity.name}"
    manifest: dict[str, Any] = {"name": name}
    if version is not None:
        manifest["version"] = version
    if private:
        manifest["private"] = True

    ranges: dict[str, dict[str, str]] = {}
    if dependencies:
        manifest["dependencies"] = dict(dependencies)
        ranges["dependencies"] = dict(dependencies)
    if dev_dependencies:
        manifest["devDependencies"] = dict(dev_dependencies)
        ranges["devDependencies"] = dict(dev_dependencies)

    return Package(
        identity=identity,
        path=(root or Path("/workspace")) / relative_path,
        relative_path=relative_path,
        version=version,
        private=private,
        dependency_ranges=ranges,
        manifest=manifest,
    )


@pytest.fixture
def package_factory():
    """Factory fixture for packages."""
    return make_package


@pytest.fixture
def report() -> Report:
    """Report sink without console echo."""
    return Report()


@pytest.fixture
def policy() -> ReleasePolicyConfig:
    """Default release policy."""
    return ReleasePolicyConfig()


# =============================================================================
# Collaborator Fakes
# =============================================================================


class FakeVCS:
    """In-memory stand-in for GitRepository.

    Attributes:
        changes: path scope -> changed files (repository-relative)
        head_commit_files: files touched by HEAD
        tags_at_head: tags pointing at HEAD
    """

    def __init__(
        self,
        changes: dict[str, list[str]] | None = None,
        head_commit_files: list[str] | None = None,
        tags_at_head: list[str] | None = None,
        last_tag: str = "v1.0.0",
    ) -> None:
        self.changes = changes or {}
        self.head_commit_files = head_commit_files or []
        self.tags_at_head = tags_at_head or []
        self.last_tag = last_tag
        self.calls: list[tuple[str, str]] = []
        self.commits: list[str] = []
        self.tags: list[str] = []

    def changed_files(self, since_ref: str, path_scope: str) -> list[str]:
        self.calls.append((since_ref, path_scope))
        return list(self.changes.get(path_scope, []))

    def changed_files_in(self, revision: str = "HEAD") -> list[str]:
        return list(self.head_commit_files)

    def head_tags(self, pattern: str) -> list[str]:
        return list(self.tags_at_head)

    def last_release_tag(self, unstable: bool = False):
        from releaser.vcs.git import ReleaseTag

        return ReleaseTag.from_name(self.last_tag)

    def commit(self, message: str) -> None:
        self.commits.append(message)

    def tag(self, name: str) -> None:
        self.tags.append(name)


@pytest.fixture
def fake_vcs() -> FakeVCS:
    return FakeVCS()


# =============================================================================
# Workspace Fixtures
# =============================================================================


def write_manifest(directory: Path, manifest: dict[str, Any]) -> Path:
    """Write a package.json into a directory (created if needed)."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "package.json"
    path.write_text(json.dumps(manifest, indent=2) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def manifest_writer():
    """Factory fixture writing package.json files."""
    return write_manifest


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """
    Temporary monorepo:

        @demo/core      (no deps)
        @demo/utils     -> core
        @demo/cli       -> utils, core (dev)
        @demo/internal  private -> core
    """
    write_manifest(
        tmp_path,
        {"name": "demo-root", "private": True, "workspaces": ["packages/*"]},
    )
    write_manifest(tmp_path / "packages" / "core", {"name": "@demo/core", "version": "1.0.0"})
    write_manifest(
        tmp_path / "packages" / "utils",
        {
            "name": "@demo/utils",
            "version": "1.0.0",
            "dependencies": {"@demo/core": "workspace:^1.0.0", "lodash": "^4.17.21"},
        },
    )
    write_manifest(
        tmp_path / "packages" / "cli",
        {
            "name": "@demo/cli",
            "version": "1.0.0",
            "dependencies": {"@demo/utils": "workspace:~1.0.0"},
            "devDependencies": {"@demo/core": "workspace:*"},
        },
    )
    write_manifest(
        tmp_path / "packages" / "internal",
        {
            "name": "@demo/internal",
            "version": "1.0.0",
            "private": True,
            "dependencies": {"@demo/core": "workspace:1.0.0"},
        },
    )
    return tmp_path
