"""Manifest mutation - version bumps and sibling range rewriting.

Range rewriting rules (only ranges using the `workspace:` protocol change):

    workspace:^1.0.0  ->  workspace:^2.0.0     operator kept
    workspace:~1.0.0  ->  workspace:~2.0.0
    workspace:1.0.0   ->  workspace:2.0.0
    workspace:*       ->  unchanged            resolved at publish time
    workspace:^ / ~   ->  unchanged
    ^1.0.0            ->  unchanged            not a workspace range

Publishing resolves the remaining `workspace:` ranges into plain ranges a
registry consumer understands (see resolve_workspace_ranges).
"""

import json
from collections.abc import Iterable
from typing import Any

import structlog

from ..constants import MANIFEST_FILENAME, RELEASE_DEPENDENCY_KINDS, WORKSPACE_PROTOCOL
from ..models.package import Package
from ..versioning.plan import VersionPlan
from ..versioning.semver import SemVer

logger = structlog.get_logger(__name__)

_RANGE_OPERATORS = ("^", "~")

_PUBLISHED_DEPENDENCY_KINDS = (
    "dependencies",
    "devDependencies",
    "peerDependencies",
    "optionalDependencies",
)


def rewrite_range(current: str, new_version: str) -> str:
    """
    Point a workspace range at a new version, keeping its operator.

    Args:
        current: Declared range
        new_version: Version the sibling is moving to

    Returns:
        The rewritten range, or current unchanged when no rule applies
    """
    if not current.startswith(WORKSPACE_PROTOCOL):
        return current

    body = current[len(WORKSPACE_PROTOCOL) :]
    operator = body[:1] if body[:1] in _RANGE_OPERATORS else ""
    version = body[len(operator) :]

    # Only a concrete version is rewritten; *, ^, ~ and complex ranges stay
    if not version or not SemVer.is_valid(version):
        return current
    return f"{WORKSPACE_PROTOCOL}{operator}{new_version}"


def resolve_workspace_range(current: str, version: str) -> str:
    """
    Turn a workspace range into the range published to the registry.

    ``workspace:*`` pins the exact version, ``workspace:^`` and
    ``workspace:~`` become ``^version`` / ``~version``, anything else just
    loses the protocol.
    """
    if not current.startswith(WORKSPACE_PROTOCOL):
        return current

    body = current[len(WORKSPACE_PROTOCOL) :]
    if body in ("", "*"):
        return version
    if body in _RANGE_OPERATORS:
        return f"{body}{version}"
    return body


def resolve_workspace_ranges(manifest: dict[str, Any], versions: dict[str, str]) -> dict[str, Any]:
    """
    Copy of a manifest with every workspace range made registry-friendly.

    Args:
        manifest: Raw package.json document
        versions: Workspace package name -> current version

    Returns:
        A new manifest document (the input is not modified)
    """
    resolved = dict(manifest)
    for kind in _PUBLISHED_DEPENDENCY_KINDS:
        ranges = manifest.get(kind)
        if not isinstance(ranges, dict):
            continue
        new_ranges = {}
        for dep_name, dep_range in ranges.items():
            sibling_version = versions.get(dep_name)
            if isinstance(dep_range, str) and sibling_version is not None:
                new_ranges[dep_name] = resolve_workspace_range(dep_range, sibling_version)
            else:
                new_ranges[dep_name] = dep_range
        resolved[kind] = new_ranges
    return resolved


class ManifestMutator:
    """
    Apply version changes to package manifests and persist them.

    Modified packages are tracked so persist() only writes what changed.
    """

    def __init__(self, dependency_kinds: Iterable[str] = RELEASE_DEPENDENCY_KINDS) -> None:
        self.dependency_kinds = tuple(dependency_kinds)
        self._dirty: dict[str, Package] = {}

    @property
    def modified(self) -> list[Package]:
        return list(self._dirty.values())

    def set_version(self, package: Package, version: str) -> None:
        """Set a package's version in memory and in its manifest document."""
        package.manifest["version"] = version
        package.version = version
        self._dirty[package.name] = package

    def rewrite_dependency(
        self, package: Package, kind: str, dep_name: str, new_version: str
    ) -> bool:
        """
        Rewrite one declared range of a package.

        Returns:
            True if the range changed
        """
        ranges = package.manifest.get(kind)
        if not isinstance(ranges, dict) or dep_name not in ranges:
            return False

        current = ranges[dep_name]
        updated = rewrite_range(current, new_version)
        if updated == current:
            return False

        ranges[dep_name] = updated
        package.dependency_ranges.setdefault(kind, {})[dep_name] = updated
        self._dirty[package.name] = package
        logger.debug(
            "Rewrote dependency range",
            package=package.name,
            dependency=dep_name,
            kind=kind,
            old=current,
            new=updated,
        )
        return True

    def apply_plan(self, plan: VersionPlan) -> list[Package]:
        """
        Set every planned package to the plan version and update the ranges
        they declare on each other.

        Returns:
            Packages whose manifest changed
        """
        planned = plan.package_names
        for package in plan.packages:
            self.set_version(package, plan.next_version)
            for kind in self.dependency_kinds:
                for dep_name in list(package.manifest.get(kind) or {}):
                    if dep_name in planned:
                        self.rewrite_dependency(package, kind, dep_name, plan.next_version)

        logger.info(
            "Applied version plan",
            version=plan.next_version,
            packages=len(plan.packages),
            modified=len(self._dirty),
        )
        return self.modified

    def persist(self) -> list[Package]:
        """
        Write every modified manifest back to disk.

        Manifests are written as JSON with two-space indentation and a
        trailing newline.

        Returns:
            Packages written
        """
        written = []
        for package in self._dirty.values():
            manifest_path = package.path / MANIFEST_FILENAME
            with open(manifest_path, "w", encoding="utf-8") as f:
                f.write(json.dumps(package.manifest, indent=2, ensure_ascii=False) + "\n")
            written.append(package)
            logger.debug("Wrote manifest", package=package.name, path=str(manifest_path))

        self._dirty.clear()
        return written
