"""Change Set Resolver - which packages need a version bump.

Purpose:
-------
Computes the set of workspace packages a release must bump, in two steps.

1. Base set. A package is included when:
   - it is forced by name on the command line, or
   - the "release everything" flag is set, or
   - git reports at least one changed file under its directory since the
     reference tag that does not match any ignore pattern.

2. Implicit closure. Configuration may declare couplings that no manifest
   expresses (e.g. a compiler plugin that must be re-released whenever the
   runtime it inlines changes). The base set is closed under that relation:

       while a full scan adds something:
           for dependent, requires in implicit_dependencies:
               if dependent not in set and any(r in set for r in requires):
                   add dependent

   This is a plain fixed-point iteration, not a topological sort: the
   implicit relation may contain cycles ({a: [b], b: [a]}) and the loop
   still terminates because the set only grows and is bounded by the number
   of packages.

Ignore patterns:
---------------
Patterns use minimatch syntax (braces, extglobs, `**` globstars; dot files
match). A pattern without a slash is matched against the file's base name,
any other pattern against its full repository-relative path, so `*.md`
ignores every markdown file and `**/test/**` ignores any test directory.
"""

from collections.abc import Iterable
from typing import Protocol

import structlog
from wcmatch import glob

from ..constants import DEFAULT_IGNORE_CHANGES
from ..models.package import Package

logger = structlog.get_logger(__name__)

IGNORE_FLAGS = (
    glob.GLOBSTAR | glob.BRACE | glob.EXTGLOB | glob.DOTGLOB | glob.MATCHBASE | glob.FORCEUNIX
)


class ChangedFilesProvider(Protocol):
    """The slice of the VCS collaborator the resolver needs."""

    def changed_files(self, since_ref: str, path_scope: str) -> list[str]: ...


class ChangeSetResolver:
    """
    Resolve the packages requiring a version bump for one release.

    Extracts change detection from the version command so it can be tested
    without a git checkout.
    """

    def __init__(
        self,
        vcs: ChangedFilesProvider,
        ignore_patterns: Iterable[str] = DEFAULT_IGNORE_CHANGES,
        implicit_dependencies: dict[str, list[str]] | None = None,
    ) -> None:
        """
        Initialize the resolver.

        Args:
            vcs: Source of changed file paths
            ignore_patterns: Glob patterns for files that never trigger a release
            implicit_dependencies: package name -> names it implicitly requires
        """
        self.vcs = vcs
        self.ignore_patterns = list(ignore_patterns)
        self.implicit_dependencies = implicit_dependencies or {}

    def is_ignored(self, file_path: str) -> bool:
        """
        Check a repository-relative path against the ignore patterns.

        Args:
            file_path: Path as reported by git (POSIX separators)

        Returns:
            True if any pattern matches
        """
        return any(
            glob.globmatch(file_path, pattern, flags=IGNORE_FLAGS)
            for pattern in self.ignore_patterns
        )

    def relevant_changes(self, package: Package, since_ref: str) -> list[str]:
        """
        Changed files under a package that count towards a release.

        Args:
            package: Package to inspect
            since_ref: Git reference (usually the last release tag)

        Returns:
            Changed, non-ignored file paths
        """
        changed = self.vcs.changed_files(since_ref, package.relative_path)
        return [path for path in changed if path and not self.is_ignored(path)]

    def base_change_set(
        self,
        packages: Iterable[Package],
        since_ref: str,
        forced: Iterable[str] = (),
        release_all: bool = False,
    ) -> list[Package]:
        """
        Packages changed directly, before the implicit closure.

        Args:
            packages: Candidate packages
            since_ref: Git reference to diff against
            forced: Package names to include regardless of changes
            release_all: Include every candidate

        Returns:
            Directly changed packages
        """
        forced_names = set(forced)
        package_list = list(packages)

        unknown = forced_names - {p.name for p in package_list}
        if unknown:
            logger.warning("Forced packages not found in workspace", packages=sorted(unknown))

        changed: list[Package] = []
        for package in package_list:
            if release_all or package.name in forced_names:
                changed.append(package)
                continue

            files = self.relevant_changes(package, since_ref)
            if files:
                logger.debug(
                    "Package has relevant changes",
                    package=package.name,
                    files=len(files),
                    sample=files[:5],
                )
                changed.append(package)

        return changed

    def close_over_implicit(
        self, changed: Iterable[Package], packages: Iterable[Package]
    ) -> list[Package]:
        """
        Close a change set under the implicit dependency relation.

        Args:
            changed: Base change set
            packages: Every workspace package (the closure can only add these)

        Returns:
            The closed set, each package exactly once
        """
        by_name = {p.name: p for p in packages}
        result: dict[str, Package] = {p.name: p for p in changed}

        # Fixed point: bounded by len(by_name) productive scans
        scans = 0
        added = True
        while added:
            added = False
            scans += 1
            for dependent, requires in self.implicit_dependencies.items():
                if dependent in result or dependent not in by_name:
                    continue
                trigger = next((name for name in requires if name in result), None)
                if trigger is not None:
                    result[dependent] = by_name[dependent]
                    added = True
                    logger.info(
                        "Added package through implicit dependency",
                        package=dependent,
                        because_of=trigger,
                    )

        logger.debug("Implicit closure reached fixed point", scans=scans, size=len(result))
        return list(result.values())

    def resolve(
        self,
        packages: Iterable[Package],
        since_ref: str,
        forced: Iterable[str] = (),
        release_all: bool = False,
    ) -> list[Package]:
        """
        Compute the full, deterministically ordered set of packages to bump.

        Args:
            packages: Candidate workspace packages
            since_ref: Git reference to diff against
            forced: Package names to include regardless of changes
            release_all: Include every candidate

        Returns:
            Packages to bump, ordered by relative path
        """
        package_list = list(packages)
        base = self.base_change_set(package_list, since_ref, forced, release_all)
        closed = self.close_over_implicit(base, package_list)

        logger.info(
            "Change set resolved",
            since=since_ref,
            direct=len(base),
            total=len(closed),
        )
        return sorted(closed, key=lambda p: p.relative_path)
