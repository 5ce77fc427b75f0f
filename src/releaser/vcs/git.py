"""Git repository adapter.

Thin wrapper around the git CLI providing the history queries the release
commands need. Every call runs `git` in the repository root through
subprocess and raises VCSError on a non-zero exit.

Operations:
- changed_files(since_ref, path_scope): files changed since a tag under a path
- changed_files_in(revision): files touched by a single commit
- head_tags(pattern): tags pointing at HEAD, sorted by version
- last_release_tag(unstable): most recent tag on the first-parent chain
- commit(message) / tag(name): record a version bump
"""

import re
import subprocess
from dataclasses import dataclass
from pathlib import Path

from ..observability.logger import get_logger
from ..utils.exceptions import PreconditionError, VCSError

logger = get_logger(__name__)

_GIT_TIMEOUT_SECONDS = 30.0

# Tags may be written as "<name>@<version>"; the version is what follows the last "@"
_TAG_RE = re.compile(r"^(?:.*@)?(.*)$")


@dataclass(frozen=True)
class ReleaseTag:
    """
    A release tag found in history.

    Attributes:
        name: Full tag name, used as the diff reference
        version: Version part of the tag with any ``name@`` prefix removed
    """

    name: str
    version: str

    @classmethod
    def from_name(cls, name: str) -> "ReleaseTag":
        match = _TAG_RE.match(name)
        version = match.group(1) if match else name
        return cls(name=name, version=version)


class GitRepository:
    """
    Git operations for one working tree.

    Usage:
        repo = GitRepository(Path("."))
        tag = repo.last_release_tag()
        files = repo.changed_files(tag.name, "packages/core")
    """

    def __init__(self, root: Path, timeout: float = _GIT_TIMEOUT_SECONDS) -> None:
        """
        Initialize repository adapter.

        Args:
            root: Working tree directory git commands run in
            timeout: Seconds before a git command is abandoned
        """
        self.root = root
        self.timeout = timeout

    def _run(self, *args: str) -> str:
        """
        Run a git command and return its standard output.

        Raises:
            VCSError: If git exits non-zero, times out or cannot be started
        """
        cmd = ["git", *args]
        command = " ".join(cmd)
        logger.trace("Running git command", command=command)

        try:
            proc = subprocess.run(
                cmd,
                cwd=str(self.root),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise VCSError(command, -1, f"Command timed out after {self.timeout}s") from e
        except OSError as e:
            raise VCSError(command, -1, str(e)) from e

        if proc.returncode != 0:
            raise VCSError(command, proc.returncode, proc.stderr)
        return proc.stdout

    @staticmethod
    def _lines(output: str) -> list[str]:
        return [line for line in output.splitlines() if line.strip()]

    def changed_files(self, since_ref: str, path_scope: str) -> list[str]:
        """
        Files changed since a reference, restricted to a path.

        Args:
            since_ref: Tag or commit to diff against
            path_scope: Directory relative to the repository root

        Returns:
            Repository-relative paths (POSIX separators)
        """
        return self._lines(self._run("diff", "--name-only", since_ref, "--", path_scope or "."))

    def changed_files_in(self, revision: str = "HEAD") -> list[str]:
        """
        Files touched by a single commit (merge commits included).

        Args:
            revision: Commit to inspect

        Returns:
            Repository-relative paths
        """
        return self._lines(
            self._run(
                "diff-tree", "--name-only", "--no-commit-id", "--root", "-r", "-c", revision
            )
        )

    def head_tags(self, pattern: str) -> list[str]:
        """
        Tags pointing at HEAD that match a glob, in version order.

        Args:
            pattern: Tag glob such as ``v*.*.*``
        """
        return self._lines(
            self._run("tag", "--sort", "version:refname", "--points-at", "HEAD", "--list", pattern)
        )

    def last_release_tag(self, unstable: bool = False) -> ReleaseTag:
        """
        Most recent tag reachable through first parents.

        Stable lookups skip prerelease tags (anything containing ``-``);
        unstable lookups consider only prerelease tags.

        Raises:
            PreconditionError: If no matching tag exists
        """
        selector = "--match" if unstable else "--exclude"
        try:
            output = self._run("describe", "--abbrev=0", "--first-parent", selector, "*-*")
        except VCSError as e:
            raise PreconditionError(
                f"No {'prerelease' if unstable else 'release'} tag found in history: {e.stderr.strip()}"
            ) from e

        tag = ReleaseTag.from_name(output.strip())
        logger.debug("Found last release tag", tag=tag.name, version=tag.version)
        return tag

    def commit(self, message: str) -> None:
        """Stage every change in the working tree and commit it."""
        self._run("add", ".")
        self._run("commit", "-m", message)
        logger.info("Created commit", message=message)

    def tag(self, name: str) -> None:
        """Create an annotated tag at HEAD whose message is its name."""
        self._run("tag", name, "-m", name)
        logger.info("Created tag", tag=name)
