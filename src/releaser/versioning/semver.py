"""Semantic version values used for release bumps."""

import re
from dataclasses import dataclass
from enum import Enum

_SEMVER_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)


class BumpKind(str, Enum):
    """Release increments offered when no explicit version is given."""

    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"


@dataclass(frozen=True)
class SemVer:
    """
    A MAJOR.MINOR.PATCH[-PRERELEASE] version.

    Build metadata is accepted by parse() and dropped, it never takes part in
    release decisions.
    """

    major: int
    minor: int
    patch: int
    prerelease: str | None = None

    @classmethod
    def parse(cls, text: str, prefix: str = "") -> "SemVer":
        """
        Parse a version string, optionally stripping a tag prefix first.

        Args:
            text: Version such as ``1.2.3`` or ``v1.2.3-beta.1``
            prefix: Tag prefix to strip if present (e.g. ``v``)

        Raises:
            ValueError: If text is not a valid semantic version
        """
        candidate = text.strip()
        if prefix and candidate.startswith(prefix):
            candidate = candidate[len(prefix) :]

        match = _SEMVER_RE.match(candidate)
        if match is None:
            raise ValueError(f"Invalid semantic version: {text!r}")
        major, minor, patch, prerelease = match.groups()
        return cls(int(major), int(minor), int(patch), prerelease)

    @classmethod
    def is_valid(cls, text: str) -> bool:
        return _SEMVER_RE.match(text.strip()) is not None

    @property
    def is_prerelease(self) -> bool:
        return self.prerelease is not None

    def bump(self, kind: BumpKind | str) -> "SemVer":
        """
        Next version for a release increment.

        A prerelease is promoted to its own release when the increment does
        not go past it: ``1.2.0-beta.1`` bumped by minor is ``1.2.0``.
        """
        kind = BumpKind(kind)
        if kind == BumpKind.MAJOR:
            if self.is_prerelease and self.minor == 0 and self.patch == 0:
                return SemVer(self.major, 0, 0)
            return SemVer(self.major + 1, 0, 0)
        if kind == BumpKind.MINOR:
            if self.is_prerelease and self.patch == 0:
                return SemVer(self.major, self.minor, 0)
            return SemVer(self.major, self.minor + 1, 0)
        if self.is_prerelease:
            return SemVer(self.major, self.minor, self.patch)
        return SemVer(self.major, self.minor, self.patch + 1)

    def candidates(self) -> dict[BumpKind, "SemVer"]:
        """Every bump of this version, in prompt order."""
        return {kind: self.bump(kind) for kind in BumpKind}

    def to_tag(self, prefix: str = "v") -> str:
        return f"{prefix}{self}"

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        return f"{base}-{self.prerelease}" if self.prerelease else base
