"""Package identity and metadata models."""

from dataclasses import dataclass, field
from pathlib import Path

from ..constants import RELEASE_DEPENDENCY_KINDS


@dataclass(frozen=True)
class PackageIdentity:
    """
    Unique key of one releasable package.

    Two identities are equal iff they name the same package. Identities sort
    by their string form, which gives a stable order for logs and prompts.
    """

    scope: str | None
    name: str

    @classmethod
    def parse(cls, full_name: str) -> "PackageIdentity":
        """
        Parse a manifest name such as ``@scope/pkg`` or ``pkg``.

        Raises:
            ValueError: If the name is empty or a scoped name has no package part.
        """
        if not full_name:
            raise ValueError("Package name must not be empty")
        if full_name.startswith("@"):
            scope, sep, name = full_name[1:].partition("/")
            if not sep or not scope or not name:
                raise ValueError(f"Invalid scoped package name: {full_name!r}")
            return cls(scope=scope, name=name)
        return cls(scope=None, name=full_name)

    def __str__(self) -> str:
        return f"@{self.scope}/{self.name}" if self.scope else self.name

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, PackageIdentity):
            return NotImplemented
        return str(self) < str(other)


@dataclass
class Package:
    """
    One workspace package as seen by the release tool.

    Attributes:
        identity: Package identity parsed from the manifest name
        path: Absolute directory of the package
        relative_path: Directory relative to the workspace root (POSIX form)
        version: Current manifest version
        private: Private packages are never published
        dependency_ranges: dependency kind -> {dependency name: range}
        manifest: Raw manifest document (kept for rewriting and publishing)
    """

    identity: PackageIdentity
    path: Path
    relative_path: str
    version: str | None
    private: bool = False
    dependency_ranges: dict[str, dict[str, str]] = field(default_factory=dict)
    manifest: dict = field(default_factory=dict, repr=False, compare=False)

    @property
    def name(self) -> str:
        """Human-readable package name."""
        return str(self.identity)

    def dependency_identities(
        self, kinds: tuple[str, ...] | list[str] = RELEASE_DEPENDENCY_KINDS
    ) -> list[PackageIdentity]:
        """
        Identities this package declares a hard dependency on.

        Args:
            kinds: Dependency kinds that count for release ordering

        Returns:
            Identities in declaration order, without duplicates
        """
        seen: dict[PackageIdentity, None] = {}
        for kind in kinds:
            for dep_name in self.dependency_ranges.get(kind, {}):
                try:
                    seen.setdefault(PackageIdentity.parse(dep_name), None)
                except ValueError:
                    # Malformed names can never match a workspace package
                    continue
        return list(seen)

    def __hash__(self) -> int:
        return hash(self.identity)
