"""Version plan: the next version and the packages that receive it."""

from dataclasses import dataclass, field

from ..constants import DEFAULT_TAG_VERSION_PREFIX
from ..models.package import Package


@dataclass
class VersionChange:
    """One line of the pending-change list shown before confirmation."""

    package: str
    current: str | None
    next: str

    def __str__(self) -> str:
        return f"{self.package}: {self.current or '(none)'} => {self.next}"


@dataclass
class VersionPlan:
    """
    A fixed-mode release: every planned package moves to the same version.

    Attributes:
        next_version: Version every package is set to
        packages: Packages to bump, ordered by relative path
        tag_prefix: Prefix of the git tag created for the release
    """

    next_version: str
    packages: list[Package] = field(default_factory=list)
    tag_prefix: str = DEFAULT_TAG_VERSION_PREFIX

    @property
    def tag_name(self) -> str:
        return f"{self.tag_prefix}{self.next_version}"

    @property
    def package_names(self) -> set[str]:
        return {p.name for p in self.packages}

    def is_empty(self) -> bool:
        return not self.packages

    def changes(self) -> list[VersionChange]:
        return [VersionChange(p.name, p.version, self.next_version) for p in self.packages]
