"""Version arithmetic and release planning."""

from .plan import VersionChange, VersionPlan
from .semver import BumpKind, SemVer

__all__ = [
    "BumpKind",
    "SemVer",
    "VersionChange",
    "VersionPlan",
]
