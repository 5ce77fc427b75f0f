"""Data models for the monorepo release tool."""

from .package import Package, PackageIdentity
from .results import FailureKind, PublishResult, PublishStatus, ReleaseResult

__all__ = [
    # Packages
    "Package",
    "PackageIdentity",
    # Results
    "FailureKind",
    "PublishResult",
    "PublishStatus",
    "ReleaseResult",
]
