"""Result types for publish operations."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class PublishStatus(str, Enum):
    """Outcome of one package in a release run."""

    PUBLISHED = "published"
    FAILED = "failed"
    SKIPPED = "skipped"


class FailureKind(str, Enum):
    """Why a publish failed."""

    REJECTED = "rejected"  # Registry answered with an error status
    TRANSPORT = "transport"  # Registry could not be reached / protocol failure
    INTERNAL = "internal"  # Pack step or unexpected exception


@dataclass
class PublishResult:
    """
    Result of publishing a single package.

    Attributes:
        package: Package name
        version: Version that was (or would have been) published
        status: Final status
        failure_kind: Failure classification, None unless status is FAILED
        status_code: HTTP status code from the registry, if any
        error_message: Error details if failed, skip reason if skipped
        duration_ms: Time spent in the publish action
        dry_run: Whether the publish action was simulated
    """

    package: str
    version: str | None
    status: PublishStatus
    failure_kind: FailureKind | None = None
    status_code: int | None = None
    error_message: str | None = None
    duration_ms: float | None = None
    dry_run: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        """True if the package was published."""
        return self.status == PublishStatus.PUBLISHED

    @classmethod
    def published(cls, package: str, version: str | None, **kwargs: Any) -> "PublishResult":
        return cls(package=package, version=version, status=PublishStatus.PUBLISHED, **kwargs)

    @classmethod
    def failed(
        cls,
        package: str,
        version: str | None,
        error_message: str,
        failure_kind: FailureKind,
        status_code: int | None = None,
        **kwargs: Any,
    ) -> "PublishResult":
        return cls(
            package=package,
            version=version,
            status=PublishStatus.FAILED,
            failure_kind=failure_kind,
            status_code=status_code,
            error_message=error_message,
            **kwargs,
        )

    @classmethod
    def skipped(cls, package: str, version: str | None, reason: str) -> "PublishResult":
        return cls(
            package=package, version=version, status=PublishStatus.SKIPPED, error_message=reason
        )


@dataclass
class ReleaseResult:
    """
    Overall result of draining a package graph.

    Attributes:
        results: Per-package results in completion order
        batches: Package names of every dispatched batch, in order
        duration_seconds: Total duration in seconds
        stopped_early: True if a fail-fast policy stopped scheduling
    """

    results: list[PublishResult] = field(default_factory=list)
    batches: list[list[str]] = field(default_factory=list)
    duration_seconds: float = 0.0
    stopped_early: bool = False

    @property
    def published(self) -> list[str]:
        return [r.package for r in self.results if r.status == PublishStatus.PUBLISHED]

    @property
    def failed(self) -> list[str]:
        return [r.package for r in self.results if r.status == PublishStatus.FAILED]

    @property
    def skipped(self) -> list[str]:
        return [r.package for r in self.results if r.status == PublishStatus.SKIPPED]

    @property
    def is_complete_success(self) -> bool:
        """
        Check if every package was published.

        Returns:
            bool: True if no failures and no skipped packages, False otherwise.
        """
        return not self.failed and not self.skipped

    def get_summary(self) -> str:
        """
        Get a human-readable summary.

        Returns:
            str: Summary string with counts and batch count.
        """
        return (
            f"{len(self.published)} published, {len(self.failed)} failed, "
            f"{len(self.skipped)} skipped in {len(self.batches)} batches "
            f"({self.duration_seconds:.1f}s)"
        )
