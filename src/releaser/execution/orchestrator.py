"""Release Orchestrator - drain a package graph through a publish action.

Execution Strategy:
1. Generations: the current frontier of the graph is one batch. All
   publishes of a batch finish before the next frontier is computed, so the
   graph is never mutated while a batch is in flight.

2. Parallel publishes within a batch, bounded by the throttle.

3. Every processed package leaves the graph, failed or not, so unrelated
   subtrees keep making progress. What happens to the dependents of a failed
   package is the failure policy's call:
   - fail_group: dependents are skipped (reported with the failed dependency)
   - continue:   dependents are attempted anyway
   - fail_fast:  no new batch is scheduled after the failing one

4. An empty frontier on a non-empty graph is fatal (UnreleasablePackagesError).
"""

import asyncio
import time
from collections.abc import Awaitable, Callable

from ..config import FailurePolicy, ReleasePolicyConfig, ThrottleConfig
from ..dependency.graph import PackageGraph
from ..models.package import Package, PackageIdentity
from ..models.results import FailureKind, PublishResult, PublishStatus, ReleaseResult
from ..observability.logger import LogContext, get_logger
from ..observability.report import MessageCategory, Report
from ..utils.exceptions import UnreleasablePackagesError
from .throttle import PublishThrottle

logger = get_logger(__name__)

PublishAction = Callable[[Package], Awaitable[PublishResult]]


class ReleaseOrchestrator:
    """
    Publish every package of a graph in dependency order.

    Guarantees:
    - A package is dispatched only after every package it depends on was
      removed from the graph in an earlier batch
    - Independent packages are published concurrently up to the throttle bound
    - A publish failure never corrupts graph state or deadlocks the drain
    """

    def __init__(
        self,
        publish: PublishAction,
        policy: ReleasePolicyConfig | None = None,
        throttle: PublishThrottle | None = None,
        dry_run: bool = False,
    ) -> None:
        """
        Initialize orchestrator.

        Args:
            publish: Async callable packing and publishing one package
            policy: Release policy (failure handling, concurrency bound)
            throttle: Optional custom throttle (created from policy if None)
            dry_run: Walk the graph without invoking the publish action
        """
        self.publish = publish
        self.policy = policy or ReleasePolicyConfig()
        self.dry_run = dry_run

        if throttle is None:
            throttle = PublishThrottle(
                ThrottleConfig(max_concurrency=self.policy.max_concurrent_publishes)
            )
        self.throttle = throttle

        # Runtime state, kept so a caller can inspect partial progress after
        # an UnreleasablePackagesError
        self.result = ReleaseResult()
        # Packages that must not be published: identity -> failed dependency
        self.blocked: dict[PackageIdentity, str] = {}

    async def release(self, graph: PackageGraph, report: Report) -> ReleaseResult:
        """
        Drain the graph until it is empty.

        Args:
            graph: Package graph to drain (mutated: ends empty on success)
            report: Report sink for failures

        Returns:
            ReleaseResult with per-package outcomes

        Raises:
            UnreleasablePackagesError: If packages remain but none is processable
        """
        self.result = ReleaseResult()
        self.blocked = {}
        start = time.monotonic()

        logger.info(
            "Starting release",
            packages=len(graph),
            failure_policy=self.policy.failure_policy.value,
            max_concurrency=self.throttle.max_concurrency,
            dry_run=self.dry_run,
        )

        try:
            while not graph.is_empty():
                frontier = graph.frontier()
                if not frontier:
                    stuck = [p.name for p in graph.remaining_packages()]
                    report.report_error(
                        MessageCategory.UNRELEASABLE_PACKAGES,
                        f"Unreleasable packages (dependency cycle): {', '.join(stuck)}",
                    )
                    raise UnreleasablePackagesError(stuck)

                failed = await self._run_batch(graph, frontier, report)

                if failed and self.policy.failure_policy == FailurePolicy.FAIL_FAST:
                    self._skip_remaining(graph, "release stopped after a failed publish")
                    self.result.stopped_early = True
                    break
        finally:
            self.result.duration_seconds = time.monotonic() - start

        logger.info(
            "Release complete",
            published=len(self.result.published),
            failed=len(self.result.failed),
            skipped=len(self.result.skipped),
            batches=len(self.result.batches),
            duration_seconds=f"{self.result.duration_seconds:.2f}",
            throttle=self.throttle.get_metrics(),
        )
        return self.result

    async def _run_batch(
        self, graph: PackageGraph, frontier: list[Package], report: Report
    ) -> list[Package]:
        """
        Process one frontier and remove every member from the graph.

        Returns:
            Packages whose publish failed in this batch
        """
        batch_number = len(self.result.batches) + 1
        self.result.batches.append([p.name for p in frontier])

        to_publish = [p for p in frontier if p.identity not in self.blocked]
        logger.info(
            "Executing batch",
            batch_number=batch_number,
            packages=len(frontier),
            publishing=len(to_publish),
        )
        logger.verbose("Frontier", batch_number=batch_number, packages=[p.name for p in frontier])

        for package in frontier:
            failed_dependency = self.blocked.get(package.identity)
            if failed_dependency is not None:
                reason = f"dependency {failed_dependency} failed to publish"
                self.result.results.append(
                    PublishResult.skipped(package.name, package.version, reason)
                )
                report.report_warning(
                    MessageCategory.PUBLISH_FAILED,
                    f"Skipped {package.name}: {reason}",
                    package=package.name,
                )
                graph.remove(package)

        outcomes = await asyncio.gather(*(self._publish_one(p) for p in to_publish))

        failed: list[Package] = []
        for package, outcome in zip(to_publish, outcomes, strict=True):
            self.result.results.append(outcome)
            if outcome.status == PublishStatus.FAILED:
                failed.append(package)
                self._report_failure(outcome, report)
                if self.policy.failure_policy == FailurePolicy.FAIL_GROUP:
                    # Must run before removal: it walks the dependents edges
                    for dependent in graph.transitive_dependents(package):
                        self.blocked.setdefault(dependent, package.name)
            graph.remove(package)

        logger.info(
            "Batch completed",
            batch_number=batch_number,
            successful=len(to_publish) - len(failed),
            failed=len(failed),
            remaining=len(graph),
        )
        return failed

    async def _publish_one(self, package: Package) -> PublishResult:
        """
        Publish a single package inside a throttle slot.

        Unexpected exceptions from the publish action are turned into a failed
        result so the rest of the batch completes.
        """
        async with self.throttle:
            with LogContext(package=package.name):
                start = time.monotonic()
                try:
                    if self.dry_run:
                        outcome = PublishResult.published(
                            package.name, package.version, dry_run=True
                        )
                    else:
                        outcome = await self.publish(package)
                except Exception as e:
                    logger.exception("Publish action raised", error=str(e))
                    outcome = PublishResult.failed(
                        package.name,
                        package.version,
                        error_message=f"{type(e).__name__}: {e}",
                        failure_kind=FailureKind.INTERNAL,
                    )

                duration_ms = (time.monotonic() - start) * 1000
                outcome.duration_ms = duration_ms
                logger.verbose(
                    "Publish timing", status=outcome.status.value, duration_ms=duration_ms
                )
                if outcome.status == PublishStatus.SKIPPED:
                    self.throttle.record_success(duration_ms)
                    logger.info("Publish skipped", reason=outcome.error_message)
                elif outcome.success:
                    self.throttle.record_success(duration_ms)
                    logger.info("Published package", version=package.version, dry_run=self.dry_run)
                else:
                    self.throttle.record_failure(duration_ms)
                    logger.error(
                        "Publish failed",
                        version=package.version,
                        failure_kind=outcome.failure_kind.value if outcome.failure_kind else None,
                        status_code=outcome.status_code,
                        error=outcome.error_message,
                    )
                return outcome

    def _report_failure(self, outcome: PublishResult, report: Report) -> None:
        category = (
            MessageCategory.NETWORK_ERROR
            if outcome.failure_kind == FailureKind.TRANSPORT
            else MessageCategory.PUBLISH_FAILED
        )
        report.report_error(
            category,
            f"Failed to publish {outcome.package}@{outcome.version}: {outcome.error_message}",
            package=outcome.package,
        )

    def _skip_remaining(self, graph: PackageGraph, reason: str) -> None:
        """Mark every package still in the graph as skipped and empty the graph."""
        for package in graph.remaining_packages():
            self.result.results.append(PublishResult.skipped(package.name, package.version, reason))
            graph.remove(package)
        logger.warning("Stopped scheduling new batches", reason=reason)
