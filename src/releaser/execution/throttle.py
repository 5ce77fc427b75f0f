"""Publish Throttle - bounded concurrency for pack/publish operations.

Caps the number of publish operations in flight so a large release does not
trip registry rate limits. The bound comes from configuration, never from
the call site.

ARCHITECTURE NOTE:
A manual counter with an asyncio.Condition is used instead of a Semaphore so
the limit can be read and reported while tasks wait, and so the peak number
of simultaneous operations can be tracked.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

import structlog

from ..config import ThrottleConfig

logger = structlog.get_logger(__name__)


@dataclass
class ThrottleMetrics:
    """Counters collected while the throttle is in use."""

    total_operations: int = 0
    successful_operations: int = 0
    failed_operations: int = 0
    peak_active: int = 0
    total_latency_ms: float = 0.0

    @property
    def avg_latency_ms(self) -> float:
        if not self.total_operations:
            return 0.0
        return self.total_latency_ms / self.total_operations


class PublishThrottle:
    """
    Concurrency limiter for publish operations.

    Usage:
        async with throttle:
            await publish(package)
    """

    def __init__(self, config: ThrottleConfig | None = None) -> None:
        """
        Initialize throttle.

        Args:
            config: Throttle configuration (defaults to ThrottleConfig())
        """
        cfg = config or ThrottleConfig()
        if cfg.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {cfg.max_concurrency}")

        self.config = cfg
        self.max_concurrency = cfg.max_concurrency

        self._active_tasks = 0
        self._condition = asyncio.Condition()
        self.metrics = ThrottleMetrics()

        logger.debug("Publish throttle initialized", max_concurrency=cfg.max_concurrency)

    @property
    def active(self) -> int:
        """Operations currently holding a slot."""
        return self._active_tasks

    async def acquire(self) -> None:
        """Acquire a slot, waiting while the bound is reached."""
        async with self._condition:
            # WHILE not IF: spurious wakeups and limit changes
            while self._active_tasks >= self.max_concurrency:
                await self._condition.wait()

            self._active_tasks += 1
            self.metrics.peak_active = max(self.metrics.peak_active, self._active_tasks)
            logger.debug("Acquired publish slot", active=self._active_tasks)

    async def release(self) -> None:
        """Release a slot and wake one waiting task."""
        async with self._condition:
            if self._active_tasks > 0:
                self._active_tasks -= 1
                self._condition.notify(1)
                logger.debug("Released publish slot", active=self._active_tasks)
            else:
                # release() without a matching acquire()
                logger.warning("Attempted to release when no tasks active")

    async def __aenter__(self) -> "PublishThrottle":
        """Context manager entry - acquire slot."""
        await self.acquire()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit - release slot."""
        await self.release()

    def record_success(self, latency_ms: float) -> None:
        self.metrics.total_operations += 1
        self.metrics.successful_operations += 1
        self.metrics.total_latency_ms += latency_ms

    def record_failure(self, latency_ms: float = 0.0) -> None:
        self.metrics.total_operations += 1
        self.metrics.failed_operations += 1
        self.metrics.total_latency_ms += latency_ms

    def get_metrics(self) -> dict[str, Any]:
        """
        Snapshot of throttle state for logging.

        Returns:
            Dictionary of current counters
        """
        return {
            "max_concurrency": self.max_concurrency,
            "active_tasks": self._active_tasks,
            "peak_active": self.metrics.peak_active,
            "total_operations": self.metrics.total_operations,
            "successful_operations": self.metrics.successful_operations,
            "failed_operations": self.metrics.failed_operations,
            "avg_latency_ms": round(self.metrics.avg_latency_ms, 1),
        }
