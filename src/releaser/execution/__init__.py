"""Execution engine for draining a package graph into the registry."""

from .orchestrator import PublishAction, ReleaseOrchestrator
from .throttle import PublishThrottle, ThrottleMetrics

__all__ = [
    "ReleaseOrchestrator",
    "PublishAction",
    "PublishThrottle",
    "ThrottleMetrics",
]
