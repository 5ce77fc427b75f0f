"""Dependency management for release ordering."""

from .graph import GraphNode, PackageGraph, PackageNode
from .resolver import ChangeSetResolver

__all__ = [
    "GraphNode",
    "PackageGraph",
    "PackageNode",
    "ChangeSetResolver",
]
