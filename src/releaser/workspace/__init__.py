"""Workspace discovery and manifest handling."""

from .discovery import (
    PackageManifest,
    WorkspaceDiscovery,
    ensure_workspace_root,
    find_workspace_root,
    public_packages,
    read_manifest,
)
from .manifest import ManifestMutator, resolve_workspace_ranges, rewrite_range

__all__ = [
    "PackageManifest",
    "WorkspaceDiscovery",
    "ensure_workspace_root",
    "find_workspace_root",
    "public_packages",
    "read_manifest",
    "ManifestMutator",
    "resolve_workspace_ranges",
    "rewrite_range",
]
