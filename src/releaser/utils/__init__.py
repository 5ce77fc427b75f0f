"""Utility functions and exceptions."""

from .exceptions import (
    CyclicDependencyError,
    PreconditionError,
    RegistryError,
    ReleaseError,
    UnreleasablePackagesError,
    VCSError,
)

__all__ = [
    "ReleaseError",
    "PreconditionError",
    "CyclicDependencyError",
    "UnreleasablePackagesError",
    "VCSError",
    "RegistryError",
]
