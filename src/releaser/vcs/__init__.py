"""Version control adapters."""

from .git import GitRepository, ReleaseTag

__all__ = ["GitRepository", "ReleaseTag"]
