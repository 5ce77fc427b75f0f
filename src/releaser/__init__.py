"""Monorepo release tool - dependency-ordered versioning and publishing."""

from .cli import app
from .config import ReleaseConfig

__version__ = "0.1.0"
__all__ = ["app", "ReleaseConfig"]
