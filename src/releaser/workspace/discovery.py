"""Workspace discovery - find every package of a monorepo.

The workspace root is the nearest directory (walking up from the working
directory) whose package.json declares `workspaces`. Workspace entries are
glob patterns relative to the declaring manifest; a matched directory is a
package if it holds a package.json. Packages may declare workspaces of
their own, which are expanded the same way (breadth first).

Manifests are validated with pydantic. Unknown manifest fields are kept so
the raw document can be rewritten and published unchanged.
"""

import json
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..constants import MANIFEST_FILENAME
from ..models.package import Package, PackageIdentity
from ..utils.exceptions import PreconditionError

logger = structlog.get_logger(__name__)

_DEPENDENCY_FIELDS = (
    "dependencies",
    "devDependencies",
    "peerDependencies",
    "optionalDependencies",
)


class PackageManifest(BaseModel):
    """Fields of package.json the release tool reads."""

    name: str | None = None
    version: str | None = None
    private: bool = False
    workspaces: list[str] = Field(default_factory=list)
    dependencies: dict[str, str] = Field(default_factory=dict)
    devDependencies: dict[str, str] = Field(default_factory=dict)
    peerDependencies: dict[str, str] = Field(default_factory=dict)
    optionalDependencies: dict[str, str] = Field(default_factory=dict)

    model_config = {"extra": "allow"}

    @field_validator("workspaces", mode="before")
    @classmethod
    def _normalize_workspaces(cls, value: Any) -> Any:
        # Yarn also accepts {"packages": [...], "nohoist": [...]}
        if isinstance(value, dict):
            return value.get("packages", [])
        return value if value is not None else []

    def dependency_ranges(self) -> dict[str, dict[str, str]]:
        return {kind: dict(getattr(self, kind)) for kind in _DEPENDENCY_FIELDS if getattr(self, kind)}


def read_manifest(manifest_path: Path) -> tuple[PackageManifest, dict[str, Any]]:
    """
    Read and validate a package.json.

    Returns:
        The validated model and the raw document

    Raises:
        PreconditionError: If the file is not valid JSON or not a manifest
    """
    try:
        with open(manifest_path, encoding="utf-8") as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise PreconditionError(f"Invalid JSON in {manifest_path}: {e}") from e

    if not isinstance(raw, dict):
        raise PreconditionError(
            f"Invalid manifest {manifest_path}: expected object, got {type(raw).__name__}"
        )

    try:
        return PackageManifest.model_validate(raw), raw
    except ValidationError as e:
        raise PreconditionError(f"Invalid manifest {manifest_path}: {e}") from e


def find_workspace_root(start: Path) -> Path:
    """
    Walk up from a directory to the manifest declaring workspaces.

    Raises:
        PreconditionError: If no workspace root exists above start
    """
    current = start.resolve()
    for directory in (current, *current.parents):
        manifest_path = directory / MANIFEST_FILENAME
        if manifest_path.is_file():
            manifest, _ = read_manifest(manifest_path)
            if manifest.workspaces:
                return directory
    raise PreconditionError(f"No workspace root (package.json with workspaces) above {start}")


def ensure_workspace_root(cwd: Path, root: Path, command: str) -> None:
    """
    Refuse to run a command anywhere but the workspace root.

    Raises:
        PreconditionError: If cwd is not the root
    """
    if cwd.resolve() != root.resolve():
        raise PreconditionError(f'The "{command}" command must be run in the root workspace.')


class WorkspaceDiscovery:
    """
    Enumerate the packages of a workspace.

    Features:
    - Nested workspaces expanded breadth first
    - Duplicate matches collapsed
    - Deterministic order (relative path)
    """

    def __init__(self, root: Path) -> None:
        """
        Initialize discovery.

        Args:
            root: Workspace root directory
        """
        self.root = root.resolve()

    def _relative(self, directory: Path) -> str:
        return directory.relative_to(self.root).as_posix()

    def _expand(self, base: Path, patterns: list[str]) -> list[Path]:
        directories: list[Path] = []
        for pattern in patterns:
            if pattern.startswith("!"):
                logger.debug("Negated workspace pattern ignored", pattern=pattern)
                continue
            for match in sorted(base.glob(pattern.rstrip("/"))):
                if match.is_dir() and (match / MANIFEST_FILENAME).is_file():
                    directories.append(match.resolve())
        return directories

    def discover(self) -> list[Package]:
        """
        Find every workspace package below the root (the root excluded).

        Returns:
            Packages sorted by relative path

        Raises:
            PreconditionError: If the root has no manifest or a manifest is invalid
        """
        root_manifest_path = self.root / MANIFEST_FILENAME
        if not root_manifest_path.is_file():
            raise PreconditionError(f"No {MANIFEST_FILENAME} found in {self.root}")
        root_manifest, _ = read_manifest(root_manifest_path)

        packages: dict[str, Package] = {}
        queue = self._expand(self.root, root_manifest.workspaces)
        seen: set[Path] = {self.root}

        while queue:
            directory = queue.pop(0)
            if directory in seen:
                continue
            seen.add(directory)

            manifest, raw = read_manifest(directory / MANIFEST_FILENAME)
            if manifest.workspaces:
                queue.extend(self._expand(directory, manifest.workspaces))

            if not manifest.name:
                logger.warning("Workspace package without a name skipped", path=str(directory))
                continue
            try:
                identity = PackageIdentity.parse(manifest.name)
            except ValueError as e:
                raise PreconditionError(f"{directory / MANIFEST_FILENAME}: {e}") from e

            if identity in {p.identity for p in packages.values()}:
                logger.warning("Duplicate workspace package ignored", package=manifest.name)
                continue

            relative_path = self._relative(directory)
            packages[relative_path] = Package(
                identity=identity,
                path=directory,
                relative_path=relative_path,
                version=manifest.version,
                private=manifest.private,
                dependency_ranges=manifest.dependency_ranges(),
                manifest=raw,
            )

        logger.info("Discovered workspace packages", root=str(self.root), count=len(packages))
        return [packages[key] for key in sorted(packages)]


def public_packages(packages: list[Package]) -> list[Package]:
    """Packages that may be published (private ones filtered out)."""
    return [p for p in packages if not p.private]
