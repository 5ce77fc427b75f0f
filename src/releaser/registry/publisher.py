"""Registry publisher - the pack/publish action handed to the orchestrator."""

import asyncio

import structlog

from ..config import ReleasePolicyConfig
from ..models.package import Package
from ..models.results import FailureKind, PublishResult
from ..utils.exceptions import RegistryError
from ..workspace.manifest import resolve_workspace_ranges
from .client import RegistryClient
from .packer import Packer
from .payloads import build_publish_body

logger = structlog.get_logger(__name__)


class RegistryPublisher:
    """
    Pack a package and publish it to the registry.

    Callable as ``await publisher(package)``. Workspace ranges in the shipped
    manifest are resolved against the versions of the workspace packages.
    """

    def __init__(
        self,
        client: RegistryClient,
        workspace_versions: dict[str, str],
        policy: ReleasePolicyConfig | None = None,
        packer: Packer | None = None,
    ) -> None:
        """
        Initialize publisher.

        Args:
            client: Registry client
            workspace_versions: Workspace package name -> version
            policy: Release policy (dist-tag, skip_published)
            packer: Optional custom packer
        """
        self.client = client
        self.workspace_versions = workspace_versions
        self.policy = policy or ReleasePolicyConfig()
        self.packer = packer or Packer()

    async def __call__(self, package: Package) -> PublishResult:
        manifest = resolve_workspace_ranges(package.manifest, self.workspace_versions)

        if self.policy.skip_published and package.version:
            try:
                exists = await self.client.version_exists(package.name, package.version)
            except RegistryError as e:
                failure_kind = (
                    FailureKind.TRANSPORT if e.status_code is None else FailureKind.REJECTED
                )
                return PublishResult.failed(
                    package.name,
                    package.version,
                    error_message=str(e),
                    failure_kind=failure_kind,
                    status_code=e.status_code,
                )
            if exists:
                logger.info("Version already published", version=package.version)
                return PublishResult.skipped(
                    package.name,
                    package.version,
                    f"{package.name}@{package.version} is already published",
                )

        # Packing reads the whole package tree from disk
        tarball = await asyncio.to_thread(self.packer.pack, package, manifest)
        body = build_publish_body(
            manifest,
            tarball,
            registry_url=self.client.base_url,
            tag=self.policy.dist_tag,
            access=self.client.config.access,
        )
        result = await self.client.publish(body)
        result.metadata["tarball_size"] = len(tarball)
        return result
