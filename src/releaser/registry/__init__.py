"""Package registry adapters: packing, publish documents and HTTP client."""

from .client import RegistryClient, escape_package_name
from .packer import Packer
from .payloads import PublishBody, RegistryErrorResponse, build_publish_body, tarball_url
from .publisher import RegistryPublisher

__all__ = [
    "RegistryClient",
    "escape_package_name",
    "Packer",
    "PublishBody",
    "RegistryErrorResponse",
    "build_publish_body",
    "tarball_url",
    "RegistryPublisher",
]
