"""Pydantic models for registry publish documents and error responses.

Publish body (PUT /<escaped name>):

    {
      "_id": "@scope/pkg",
      "name": "@scope/pkg",
      "dist-tags": {"latest": "1.2.3"},
      "versions": {"1.2.3": {<manifest>, "_id": "@scope/pkg@1.2.3",
                             "dist": {"shasum", "integrity", "tarball"}}},
      "access": "public",                               (optional)
      "_attachments": {"@scope/pkg-1.2.3.tgz": {"content_type", "data", "length"}}
    }

`shasum` is the hex SHA-1 of the tarball, `integrity` the Subresource
Integrity string (`sha512-<base64>`), `data` the base64 tarball.
"""

import base64
import hashlib
from typing import Any

from pydantic import BaseModel, Field

from ..utils.exceptions import PreconditionError


class DistInfo(BaseModel):
    """Distribution metadata of one published version."""

    shasum: str
    integrity: str
    tarball: str


class Attachment(BaseModel):
    """Inline tarball attached to the publish document."""

    content_type: str = "application/octet-stream"
    data: str
    length: int


class PublishBody(BaseModel):
    """Document PUT to the registry to publish a version."""

    id: str = Field(..., alias="_id")
    name: str
    description: str | None = None
    dist_tags: dict[str, str] = Field(..., alias="dist-tags")
    versions: dict[str, dict[str, Any]]
    access: str | None = None
    attachments: dict[str, Attachment] = Field(..., alias="_attachments")

    model_config = {"populate_by_name": True}

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class RegistryErrorResponse(BaseModel):
    """Error document returned by the registry on rejected requests."""

    error: str | None = None
    message: str | None = None
    reason: str | None = None

    model_config = {"extra": "allow"}

    def get_message(self) -> str | None:
        """Most relevant message (priority: error > message > reason)."""
        return self.error or self.message or self.reason


def tarball_url(registry_url: str, name: str, version: str) -> str:
    """Canonical download URL of a version tarball."""
    base_name = name.rsplit("/", 1)[-1]
    return f"{registry_url.rstrip('/')}/{name}/-/{base_name}-{version}.tgz"


def build_publish_body(
    manifest: dict[str, Any],
    tarball: bytes,
    registry_url: str,
    tag: str,
    access: str | None = None,
) -> PublishBody:
    """
    Build the publish document for one package version.

    Args:
        manifest: Manifest to publish (workspace ranges already resolved)
        tarball: Packed tarball bytes
        registry_url: Registry base URL (for the tarball URL)
        tag: Dist-tag to point at the version
        access: Optional access level for scoped packages

    Returns:
        Validated PublishBody

    Raises:
        PreconditionError: If the manifest lacks a name or version
    """
    name = manifest.get("name")
    version = manifest.get("version")
    if not name:
        raise PreconditionError("Cannot publish a package without a name")
    if not version:
        raise PreconditionError(f"Cannot publish {name}: manifest has no version")

    description = manifest.get("description")
    version_document = dict(manifest)
    version_document["_id"] = f"{name}@{version}"
    version_document["dist"] = DistInfo(
        shasum=hashlib.sha1(tarball).hexdigest(),
        integrity="sha512-" + base64.b64encode(hashlib.sha512(tarball).digest()).decode("ascii"),
        tarball=tarball_url(registry_url, name, version),
    ).model_dump()

    return PublishBody(
        _id=name,
        name=name,
        description=description if isinstance(description, str) else None,
        **{"dist-tags": {tag: version}},
        versions={version: version_document},
        access=access,
        _attachments={
            f"{name}-{version}.tgz": Attachment(
                data=base64.b64encode(tarball).decode("ascii"), length=len(tarball)
            )
        },
    )
