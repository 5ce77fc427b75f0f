"""Unit tests for RegistryPublisher."""

import json

import pytest
import respx
from httpx import Response

from releaser.config import RegistryConfig, ReleasePolicyConfig
from releaser.models.results import FailureKind, PublishStatus
from releaser.registry import RegistryClient, RegistryPublisher

REGISTRY = "https://registry.example.com"


@pytest.fixture
async def client():
    client = RegistryClient(
        RegistryConfig(url=REGISTRY, retry_attempts=1, retry_wait_min=0, retry_wait_max=0)
    )
    yield client
    await client.close()


@pytest.fixture
def cli_package(tmp_path, package_factory, manifest_writer):
    package = package_factory(
        "cli",
        version="2.0.0",
        dependencies={"core": "workspace:^", "chalk": "^5.0.0"},
        relative_path="packages/cli",
        root=tmp_path,
    )
    manifest_writer(package.path, package.manifest)
    (package.path / "index.js").write_text("console.log('hi');\n")
    return package


class TestRegistryPublisher:
    """RegistryPublisher.__call__()"""

    @pytest.mark.asyncio
    async def test_publishes_with_resolved_workspace_ranges(self, client, cli_package):
        publisher = RegistryPublisher(client, {"core": "2.0.0", "cli": "2.0.0"})

        with respx.mock(base_url=REGISTRY) as respx_mock:
            respx_mock.get("/cli").mock(return_value=Response(404))
            route = respx_mock.put("/cli").mock(return_value=Response(200, json={"ok": True}))

            result = await publisher(cli_package)

        assert result.status == PublishStatus.PUBLISHED
        assert result.metadata["tarball_size"] > 0
        payload = json.loads(route.calls.last.request.content)
        shipped = payload["versions"]["2.0.0"]
        assert shipped["dependencies"] == {"core": "^2.0.0", "chalk": "^5.0.0"}
        assert "_attachments" in payload
        # The manifest on disk keeps its workspace ranges
        assert cli_package.manifest["dependencies"]["core"] == "workspace:^"

    @pytest.mark.asyncio
    async def test_already_published_version_skipped(self, client, cli_package):
        publisher = RegistryPublisher(client, {})

        with respx.mock(base_url=REGISTRY, assert_all_called=False) as respx_mock:
            respx_mock.get("/cli").mock(
                return_value=Response(200, json={"versions": {"2.0.0": {}}})
            )
            put = respx_mock.put("/cli")

            result = await publisher(cli_package)

        assert result.status == PublishStatus.SKIPPED
        assert "already published" in result.error_message
        assert not put.called

    @pytest.mark.asyncio
    async def test_lookup_rejection_fails_package(self, client, cli_package):
        publisher = RegistryPublisher(client, {})

        with respx.mock(base_url=REGISTRY) as respx_mock:
            respx_mock.get("/cli").mock(return_value=Response(401, json={"error": "bad token"}))

            result = await publisher(cli_package)

        assert result.status == PublishStatus.FAILED
        assert result.failure_kind == FailureKind.REJECTED
        assert result.status_code == 401

    @pytest.mark.asyncio
    async def test_skip_check_disabled(self, client, cli_package):
        """Without skip_published no lookup is made."""
        publisher = RegistryPublisher(
            client, {"core": "2.0.0"}, policy=ReleasePolicyConfig(skip_published=False, dist_tag="next")
        )

        with respx.mock(base_url=REGISTRY, assert_all_called=False) as respx_mock:
            lookup = respx_mock.get("/cli")
            route = respx_mock.put("/cli").mock(return_value=Response(200, json={}))

            result = await publisher(cli_package)

        assert result.success
        assert not lookup.called
        assert json.loads(route.calls.last.request.content)["dist-tags"] == {"next": "2.0.0"}
