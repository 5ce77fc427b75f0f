"""Unit tests for RegistryClient."""

import json

import httpx
import pytest
import respx
from httpx import Response

from releaser.config import RegistryConfig
from releaser.models.results import FailureKind, PublishStatus
from releaser.registry.client import RegistryClient, escape_package_name
from releaser.registry.payloads import build_publish_body
from releaser.utils.exceptions import RegistryError

REGISTRY = "https://registry.example.com"


@pytest.fixture
def registry_config():
    return RegistryConfig(
        url=REGISTRY + "/",
        token="s3cret",
        retry_attempts=2,
        retry_wait_min=0,
        retry_wait_max=0,
    )


@pytest.fixture
async def client(registry_config):
    client = RegistryClient(registry_config)
    yield client
    await client.close()


@pytest.fixture
def body():
    return build_publish_body(
        {"name": "left-pad", "version": "1.3.0"}, b"tarball", REGISTRY, "latest"
    )


class TestUrls:
    def test_scoped_name_escaped(self):
        assert escape_package_name("@x/core") == "@x%2fcore"

    def test_package_url(self, registry_config):
        client = RegistryClient(registry_config)
        assert client.package_url("@x/core") == "https://registry.example.com/@x%2fcore"
        assert client.package_url("left-pad") == "https://registry.example.com/left-pad"


class TestPublish:
    """RegistryClient.publish()"""

    @pytest.mark.asyncio
    async def test_success(self, client, body):
        with respx.mock(base_url=REGISTRY) as respx_mock:
            route = respx_mock.put("/left-pad").mock(return_value=Response(200, json={"ok": True}))

            result = await client.publish(body)

        assert result.status == PublishStatus.PUBLISHED
        assert result.version == "1.3.0"
        assert result.status_code == 200
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer s3cret"
        assert json.loads(request.content)["dist-tags"] == {"latest": "1.3.0"}

    @pytest.mark.asyncio
    async def test_rejection_uses_registry_message(self, client, body):
        """The registry's error field becomes the failure message."""
        with respx.mock(base_url=REGISTRY) as respx_mock:
            respx_mock.put("/left-pad").mock(
                return_value=Response(
                    403,
                    json={"error": "You cannot publish over the previously published versions"},
                )
            )

            result = await client.publish(body)

        assert result.status == PublishStatus.FAILED
        assert result.failure_kind == FailureKind.REJECTED
        assert result.status_code == 403
        assert result.error_message == "You cannot publish over the previously published versions"

    @pytest.mark.asyncio
    async def test_rejection_without_json_body(self, client, body):
        """Falls back to the HTTP status line."""
        with respx.mock(base_url=REGISTRY) as respx_mock:
            respx_mock.put("/left-pad").mock(return_value=Response(500, text="<html>oops</html>"))

            result = await client.publish(body)

        assert result.error_message == "HTTP 500 Internal Server Error"
        assert result.failure_kind == FailureKind.REJECTED

    @pytest.mark.asyncio
    async def test_transport_failure_after_retries(self, client, body):
        """Network errors are retried, then reported as TRANSPORT."""
        with respx.mock(base_url=REGISTRY) as respx_mock:
            route = respx_mock.put("/left-pad").mock(
                side_effect=httpx.ConnectError("connection refused")
            )

            result = await client.publish(body)

        assert route.call_count == 2
        assert result.status == PublishStatus.FAILED
        assert result.failure_kind == FailureKind.TRANSPORT
        assert result.status_code is None
        assert "ConnectError" in result.error_message

    @pytest.mark.asyncio
    async def test_retry_recovers(self, client, body):
        with respx.mock(base_url=REGISTRY) as respx_mock:
            respx_mock.put("/left-pad").mock(
                side_effect=[httpx.ReadTimeout("slow"), Response(201, json={"ok": True})]
            )

            result = await client.publish(body)

        assert result.success
        assert result.status_code == 201


class TestPackument:
    """fetch_packument() and version_exists()"""

    @pytest.mark.asyncio
    async def test_version_exists(self, client):
        with respx.mock(base_url=REGISTRY) as respx_mock:
            respx_mock.get("/left-pad").mock(
                return_value=Response(200, json={"versions": {"1.3.0": {}}})
            )

            assert await client.version_exists("left-pad", "1.3.0")
            assert not await client.version_exists("left-pad", "1.4.0")

    @pytest.mark.asyncio
    async def test_unknown_package(self, client):
        with respx.mock(base_url=REGISTRY) as respx_mock:
            respx_mock.get("/brand-new").mock(return_value=Response(404, json={"error": "Not found"}))

            assert await client.fetch_packument("brand-new") is None
            assert not await client.version_exists("brand-new", "1.0.0")

    @pytest.mark.asyncio
    async def test_error_status_raises(self, client):
        with respx.mock(base_url=REGISTRY) as respx_mock:
            respx_mock.get("/left-pad").mock(return_value=Response(401, json={"error": "bad token"}))

            with pytest.raises(RegistryError, match="bad token") as excinfo:
                await client.fetch_packument("left-pad")

        assert excinfo.value.status_code == 401

    @pytest.mark.asyncio
    async def test_unreachable_raises(self, client):
        with respx.mock(base_url=REGISTRY) as respx_mock:
            respx_mock.get("/left-pad").mock(side_effect=httpx.ConnectError("down"))

            with pytest.raises(RegistryError) as excinfo:
                await client.fetch_packument("left-pad")

        assert excinfo.value.status_code is None
