"""Package registry HTTP client.

Architecture Overview:
---------------------
Wraps the npm-compatible registry API:
- Async HTTP communication via httpx (lazy client, connection pooling)
- Retry with exponential backoff (tenacity) for transport failures only
- Bearer token authentication

Endpoints:
---------
- GET /<escaped name>   package document (all published versions)
- PUT /<escaped name>   publish a version (body from build_publish_body)

Scoped names keep the `@` and escape the slash: `@scope/pkg` -> `@scope%2fpkg`.

Error handling:
--------------
publish() never raises for ordinary remote failures. A rejection comes back
as a failed PublishResult carrying the status code and the registry's own
message (`error`/`message`/`reason`), or `HTTP <status> <reason>` when the
body has none. A transport failure that survives the retries becomes a
failed result of kind TRANSPORT. Only low-level helpers such as
fetch_packument() raise RegistryError.
"""

from typing import Any

import httpx
import structlog
from pydantic import ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..config import RegistryConfig
from ..models.results import FailureKind, PublishResult
from ..utils.exceptions import RegistryError
from .payloads import PublishBody, RegistryErrorResponse

logger = structlog.get_logger(__name__)

_RETRIABLE_ERRORS = (httpx.NetworkError, httpx.TimeoutException)


def escape_package_name(name: str) -> str:
    """Escape a package name for use as a URL path segment."""
    return name.replace("/", "%2f")


class RegistryClient:
    """
    Registry API client.

    Features:
    - Publish with structured results
    - Package document lookups
    - Automatic retries for network errors and timeouts
    """

    def __init__(self, config: RegistryConfig) -> None:
        """
        Initialize registry client.

        Args:
            config: Registry configuration with URL, token and limits
        """
        self.config = config
        self.base_url = config.url.rstrip("/")
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "RegistryClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """HTTP client, created on first use."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                verify=self.config.verify_ssl,
                timeout=self.config.timeout,
                limits=httpx.Limits(max_connections=self.config.max_connections),
            )
        return self._client

    def package_url(self, name: str) -> str:
        return f"{self.base_url}/{escape_package_name(name)}"

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        return headers

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """
        Send a request, retrying network errors and timeouts.

        Raises:
            httpx.HTTPError: If the request still fails after the last attempt
        """
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(_RETRIABLE_ERRORS),
            stop=stop_after_attempt(self.config.retry_attempts),
            wait=wait_exponential(
                multiplier=1, min=self.config.retry_wait_min, max=self.config.retry_wait_max
            ),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "Retrying registry request",
                        method=method,
                        url=url,
                        attempt=attempt.retry_state.attempt_number,
                    )
                return await self.client.request(method, url, headers=self._headers(), **kwargs)
        raise AssertionError("unreachable: tenacity reraises the last error")

    @staticmethod
    def error_message(response: httpx.Response) -> str:
        """
        Human-readable reason of a rejected request.

        Uses the registry's own error field when the body is a JSON error
        document, else ``HTTP <status> <reason>``.
        """
        fallback = f"HTTP {response.status_code} {response.reason_phrase}".rstrip()
        try:
            data = response.json()
        except ValueError:
            return fallback
        if not isinstance(data, dict):
            return fallback

        try:
            message = RegistryErrorResponse.model_validate(data).get_message()
        except ValidationError:
            return fallback
        return message or fallback

    async def fetch_packument(self, name: str) -> dict[str, Any] | None:
        """
        Fetch the registry document of a package.

        Returns:
            The document, or None if the package was never published

        Raises:
            RegistryError: If the registry rejects the request or is unreachable
        """
        try:
            response = await self._send("GET", self.package_url(name))
        except httpx.HTTPError as e:
            raise RegistryError(f"Registry request failed for {name}: {e}") from e

        if response.status_code == 404:
            return None
        if response.is_error:
            raise RegistryError(
                f"Failed to fetch {name}: {self.error_message(response)}",
                status_code=response.status_code,
            )
        return response.json()

    async def version_exists(self, name: str, version: str) -> bool:
        """Check whether a version of a package is already on the registry."""
        document = await self.fetch_packument(name)
        if not document:
            return False
        return version in (document.get("versions") or {})

    async def publish(self, body: PublishBody) -> PublishResult:
        """
        Publish one package version.

        Args:
            body: Publish document

        Returns:
            PublishResult (published, or failed with REJECTED/TRANSPORT kind)
        """
        version = next(iter(body.versions), None)
        url = self.package_url(body.name)
        logger.info("Publishing to registry", package=body.name, version=version, url=url)

        try:
            response = await self._send("PUT", url, json=body.to_payload())
        except httpx.HTTPError as e:
            logger.error("Registry unreachable", package=body.name, error=str(e))
            return PublishResult.failed(
                body.name,
                version,
                error_message=f"{type(e).__name__}: {e}".rstrip(": "),
                failure_kind=FailureKind.TRANSPORT,
            )

        if response.is_error:
            message = self.error_message(response)
            logger.error(
                "Registry rejected publish",
                package=body.name,
                status=response.status_code,
                error=message,
            )
            return PublishResult.failed(
                body.name,
                version,
                error_message=message,
                failure_kind=FailureKind.REJECTED,
                status_code=response.status_code,
            )

        return PublishResult.published(body.name, version, status_code=response.status_code)
