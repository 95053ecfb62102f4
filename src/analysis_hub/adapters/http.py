"""HTTP client shared by cloud-service adapters."""

import asyncio
import base64
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from analysis_hub.errors import AdapterFailed, AdapterParseError, AdapterRateLimited, AdapterUnavailable

logger = logging.getLogger(__name__)

RETRY_STATUSES = {500, 502, 503, 504}


@dataclass
class ApiConfig:
    """Configuration for an API client."""

    base_url: str
    headers: dict[str, str] = field(default_factory=dict)
    timeout: float = 30.0
    max_retries: int = 3
    backoff_seconds: float = 0.5
    max_backoff_seconds: float = 8.0


def basic_token_auth(token: str) -> str:
    """Basic auth header value using the token as the user name."""
    encoded = base64.b64encode(f"{token}:".encode()).decode()
    return f"Basic {encoded}"


class ApiClient:
    """Async JSON client with bounded retries for idempotent reads.

    GET requests are retried with exponential backoff on transport errors
    and 5xx responses. Mutating requests are never retried. A 429 response
    raises ``AdapterRateLimited`` immediately.
    """

    def __init__(
        self,
        config: ApiConfig,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the client.

        Args:
            config: Configuration for the client
            transport: Optional transport, used by tests to mock the service
            sleep: Backoff sleep function
        """
        self.config = config
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers={"Accept": "application/json", **config.headers},
            timeout=config.timeout,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "ApiClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET a JSON document, retrying transient failures.

        Args:
            path: Path relative to the base URL, or an absolute URL
            params: Query parameters

        Returns:
            Decoded JSON body

        Raises:
            AdapterRateLimited: On HTTP 429
            AdapterUnavailable: If the service cannot be reached after retries
            AdapterFailed: On other error responses
            AdapterParseError: If the body is not JSON
        """
        return self._decode(await self._get(path, params))

    async def get_text(self, path: str, params: dict[str, Any] | None = None) -> str:
        """GET a plain-text document, retrying transient failures."""
        return (await self._get(path, params)).text

    async def _get(self, path: str, params: dict[str, Any] | None) -> httpx.Response:
        attempt = 0
        while True:
            try:
                logger.debug(f"GET {path} params={params}")
                response = await self._client.get(path, params=params)
            except httpx.TransportError as e:
                if attempt >= self.config.max_retries:
                    raise AdapterUnavailable(f"{self.config.base_url} unreachable: {e}") from e
                await self._backoff(attempt, f"transport error: {e}")
                attempt += 1
                continue

            if response.status_code in RETRY_STATUSES and attempt < self.config.max_retries:
                await self._backoff(attempt, f"HTTP {response.status_code}")
                attempt += 1
                continue

            self._raise_for_status(response)
            return response

    async def post_json(self, path: str, body: dict[str, Any]) -> Any:
        """POST a JSON document. Never retried."""
        try:
            response = await self._client.post(path, json=body)
        except httpx.TransportError as e:
            raise AdapterUnavailable(f"{self.config.base_url} unreachable: {e}") from e
        self._raise_for_status(response)
        return self._decode(response)

    async def _backoff(self, attempt: int, reason: str) -> None:
        delay = min(self.config.max_backoff_seconds, self.config.backoff_seconds * (2**attempt))
        logger.debug(f"Retrying in {delay:.1f}s after {reason}")
        await self._sleep(delay)

    def _raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if status == 429:
            retry_after = response.headers.get("Retry-After", "unspecified")
            raise AdapterRateLimited(f"rate limited by {self.config.base_url} (Retry-After: {retry_after})")
        if status in (401, 403):
            raise AdapterFailed(f"authentication rejected by {self.config.base_url} (HTTP {status})")
        if status >= 400:
            raise AdapterFailed(f"{response.request.method} {response.request.url.path} returned HTTP {status}")

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise AdapterParseError(f"invalid JSON from {response.request.url.path}: {e}") from e
