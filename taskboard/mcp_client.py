"""HTTP client the MCP tool server uses to reach the token API."""
import asyncio
import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

MAX_RETRIES = 2
RETRY_DELAY_SECONDS = 1.0
DEFAULT_TIMEOUT = 30.0


class BoardApiError(Exception):
    """A token API call failed; ``status_code`` is None for network errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.status_code is None or self.status_code >= 500


def _error_detail(response: httpx.Response) -> str:
    """Extract the server-provided error message from a failed response."""
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return f"HTTP {response.status_code}: {response.reason_phrase}"


class BoardApiClient:
    """Calls the token API with bearer auth.

    Server errors and network failures are retried ``max_retries`` more times
    with a fixed delay; client errors (4xx) fail immediately.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY_SECONDS,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }

    async def _send(self, method: str, path: str, body: Any, params: Optional[dict]) -> Any:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.request(
                    method,
                    f"{self.base_url}{path}",
                    headers=self._headers(),
                    json=body,
                    params=params,
                )
            except httpx.RequestError as e:
                raise BoardApiError(f"Request failed: {e}") from e

        if not response.is_success:
            raise BoardApiError(_error_detail(response), response.status_code)
        try:
            return response.json()
        except ValueError as e:
            raise BoardApiError("Invalid JSON response from API", response.status_code) from e

    async def request(
        self,
        path: str,
        method: str = "GET",
        body: Any = None,
        params: Optional[dict] = None,
    ) -> Any:
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return await self._send(method, path, body, params)
            except BoardApiError as e:
                if not e.retryable or attempt == attempts:
                    raise
                logger.warning(
                    "Board API request failed (attempt %d/%d): %s. Retrying in %.1fs...",
                    attempt, attempts, e.message, self.retry_delay,
                )
                await asyncio.sleep(self.retry_delay)

    async def get(self, path: str, params: Optional[dict] = None) -> Any:
        return await self.request(path, params=params)

    async def post(self, path: str, body: Any = None) -> Any:
        return await self.request(path, method="POST", body={} if body is None else body)
