import asyncio
from typing import Any, Dict, Optional

import httpx
from httpx import HTTPStatusError, TimeoutException

from gatepass.core.exceptions import (
    APIClientError,
    APITimeoutError,
    NotFoundError,
    StaleWriteConflictError,
)
from gatepass.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BaseHttpClient:
    """Base client for the external gate-pass collaborators.

    Handles common logic for HTTP requests, retries, timeout management,
    and error logging.
    """

    def __init__(
        self,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: int = 30,
        max_retries: int = 3,
        retry_delay: int = 2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            base_url: Base URL of the API
            headers: Headers sent with every request (authentication etc.)
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts
            retry_delay: Base delay for exponential backoff
            transport: Optional httpx transport (used to stub the network)
        """
        self.base_url = base_url.rstrip("/")
        self.headers = dict(headers or {})
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.transport = transport
        self.logger = LOGGER

    async def call_api(
        self,
        endpoint: str = "",
        method: str = "GET",
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Call the API with retry logic.

        Args:
            endpoint: API endpoint (appended to base_url)
            method: HTTP method (GET, POST, PUT)
            payload: JSON body for POST/PUT
            params: Query parameters
            headers: Additional headers

        Returns:
            Parsed JSON response (None for an empty body)

        Raises:
            NotFoundError: The resource does not exist (404)
            StaleWriteConflictError: The backend refused a stale write (409)
            APIClientError: If the API call fails after retries
            APITimeoutError: If the API call times out after retries
        """
        url = f"{self.base_url}{endpoint}"

        request_headers = {"Content-Type": "application/json", **self.headers}
        if headers:
            request_headers.update(headers)

        self.logger.debug(f"Calling API: {url}", extra={"method": method, "timeout": self.timeout})

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            for attempt in range(self.max_retries):
                try:
                    response = await client.request(
                        method.upper(),
                        url,
                        headers=request_headers,
                        params=params,
                        json=payload if method.upper() != "GET" else None,
                    )
                    response.raise_for_status()
                    return self._parse(response, url)

                except HTTPStatusError as e:
                    await self._handle_http_error(e, attempt, url)

                except TimeoutException as e:
                    await self._handle_timeout_error(e, attempt, url)

                except httpx.TransportError as e:
                    await self._handle_transport_error(e, attempt, url)

        raise APIClientError(f"Failed to call API {url} after {self.max_retries} attempts")

    def _parse(self, response: httpx.Response, url: str) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise APIClientError(f"Invalid JSON response from {url}", original_error=e)

    async def _handle_http_error(self, error: HTTPStatusError, attempt: int, url: str) -> None:
        """Handle HTTP status errors."""
        status_code = error.response.status_code
        error_body = error.response.text

        self.logger.warning(
            f"API HTTP error (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": url, "status_code": status_code, "error_body": error_body[:500]},
        )

        if status_code == 404:
            raise NotFoundError(f"Resource not found: {url}", original_error=error)
        if status_code == 409:
            raise StaleWriteConflictError(
                f"Conflicting write rejected by backend: {error_body[:200]}",
                original_error=error,
            )

        # Client errors are not retried, except rate limiting
        if 400 <= status_code < 500 and status_code != 429:
            raise APIClientError(f"API Client Error {status_code}: {error_body}", original_error=error)

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APIClientError(f"API HTTP Error {status_code} after retries", original_error=error)

    async def _handle_timeout_error(self, error: TimeoutException, attempt: int, url: str) -> None:
        """Handle timeout errors."""
        self.logger.warning(f"API Timeout (Attempt {attempt + 1}/{self.max_retries})", extra={"url": url})

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APITimeoutError(f"API Timeout after {self.max_retries} attempts", original_error=error)

    async def _handle_transport_error(self, error: httpx.TransportError, attempt: int, url: str) -> None:
        """Handle connection-level errors."""
        self.logger.warning(
            f"API Transport Error (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": url, "error": str(error)},
        )

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APIClientError(f"API Error: {str(error)}", original_error=error)

    async def _wait_before_retry(self, attempt: int) -> None:
        """Exponential backoff wait."""
        await asyncio.sleep(self.retry_delay * (2 ** attempt))
