"""
Async HTTP Transport for the Cloud Agents SDK.

Handles async HTTP communication with Basic authentication, governor
admission, optional retry logic and error handling using httpx async client.
"""

import asyncio
import random
import time
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from typing import Any

import httpx

from cloudagents.exceptions import (
    AuthError,
    CloudAgentsError,
    MalformedResponseError,
    NotFoundError,
    RateLimitError,
    RequestFailedError,
    RequestTimeoutError,
)
from cloudagents.governor import Priority, RequestGovernor
from cloudagents.logging import get_logger, log_http_request, log_http_response

logger = get_logger("http")


@dataclass
class RetryConfig:
    """Configuration for automatic retry behavior.

    Retries are off by default: a 429 surfaces as RateLimitError right away
    and the caller decides when to try again.
    """

    max_retries: int = 0
    backoff_factor: float = 2.0
    backoff_base: float = 0.4  # Seconds before the first retry
    retry_on: list[int] = field(default_factory=lambda: [408, 429, 500, 502, 503, 504])
    respect_retry_after: bool = True
    max_backoff: float = 4.0  # Maximum backoff time in seconds
    jitter: float = 0.1  # Jitter factor (0.1 = ±10%)


class AsyncHTTPTransport:
    """
    Async HTTP transport layer for the Cloud Agents API.

    Handles:
    - HTTP Basic auth with the API key as username and an empty password
    - One governor admission per HTTP attempt
    - Optional exponential backoff with jitter for retries
    - Error response parsing into typed exceptions
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        governor: RequestGovernor | None = None,
        timeout: float = 15.0,
        retry_config: RetryConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize async HTTP transport.

        Args:
            base_url: Base URL for API requests (e.g., "https://api.cursor.com/v0")
            api_key: Ambient API key used when a request does not pass one
            governor: Shared request governor (a private one is created if omitted)
            timeout: Request timeout in seconds
            retry_config: Configuration for retry behavior
            http_client: Preconfigured httpx client (tests inject a MockTransport here)
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.governor = governor or RequestGovernor()
        self.timeout = timeout
        self.retry_config = retry_config or RetryConfig()

        self._client = http_client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Accept": "application/json"},
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "AsyncHTTPTransport":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
        api_key: str | None = None,
        priority: Priority = Priority.NORMAL,
    ) -> Any:
        """
        Make an authenticated request.

        Args:
            method: HTTP method (GET, POST, DELETE)
            path: API path (e.g., "/agents")
            params: Query parameters
            body: JSON request body
            api_key: Key to use instead of the ambient one
            priority: Governor admission priority

        Returns:
            Parsed JSON response (None for an empty body)

        Raises:
            AuthError: If no API key is available, or on 401/403
            CloudAgentsError: On any other API or transport error
        """
        key = api_key if api_key is not None else self.api_key
        if not key:
            raise AuthError("MISSING_API_KEY", "No API key configured.")

        auth = httpx.BasicAuth(key, "")

        async def make_request() -> httpx.Response:
            log_http_request(method, f"{self.base_url}{path}", body=body)
            # httpx timeouts bound each phase; this bounds the whole exchange
            return await asyncio.wait_for(
                self._client.request(method, path, params=params, json=body, auth=auth),
                self.timeout,
            )

        return await self._execute_with_retry(make_request, priority)

    async def _execute_with_retry(
        self,
        request_fn: Callable[[], Coroutine[Any, Any, httpx.Response]],
        priority: Priority = Priority.NORMAL,
    ) -> Any:
        """
        Execute a request with automatic retry on retryable errors.

        Each attempt is admitted separately by the governor.

        Args:
            request_fn: Async function that makes the HTTP request
            priority: Governor admission priority for every attempt

        Returns:
            Parsed JSON response

        Raises:
            CloudAgentsError: On non-retryable errors or after max retries
        """
        for attempt in range(self.retry_config.max_retries + 1):
            try:
                started = time.monotonic()
                response = await self.governor.enqueue(request_fn, priority)
                elapsed_ms = (time.monotonic() - started) * 1000

                if 200 <= response.status_code < 300:
                    data = self._parse_json(response)
                    log_http_response(
                        response.status_code, str(response.url), data, elapsed_ms
                    )
                    return data

                error = self._parse_error_response(response)
                log_http_response(response.status_code, str(response.url), error.message)

                if not self._should_retry(response.status_code, attempt):
                    raise error

                retry_after = response.headers.get("Retry-After")
                wait_time = self._get_backoff_time(attempt, retry_after)

            except (httpx.TimeoutException, asyncio.TimeoutError) as e:
                if attempt >= self.retry_config.max_retries:
                    raise RequestTimeoutError(f"Request timed out after {self.timeout}s") from e
                wait_time = self._get_backoff_time(attempt, None)

            except httpx.RequestError as e:
                # Network errors are retryable
                if attempt >= self.retry_config.max_retries:
                    raise RequestFailedError("CONNECTION_ERROR", str(e)) from e
                wait_time = self._get_backoff_time(attempt, None)

            logger.debug("Retrying in %.2fs (attempt %d)", wait_time, attempt + 1)
            await asyncio.sleep(wait_time)

        # Should not reach here, but just in case
        raise RequestFailedError("UNKNOWN_ERROR", "Request failed with no error details")

    def _should_retry(self, status_code: int, attempt: int) -> bool:
        """
        Determine if a request should be retried.

        Args:
            status_code: HTTP status code
            attempt: Current attempt number (0-indexed)

        Returns:
            True if the request should be retried
        """
        if attempt >= self.retry_config.max_retries:
            return False

        return status_code in self.retry_config.retry_on

    def _get_backoff_time(
        self, attempt: int, retry_after: str | None
    ) -> float:
        """
        Calculate backoff time for retry.

        Uses exponential backoff with jitter, respecting Retry-After header
        if present.

        Args:
            attempt: Current attempt number (0-indexed)
            retry_after: Value of Retry-After header (if present)

        Returns:
            Time to wait in seconds
        """
        if retry_after and self.retry_config.respect_retry_after:
            try:
                return float(retry_after)
            except ValueError:
                pass  # Fall through to exponential backoff

        base_wait = self.retry_config.backoff_base * self.retry_config.backoff_factor ** attempt

        # Apply jitter (±jitter%)
        jitter_range = base_wait * self.retry_config.jitter
        jitter = random.uniform(-jitter_range, jitter_range)
        wait_time = base_wait + jitter

        return min(wait_time, self.retry_config.max_backoff)

    @staticmethod
    def _parse_json(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"Malformed response from {response.request.url.path}"
            ) from e

    def _parse_error_response(self, response: httpx.Response) -> CloudAgentsError:
        """
        Parse an error response into a typed exception.

        Args:
            response: HTTP response with error status

        Returns:
            Appropriate CloudAgentsError subclass
        """
        status_code = response.status_code
        request_id = response.headers.get("X-Request-Id")

        if status_code in (401, 403):
            return AuthError(
                "INVALID_API_KEY", f"Invalid API key ({status_code})", request_id
            )
        elif status_code in (404, 409):
            return NotFoundError(
                "NOT_FOUND", f"Resource not found ({status_code})", request_id
            )
        elif status_code == 429:
            retry_after: float | None = None
            retry_after_str = response.headers.get("Retry-After")
            if retry_after_str:
                try:
                    retry_after = float(retry_after_str)
                except ValueError:
                    retry_after = None
            return RateLimitError(retry_after=retry_after, request_id=request_id)
        else:
            message = response.text or f"Request failed ({status_code})."
            return RequestFailedError(f"HTTP_{status_code}", message, request_id)
