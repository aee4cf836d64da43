"""
HTTP transport for pinaudit.

:class:`HTTPClient` wraps ``httpx.AsyncClient`` for the metadata-service
queries. Every response is classified before it reaches the caller:

- 2xx/3xx is returned.
- 429 sleeps for ``Retry-After`` seconds and tries again, up to a fixed
  number of times independent of ``max_retries``.
- 408, 5xx, timeouts and connection failures back off exponentially (with
  jitter) and retry up to ``max_retries`` times.
- Any other 4xx raises :class:`NetworkError` at once, carrying the
  service's own error message when the body is a JSON error envelope.

Requests are issued one at a time by the closure builder; the optional
``rate_limit_delay`` only spaces them out.
"""

from __future__ import annotations

import time
import httpx
import random
import asyncio
from typing import Any, Dict, Mapping, Optional, cast

from pinaudit.utils.logger import get_logger
from pinaudit.__version__ import __version__
from pinaudit.exceptions import NetworkError
from pinaudit.constants import (
    DEFAULT_TIMEOUT,
    DEFAULT_MAX_RETRIES,
    USER_AGENT_TEMPLATE,
)

logger = get_logger("http")

#: Status codes worth another attempt after a backoff.
RETRYABLE_STATUS = frozenset({408, 500, 502, 503, 504})

#: Upper bound on ``429 Too Many Requests`` retries per request.
MAX_THROTTLE_RETRIES = 5


def _retry_after(response: httpx.Response, default: float = 1.0) -> float:
    """Seconds to wait before retrying a throttled request."""
    value = response.headers.get("Retry-After")
    if value is None:
        return default
    try:
        return max(float(value), 0.0)
    except ValueError:
        return default


def _error_message(response: httpx.Response) -> str:
    """Best human-readable message for a failed response.

    Kusto and most Azure services answer errors with
    ``{"error": {"code": ..., "message": ...}}``.
    """
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"

    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        error = body["error"]
        message = error.get("@message") or error.get("message")
        if message:
            return f"HTTP {response.status_code}: {message}"
    return f"HTTP {response.status_code}"


class HTTPClient:
    """Asynchronous HTTP client with retries and request pacing.

    Args:
        timeout: Request timeout in seconds.
        max_retries: Retries after a transient failure (timeouts, network
            errors, 408 and 5xx).
        rate_limit_delay: Minimum delay (seconds) between requests.
        verify_ssl: Whether to verify SSL certificates.
        user_agent: Custom User-Agent header value.
        headers: Extra headers sent with every request (e.g. authorization).

    Example:
        >>> async with HTTPClient(headers={"Authorization": "Bearer ..."}) as client:
        ...     data = await client.post_json(url, json={"db": "dependency", "csl": "..."})
    """

    def __init__(
        self,
        *,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        rate_limit_delay: float = 0.0,
        verify_ssl: bool = True,
        user_agent: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.timeout = timeout
        self.max_retries = max_retries
        self.rate_limit_delay = rate_limit_delay
        self.verify_ssl = verify_ssl
        self.user_agent = user_agent or USER_AGENT_TEMPLATE.format(version=__version__)
        self.headers: Dict[str, str] = dict(headers or {})

        self._client: Optional[httpx.AsyncClient] = None
        self._last_request_time: float = 0.0
        self._max_429_retries: int = MAX_THROTTLE_RETRIES

    async def __aenter__(self) -> "HTTPClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                http2=True,
                verify=self.verify_ssl,
                follow_redirects=True,
                headers={"User-Agent": self.user_agent, **self.headers},
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client; safe to call more than once."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _pace(self) -> None:
        """Sleep until ``rate_limit_delay`` has passed since the last request."""
        if self.rate_limit_delay <= 0:
            return

        wait = self._last_request_time + self.rate_limit_delay - time.monotonic()
        if wait > 0:
            await asyncio.sleep(wait)
        self._last_request_time = time.monotonic()

    def _backoff(self, attempt: int) -> float:
        return (2**attempt) + random.uniform(0.0, 0.3)

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one request, retrying according to the response class."""
        client = await self._ensure_client()

        attempt = 0
        throttled = 0
        last_failure = "no response"

        while True:
            await self._pace()
            try:
                response = await client.request(method, url, **kwargs)
            except httpx.TimeoutException:
                last_failure = "timeout"
                logger.warning("Request timeout (%d/%d): %s", attempt + 1, self.max_retries + 1, url)
            except httpx.NetworkError as exc:
                last_failure = f"network error: {exc}"
                logger.warning("Network error (%d/%d): %s", attempt + 1, self.max_retries + 1, exc)
            else:
                status = response.status_code

                if status == 429:
                    throttled += 1
                    if throttled > self._max_429_retries:
                        raise NetworkError(
                            f"Rate limit exceeded after {self._max_429_retries} retries",
                            url=url,
                            status_code=429,
                        )
                    delay = _retry_after(response)
                    logger.warning(
                        "Throttled (429), retrying after %gs (%d/%d)",
                        delay,
                        throttled,
                        self._max_429_retries,
                    )
                    await asyncio.sleep(delay)
                    continue

                if status < 400:
                    return response

                if status not in RETRYABLE_STATUS:
                    raise NetworkError(
                        f"{_error_message(response)} for {url}",
                        url=url,
                        status_code=status,
                        response_body=response.text,
                    )

                last_failure = _error_message(response)
                logger.warning("%s (%d/%d): %s", last_failure, attempt + 1, self.max_retries + 1, url)

            if attempt >= self.max_retries:
                raise NetworkError(
                    f"Request failed after {self.max_retries + 1} attempts: {url} ({last_failure})",
                    url=url,
                )

            delay = self._backoff(attempt)
            logger.debug("Retrying in %.2fs", delay)
            await asyncio.sleep(delay)
            attempt += 1

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._request_with_retry("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._request_with_retry("POST", url, **kwargs)

    async def post_json(self, url: str, **kwargs: Any) -> Dict[str, Any]:
        """POST to ``url`` and return the response body as a JSON object.

        Raises:
            NetworkError: The request failed, or the body is not a JSON object.
        """
        response = await self.post(url, **kwargs)

        try:
            data = response.json()
        except ValueError as exc:
            raise NetworkError(
                f"Invalid JSON response from {url}",
                url=url,
                response_body=response.text,
            ) from exc

        if not isinstance(data, dict):
            raise NetworkError(
                f"Expected JSON object from {url}",
                url=url,
                response_body=response.text,
            )

        return cast(Dict[str, Any], data)
