"""Resilient HTTP client with retry/backoff and a shared rate limiter."""

from __future__ import annotations

import asyncio
import json
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import httpx

from hookah_harvester import metrics
from hookah_harvester.config import ConfigurationError, settings
from hookah_harvester.ingest.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

# Retryable exceptions (transport errors)
RETRYABLE_EXC = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


class FetchError(RuntimeError):
    """Base class for every failure surfaced by the fetch client."""
    pass


class HttpError(FetchError):
    """Raised for a non-2xx response."""

    def __init__(self, status: int, message: str, url: str | None = None):
        super().__init__(message)
        self.status = status
        self.message = message
        self.url = url

    @property
    def retryable(self) -> bool:
        return self.status == 429 or self.status >= 500


class NetworkError(FetchError):
    """Raised for connection failures and timeouts."""

    def __init__(self, cause: BaseException, url: str | None = None):
        super().__init__(f"Network error ({type(cause).__name__}) for {url}: {cause}")
        self.cause = cause
        self.url = url


class RetriesExhaustedError(FetchError):
    """Raised when every attempt allowed by the retry policy has failed."""

    def __init__(self, url: str, attempts: int, last_error: FetchError):
        super().__init__(f"Giving up on {url} after {attempts} attempts: {last_error}")
        self.url = url
        self.attempts = attempts
        self.last_error = last_error

    @property
    def status(self) -> Optional[int]:
        if isinstance(self.last_error, HttpError):
            return self.last_error.status
        return None


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to retry and how long to back off in between."""

    max_retries: int = 3
    backoff: float = 1.0
    exponential: bool = True
    jitter: float = 0.0

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number ``attempt`` (0-based)."""
        delay = self.backoff * (2 ** attempt) if self.exponential else self.backoff
        if self.jitter > 0:
            delay += random.uniform(0, self.jitter)
        return delay


@dataclass(frozen=True)
class FetchResponse:
    """Body and status of a successful fetch."""

    body: str
    status: int
    url: str

    def json(self) -> Any:
        return json.loads(self.body)


def default_headers(user_agent: str | None = None) -> dict[str, str]:
    """Get default browser-like headers."""
    return {
        "User-Agent": user_agent or settings.user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "ru-RU,ru;q=0.9,en-US;q=0.8,en;q=0.7",
        "Accept-Encoding": "gzip, deflate",
        "Connection": "keep-alive",
    }


def build_url(base_url: str, path: str) -> str:
    """Join a base URL and a path, collapsing duplicate slashes."""
    if path.startswith(("http://", "https://")):
        return path
    clean_base = base_url.rstrip("/")
    clean_path = "/".join(part for part in path.split("/") if part)
    if not clean_path:
        return clean_base
    return f"{clean_base}/{clean_path}"


class FetchClient:
    """
    Issues single requests with timeout, retry/backoff and rate limiting.

    Knows nothing about page semantics: no caching and no parsing happen here.
    """

    def __init__(
        self,
        base_url: str | None = None,
        retry_policy: RetryPolicy | None = None,
        timeout: float | None = None,
        rate_limiter: RateLimiter | None = None,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        headers: dict[str, str] | None = None,
    ):
        self.base_url = (base_url or settings.base_url).rstrip("/")
        if not self.base_url.startswith(("http://", "https://")):
            raise ConfigurationError(f"Base URL must be http(s): {self.base_url!r}")

        self.retry_policy = retry_policy or RetryPolicy(
            max_retries=settings.max_retries,
            backoff=settings.retry_backoff_seconds,
            exponential=settings.retry_backoff_exponential,
        )
        if self.retry_policy.max_retries < 0:
            raise ConfigurationError("max_retries must not be negative")

        self.timeout = timeout if timeout is not None else settings.request_timeout_seconds
        self.rate_limiter = rate_limiter or RateLimiter(settings.request_delay_seconds)
        self.headers = default_headers()
        if headers:
            self.headers.update(headers)

        self._sleep = sleep
        self._transport = transport
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                transport=self._transport,
                follow_redirects=True,
                timeout=httpx.Timeout(self.timeout),
            )
        return self._client

    async def close(self):
        """Close the underlying httpx client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "FetchClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def reset_rate_limiter(self) -> None:
        """Clear the throttle's clock between independent scrape runs."""
        self.rate_limiter.reset()

    def url_for(self, path: str) -> str:
        return build_url(self.base_url, path)

    async def fetch(
        self,
        url: str,
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> FetchResponse:
        """
        GET a page.

        Args:
            url: Absolute URL or path relative to the base URL
            headers: Extra headers merged over the defaults
            params: Query parameters
            timeout: Per-attempt timeout override in seconds

        Returns:
            FetchResponse for a 2xx response

        Raises:
            HttpError: Non-retryable status (4xx other than 429)
            RetriesExhaustedError: Every attempt failed with a retryable error
        """
        return await self._request("GET", url, headers=headers, params=params, timeout=timeout)

    async def post_json(
        self,
        url: str,
        payload: Any,
        headers: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> FetchResponse:
        """POST a JSON payload through the same retry and throttle path."""
        hdrs = {"Accept": "application/json, text/plain, */*", "X-Requested-With": "XMLHttpRequest"}
        if headers:
            hdrs.update(headers)
        return await self._request("POST", url, headers=hdrs, json_body=payload, timeout=timeout)

    async def _request(
        self,
        method: str,
        url: str,
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, Any]] = None,
        json_body: Any = None,
        timeout: Optional[float] = None,
    ) -> FetchResponse:
        full_url = self.url_for(url)
        hdrs = dict(self.headers)
        if headers:
            hdrs.update(headers)

        attempts = self.retry_policy.max_retries + 1
        last_error: FetchError | None = None

        for attempt in range(attempts):
            try:
                return await self._attempt(method, full_url, hdrs, params, json_body, timeout)
            except HttpError as e:
                if not e.retryable:
                    logger.debug(f"{method} {full_url}: status {e.status}, not retrying")
                    raise
                last_error = e
                reason = str(e.status)
            except NetworkError as e:
                last_error = e
                reason = type(e.cause).__name__

            if attempt + 1 >= attempts:
                break

            delay = self.retry_policy.delay_for(attempt)
            metrics.http_retries_total.labels(reason=reason).inc()
            logger.warning(
                f"{method} {full_url} failed ({reason}), retrying in {delay:.1f}s "
                f"(attempt {attempt + 1}/{attempts})"
            )
            await self._sleep(delay)

        raise RetriesExhaustedError(full_url, attempts, last_error)

    async def _attempt(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        params: Optional[dict[str, Any]],
        json_body: Any,
        timeout: Optional[float],
    ) -> FetchResponse:
        client = self._get_client()
        async with self.rate_limiter.slot():
            started = time.perf_counter()
            try:
                resp = await client.request(
                    method,
                    url,
                    headers=headers,
                    params=params,
                    json=json_body,
                    timeout=httpx.Timeout(timeout) if timeout is not None else httpx.USE_CLIENT_DEFAULT,
                )
            except RETRYABLE_EXC as e:
                metrics.http_attempts_total.labels(method=method, outcome="network_error").inc()
                raise NetworkError(e, url) from e
            finally:
                metrics.http_request_duration_seconds.labels(method=method).observe(
                    time.perf_counter() - started
                )

        sc = resp.status_code
        if 200 <= sc < 300:
            metrics.http_attempts_total.labels(method=method, outcome="ok").inc()
            return FetchResponse(body=resp.text, status=sc, url=str(resp.url))

        metrics.http_attempts_total.labels(method=method, outcome=f"{sc // 100}xx").inc()
        raise HttpError(sc, f"HTTP {sc} for {url}", url)


def is_not_found(error: FetchError) -> bool:
    """True for definitive 4xx misses (never retried)."""
    return isinstance(error, HttpError) and not error.retryable
