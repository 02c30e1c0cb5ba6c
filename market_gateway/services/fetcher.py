"""Resilient GET against the upstream market-data API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping

import httpx

logger = logging.getLogger("market_gateway.fetcher")


class FetchError(Exception):
    """Base error for upstream fetch failures."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RateLimitedError(FetchError):
    """HTTP 429 from upstream."""


class TransportFaultError(FetchError):
    """Network-level failure (connect, read, timeout)."""


class UpstreamStatusError(FetchError):
    """Non-2xx status other than 429. Not retried."""


class MalformedResponseError(FetchError):
    """2xx response whose body is not JSON."""


class RetriesExhaustedError(FetchError):
    """Every attempt in the retry budget failed with a retryable error."""

    def __init__(self, attempts: int, last_error: FetchError) -> None:
        super().__init__(
            f"Request failed after {attempts} attempts: {last_error.message}",
            status_code=last_error.status_code,
        )
        self.attempts = attempts
        self.last_error = last_error


def _format_params(params: Mapping[str, Any] | None) -> dict[str, str] | None:
    if not params:
        return None
    out: dict[str, str] = {}
    for k, v in params.items():
        if v is None:
            continue
        if isinstance(v, bool):
            out[k] = str(v).lower()
        else:
            out[k] = str(v)
    return out


class ResilientFetcher:
    """
    Issues one logical GET, retrying 429s and transport faults.

    max_retries is the total number of attempts. After the k-th failed attempt
    (0-based) the fetcher waits base_delay * 2**k seconds before trying again.
    Any other non-2xx status fails immediately.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        max_retries: int = 3,
        base_delay: float = 1.0,
        timeout: float = 10.0,
        headers: Mapping[str, str] | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        base_headers = {"Accept": "application/json"}
        if headers:
            base_headers.update(headers)
        self._client = client or httpx.AsyncClient(timeout=timeout, headers=base_headers)
        self._owns_client = client is None
        self.max_retries = max(1, max_retries)
        self.base_delay = base_delay
        self._sleep = sleep
        self.stats = {"requests": 0, "successes": 0, "retries": 0, "failures": 0}

    def backoff_delay(self, attempt: int) -> float:
        return self.base_delay * (2**attempt)

    async def _attempt(self, url: str, params: dict[str, str] | None) -> Any:
        self.stats["requests"] += 1
        try:
            response = await self._client.get(url, params=params)
        except httpx.TransportError as exc:
            raise TransportFaultError(f"Transport error: {exc!r}") from exc

        if response.status_code == 429:
            raise RateLimitedError("HTTP 429: Too Many Requests", status_code=429)

        if not response.is_success:
            raise UpstreamStatusError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponseError(
                f"Invalid JSON body from {url}", status_code=response.status_code
            ) from exc

    async def fetch(
        self,
        url: str,
        params: Mapping[str, Any] | None = None,
        retries: int | None = None,
    ) -> Any:
        budget = max(1, retries if retries is not None else self.max_retries)
        query = _format_params(params)

        attempt = 0
        while True:
            try:
                data = await self._attempt(url, query)
            except (RateLimitedError, TransportFaultError) as exc:
                if attempt + 1 >= budget:
                    self.stats["failures"] += 1
                    logger.error("fetch exhausted | url=%s | attempts=%d | err=%s", url, budget, exc.message)
                    raise RetriesExhaustedError(budget, exc) from exc

                delay = self.backoff_delay(attempt)
                logger.warning(
                    "fetch retry | url=%s | attempt=%d/%d | err=%s | sleep=%.2fs",
                    url,
                    attempt + 1,
                    budget,
                    exc.message,
                    delay,
                )
                self.stats["retries"] += 1
                await self._sleep(delay)
                attempt += 1
                continue
            except FetchError:
                self.stats["failures"] += 1
                raise

            self.stats["successes"] += 1
            return data

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
