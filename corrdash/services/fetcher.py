"""
Retrying Fetcher

Executes a single upstream GET with bounded exponential backoff.
Rate limits (429), other non-2xx statuses and transport failures share
the same retry schedule.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from ..core.errors import (
    MarketDataError,
    NetworkError,
    RateLimitError,
    RateLimitExceededError,
    UpstreamStatusError,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


@dataclass
class RetryPolicy:
    """Configuration for retry behavior."""

    max_retries: int = 3
    initial_delay_seconds: float = 1.0
    max_delay_seconds: float = 10.0
    exponential_base: float = 2.0
    jitter: bool = False
    jitter_factor: float = 0.1

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def get_delay(self, retry_index: int) -> float:
        """Delay before retry number ``retry_index`` (0-based)."""
        delay = min(
            self.initial_delay_seconds * (self.exponential_base ** retry_index),
            self.max_delay_seconds,
        )
        if self.jitter:
            jitter_range = delay * self.jitter_factor
            delay += random.uniform(-jitter_range, jitter_range)
        return max(delay, 0)


@dataclass
class FetchResult:
    """Outcome of a fetch: either a successful response or the final error."""

    ok: bool
    response: Optional[httpx.Response] = None
    error: Optional[MarketDataError] = None
    rate_limited: bool = False
    attempts: int = 0
    delays: List[float] = field(default_factory=list)

    def unwrap(self) -> httpx.Response:
        if self.ok and self.response is not None:
            return self.response
        raise self.error or MarketDataError("Fetch failed without a recorded error")


class RetryingFetcher:
    """HTTP GET with retry/backoff on top of a shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        *,
        client: Optional[httpx.AsyncClient] = None,
        policy: Optional[RetryPolicy] = None,
        timeout_s: float = 15.0,
        headers: Optional[Dict[str, str]] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self.timeout_s = timeout_s
        self._headers = dict(headers or {})
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_s, headers=self._headers)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def fetch(self, url: str, params: Optional[Dict[str, Any]] = None) -> FetchResult:
        client = await self._get_client()
        delays: List[float] = []
        last_error: Optional[MarketDataError] = None
        rate_limited = False
        attempt = 0

        for attempt in range(1, self.policy.max_attempts + 1):
            try:
                response = await client.get(url, params=params)
            except httpx.HTTPError as exc:
                last_error = NetworkError(str(exc) or exc.__class__.__name__, url=url)
                rate_limited = False
            else:
                if response.status_code == 429:
                    last_error = RateLimitError(url=url)
                    rate_limited = True
                elif not response.is_success:
                    last_error = UpstreamStatusError(response.status_code, url=url)
                    rate_limited = False
                else:
                    return FetchResult(ok=True, response=response, attempts=attempt, delays=delays)

            if attempt >= self.policy.max_attempts:
                break

            delay = self.policy.get_delay(attempt - 1)
            delays.append(delay)
            logger.warning(
                "GET %s attempt %d/%d failed: %s. Retrying in %.1fs",
                url,
                attempt,
                self.policy.max_attempts,
                last_error,
                delay,
            )
            await self._sleep(delay)

        if rate_limited:
            final_error: MarketDataError = RateLimitExceededError(url=url, attempts=attempt)
        else:
            final_error = last_error or MarketDataError("Fetch failed")
            final_error.context.attempts = attempt

        logger.error("GET %s failed after %d attempts: %s", url, attempt, final_error)
        return FetchResult(
            ok=False,
            error=final_error,
            rate_limited=rate_limited,
            attempts=attempt,
            delays=delays,
        )
