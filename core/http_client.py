"""
Rotating HTTP Client

Async HTTP client shared by every exchange connector. It handles:
- Per-request retry with exponential, jittered backoff
- DNS reachability probe of the target host before every attempt
- Endpoint rotation (via EndpointRotator) when a host does not resolve
- Optional egress proxy per request
- Request/response logging

A request that still fails after all attempts raises FetchError. The paged
fetch loop counts that as one failure and decides whether to keep going.

Usage:
    rotator = EndpointRotator(["https://api.binance.com", "https://api1.binance.com"])
    async with RotatingHTTPClient("binance", rotator) as http:
        rows = await http.get_json("/api/v3/klines", {"symbol": "BTCUSDT", "interval": "1d"})
"""

import asyncio
import random
import socket
import time
from typing import Any, Dict, Optional

import aiohttp

from core.endpoint_rotator import EndpointRotator
from core.logging import get_logger, log_api_request, log_api_response


class FetchError(RuntimeError):
    """A request (or a page) could not be fetched from a source."""


class RetryPolicy:
    """
    Backoff policy for retries.

    Delay after ``failures`` consecutive failures:
        min(base * 2 ** failures + uniform(0, jitter), max_delay)

    Attributes:
        base: Base delay in seconds
        max_delay: Upper bound for any single delay
        jitter: Maximum random jitter in seconds
        attempts: Attempts per request before giving up
    """

    def __init__(self, base: float = 2.0, max_delay: float = 10.0, jitter: float = 1.0, attempts: int = 3):
        self.base = base
        self.max_delay = max_delay
        self.jitter = jitter
        self.attempts = attempts

    @classmethod
    def from_settings(cls, config=None) -> "RetryPolicy":
        from core.config import settings

        config = config or settings
        return cls(
            base=config.backoff_base,
            max_delay=config.backoff_max,
            jitter=config.backoff_jitter,
            attempts=config.request_retries,
        )

    def backoff_delay(self, failures: int) -> float:
        """Seconds to wait after ``failures`` consecutive failures."""
        delay = self.base * (2 ** failures) + random.uniform(0, self.jitter)
        return min(delay, self.max_delay)

    def __repr__(self) -> str:
        return (
            f"<RetryPolicy(base={self.base}, max_delay={self.max_delay}, "
            f"jitter={self.jitter}, attempts={self.attempts})>"
        )


class RotatingHTTPClient:
    """
    Async GET client bound to one source's rotating endpoints.

    Attributes:
        exchange: Source name used in log lines
        rotator: EndpointRotator owned by the connector
        policy: RetryPolicy for per-request retries
        session: aiohttp ClientSession (created in open())
    """

    DEFAULT_HEADERS = {
        "Accept": "application/json",
        "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    }

    def __init__(
        self,
        exchange: str,
        rotator: EndpointRotator,
        policy: Optional[RetryPolicy] = None,
        timeout: float = 30,
        headers: Optional[Dict[str, str]] = None
    ):
        self.exchange = exchange
        self.rotator = rotator
        self.policy = policy or RetryPolicy()
        self.timeout = timeout
        self.headers = {**self.DEFAULT_HEADERS, **(headers or {})}
        self.session: Optional[aiohttp.ClientSession] = None
        self.logger = get_logger(__name__)
        self._sleep = asyncio.sleep

    # ============================================
    # Session Management
    # ============================================

    async def open(self) -> None:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(headers=self.headers)
            self.logger.debug(f"{self.exchange} HTTP session created")

    async def close(self) -> None:
        if self.session and not self.session.closed:
            await self.session.close()
            self.logger.debug(f"{self.exchange} HTTP session closed")
        self.session = None

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ============================================
    # Endpoint Handling
    # ============================================

    async def probe_dns(self) -> bool:
        """
        Check that the current endpoint's host resolves.

        Returns:
            True if the hostname resolves, False otherwise
        """
        hostname = self.rotator.hostname()
        try:
            await asyncio.get_running_loop().getaddrinfo(hostname, 443, type=socket.SOCK_STREAM)
            return True
        except OSError as e:
            self.logger.warning(f"DNS resolution failed for {self.exchange} host {hostname}: {e}")
            return False

    def rotate(self) -> str:
        """Switch to the next endpoint (and proxy) and return the new base URL."""
        url = self.rotator.rotate()
        self.logger.warning(f"Switching {self.exchange} API endpoint to {url}")
        return url

    # ============================================
    # HTTP Request Handler with Retry Logic
    # ============================================

    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET ``path`` on the current endpoint and return the decoded JSON body.

        Each attempt is preceded by a DNS probe. A failed probe rotates to the
        next endpoint without consuming an attempt; a full cycle of failed
        probes fails the request.

        Raises:
            RuntimeError: If the session has not been opened
            FetchError: If every attempt failed
        """
        if not self.session:
            raise RuntimeError("HTTP session not initialized. Use 'async with' statement.")

        attempt = 0
        probe_failures = 0
        last_error: Optional[BaseException] = None

        while attempt < self.policy.attempts:
            if not await self.probe_dns():
                probe_failures += 1
                if probe_failures >= len(self.rotator):
                    raise FetchError(f"No {self.exchange} endpoint resolves (last tried {self.rotator.current()})")
                self.rotate()
                continue
            probe_failures = 0

            url = f"{self.rotator.current()}{path}"
            try:
                return await self._request(url, path, params)
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError, FetchError) as e:
                last_error = e
                attempt += 1
                self.logger.error(
                    f"Request failed on {self.exchange} {path}: {e!r} "
                    f"(attempt {attempt}/{self.policy.attempts})"
                )
                if attempt >= self.policy.attempts:
                    break
                delay = self.policy.backoff_delay(attempt - 1)
                self.logger.info(f"Waiting {delay:.1f}s before retrying {self.exchange}...")
                await self._sleep(delay)

        raise FetchError(
            f"Failed to fetch {self.exchange} {path} after {self.policy.attempts} attempts"
        ) from last_error

    async def _request(self, url: str, path: str, params: Optional[Dict[str, Any]]) -> Any:
        log_api_request(self.exchange, path, params)
        started = time.monotonic()

        async with self.session.get(
            url,
            params=params,
            proxy=self.rotator.current_proxy(),
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        ) as resp:
            log_api_response(self.exchange, path, resp.status, time.monotonic() - started)

            if resp.status == 200:
                return await resp.json(content_type=None)

            text = await resp.text()
            if resp.status in (418, 429):
                raise FetchError(f"Rate limited (HTTP {resp.status}) on {self.exchange} {path}")
            raise FetchError(f"HTTP {resp.status} on {self.exchange} {path}: {text[:200]}")
