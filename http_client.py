"""
Rate-limited HTTP client for the DexScreener API.
Every request goes through one pacing gate and is retried with exponential backoff.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp

logger = logging.getLogger("http_client")

# Errors worth another attempt: connection problems, 5xx/429 responses, timeouts
RETRYABLE_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError)


def is_retryable_status(status: int) -> bool:
    """Other 4xx answers will not change on a second try."""
    return status >= 500 or status == 429


class RateLimitedClient:
    """
    Serializes and paces outbound calls.

    The "last dispatch time" belongs to the instance, so two clients never share a gate.
    `clock` and `sleep` can be swapped for deterministic tests.
    """

    def __init__(self, base_url: str, api_key: str = "", min_interval_ms: int = 500,
                 max_retries: int = 3, timeout: float = 30,
                 session: Optional[aiohttp.ClientSession] = None,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.base_url = base_url.rstrip("/")
        self.min_interval_ms = min_interval_ms
        self.max_retries = max_retries
        self.timeout = timeout
        self.headers = {"Accept": "application/json"}
        if api_key:
            self.headers["X-API-KEY"] = api_key

        self._session = session
        self._owns_session = session is None
        self._clock = clock
        self._sleep = sleep
        self._gate = asyncio.Lock()
        self._last_request_time: Optional[float] = None

        # Statistiques
        self.stats = {"requests": 0, "retries": 0, "failures": 0}

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
        return False

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
            self._owns_session = True
        return self._session

    async def close(self):
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _wait_for_slot(self):
        async with self._gate:
            if self._last_request_time is not None:
                elapsed_ms = (self._clock() - self._last_request_time) * 1000
                if elapsed_ms < self.min_interval_ms:
                    await self._sleep((self.min_interval_ms - elapsed_ms) / 1000)
            self._last_request_time = self._clock()

    async def call(self, fn: Callable[[], Awaitable[Any]]) -> Any:
        """
        Run `fn` behind the pacing gate, retrying transient failures.

        Backoff between attempts is 2**attempt seconds (1s, 2s, ...).
        The last error is re-raised once every attempt has failed.
        """
        last_error: Optional[BaseException] = None

        for attempt in range(self.max_retries):
            try:
                await self._wait_for_slot()
                self.stats["requests"] += 1
                return await fn()
            except RETRYABLE_ERRORS as e:
                if isinstance(e, aiohttp.ClientResponseError) and not is_retryable_status(e.status):
                    self.stats["failures"] += 1
                    logger.warning(f"Request rejected with HTTP {e.status}, not retrying")
                    raise
                last_error = e
                logger.warning(f"Request failed (attempt {attempt + 1}/{self.max_retries}): {e!r}")

                if attempt < self.max_retries - 1:
                    self.stats["retries"] += 1
                    backoff_ms = 2 ** attempt * 1000
                    await self._sleep(backoff_ms / 1000)

        self.stats["failures"] += 1
        raise last_error

    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None,
                       allow_not_found: bool = False) -> Any:
        """
        GET `path` and decode the JSON body.

        With `allow_not_found`, a 404 is a normal empty result (None) and is not retried.
        """
        url = f"{self.base_url}{path}"

        async def _request():
            session = self._get_session()
            async with session.get(url, params=params, headers=self.headers) as response:
                if response.status == 404 and allow_not_found:
                    return None
                response.raise_for_status()
                return await response.json()

        return await self.call(_request)
