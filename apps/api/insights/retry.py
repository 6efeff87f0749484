from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

import httpx

from .config import settings
from .errors import CompletionTransportError
from .log import get_logger

logger = get_logger(__name__)

RATE_LIMIT_STATUS = 429
TRANSPORT_ERRORS: tuple[type[Exception], ...] = (httpx.TransportError, CompletionTransportError)

Sleep = Callable[[float], Awaitable[None]]


class RetryingRequester:
    """Re-issues a network call on HTTP 429 or transport failure with a fixed delay.

    Exhaustion is asymmetric: a transport error is re-raised after the last
    attempt, while a run of 429s ends by returning the final 429 response.
    """

    def __init__(
        self,
        retries: Optional[int] = None,
        delay: Optional[float] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.retries = settings.retry_attempts if retries is None else retries
        self.delay = settings.retry_delay_seconds if delay is None else delay
        self._sleep = sleep

    async def send(self, call: Callable[[], Awaitable[httpx.Response]]) -> httpx.Response:
        attempt = 0
        while True:
            try:
                response = await call()
            except TRANSPORT_ERRORS as exc:
                if attempt >= self.retries:
                    raise
                attempt += 1
                logger.warning(
                    "Transport error (%s), retry %d/%d in %.0fs",
                    type(exc).__name__,
                    attempt,
                    self.retries,
                    self.delay,
                )
                await self._sleep(self.delay)
                continue

            if response.status_code == RATE_LIMIT_STATUS and attempt < self.retries:
                attempt += 1
                logger.warning(
                    "Rate limited, retry %d/%d in %.0fs", attempt, self.retries, self.delay
                )
                await self._sleep(self.delay)
                continue

            if response.status_code == RATE_LIMIT_STATUS:
                logger.warning("Still rate limited after %d retries", self.retries)
            return response
