from __future__ import annotations

import asyncio
import time

import structlog

from lexingest.config import CONFIG

logger = structlog.get_logger(__name__)


class RateLimiter:
    """Minimum-interval spacing between outbound scraping requests.

    Concurrent callers are serialized: each waits for the previous
    ``throttle()`` to finish, then for ``min_delay`` since its timestamp.
    """

    def __init__(self, min_delay: float = CONFIG.min_request_delay) -> None:
        self.min_delay = min_delay
        self._lock = asyncio.Lock()
        self._last_call: float | None = None

    @property
    def last_call(self) -> float | None:
        return self._last_call

    async def throttle(self) -> None:
        async with self._lock:
            if self._last_call is not None:
                elapsed = time.monotonic() - self._last_call
                wait = self.min_delay - elapsed
                if wait > 0:
                    logger.info("rate_limit.wait", wait_ms=round(wait * 1000))
                    await asyncio.sleep(wait)
            self._last_call = time.monotonic()


# Global limiter shared by every scraper in the process
SCRAPE_LIMITER = RateLimiter()
