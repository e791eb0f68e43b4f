"""
CardComp — Per-source request spacing

One RateLimiter per source per process. Concurrent callers queue on the
limiter's lock, so the "last request" timestamp is read and updated by one
coroutine at a time. The lock belongs to the event loop that created it; a
limiter reused under a new loop (one asyncio.run per request) gets a fresh
lock while keeping its timestamp.
"""

from __future__ import annotations

import asyncio
import time
from typing import ClassVar

import structlog

logger = structlog.get_logger(__name__)


class RateLimiter:
    """
    Enforces a minimum interval between consecutive requests to one source.

    Usage:
        limiter = RateLimiter.for_source("ebay", 1.5)
        await limiter.wait()
    """

    _registry: ClassVar[dict[str, "RateLimiter"]] = {}

    def __init__(self, name: str, min_interval: float) -> None:
        self.name = name
        self.min_interval = max(0.0, min_interval)
        self._lock: asyncio.Lock | None = None
        self._lock_loop: asyncio.AbstractEventLoop | None = None
        self._last_request: float | None = None

    @classmethod
    def for_source(cls, name: str, min_interval: float) -> "RateLimiter":
        """Return the process-wide limiter for a source, creating it on first use."""
        limiter = cls._registry.get(name)
        if limiter is None:
            limiter = cls(name, min_interval)
            cls._registry[name] = limiter
        return limiter

    @classmethod
    def reset_registry(cls) -> None:
        cls._registry.clear()

    def _loop_lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    async def wait(self) -> None:
        """Sleep until at least min_interval has passed since the previous request."""
        async with self._loop_lock():
            if self._last_request is not None:
                delay = self._last_request + self.min_interval - time.monotonic()
                if delay > 0:
                    logger.debug(
                        "rate_limit_wait",
                        limiter=self.name,
                        delay_seconds=round(delay, 3),
                        source="rate_limit",
                    )
                    await asyncio.sleep(delay)
            self._last_request = time.monotonic()
