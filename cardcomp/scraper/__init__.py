"""
CardComp — Scraper Layer

Every source implements the same contract: an ordered ladder of strategies,
tried lazily until one returns listings that survive the acceptance filter.

    async with EbayScraper() as scraper:
        result = await scraper.fetch("2023 Topps Chrome Mike Trout #1")

fetch() never raises. A source that finds nothing returns zero listings and
a ScrapingError naming the search and the last failure.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

import httpx
import structlog

from cardcomp.config import SourceId, settings
from cardcomp.errors import SourceTimeoutError
from cardcomp.models import RawListing, ScrapingError, SourceResult
from cardcomp.scraper.filters import filter_listings
from cardcomp.scraper.rate_limit import RateLimiter

logger = structlog.get_logger(__name__)

Strategy = Callable[[str], Awaitable[list[RawListing]]]


class SourceScraper(ABC):
    """
    Base class for one comp source.

    Subclasses set `source_id` and `label` and return their ladder from
    strategies(). All HTTP goes through _request(), which applies the
    source's rate limiter and the per-request timeout.
    """

    source_id: SourceId
    label: str

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client
        self._owns_client = client is None
        self._limiter = RateLimiter.for_source(self.source_id.value, self.min_request_interval())

    @classmethod
    def is_configured(cls) -> bool:
        """False when the source needs credentials that are not set."""
        return True

    @abstractmethod
    def min_request_interval(self) -> float:
        ...

    @abstractmethod
    def strategies(self) -> list[tuple[str, Strategy]]:
        ...

    async def __aenter__(self) -> "SourceScraper":
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={
                    "User-Agent": settings.USER_AGENT,
                    "Accept-Language": "en-US,en;q=0.9",
                },
                follow_redirects=True,
                timeout=settings.REQUEST_TIMEOUT_SECONDS,
            )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Rate-limited HTTP call raced against REQUEST_TIMEOUT_SECONDS."""
        assert self._client is not None, "Client not initialized. Use 'async with'."

        await self._limiter.wait()
        timeout = settings.REQUEST_TIMEOUT_SECONDS
        try:
            return await asyncio.wait_for(self._client.request(method, url, **kwargs), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise SourceTimeoutError(f"request timed out after {timeout}s") from e

    async def fetch(self, search: str) -> SourceResult:
        """
        Run the strategy ladder for one search string.

        Returns:
            SourceResult with the first non-empty filtered strategy output, or
            zero listings and an error entry when every strategy came back empty.
        """
        last_failure: str | None = None

        for name, strategy in self.strategies():
            try:
                raw = await strategy(search)
            except Exception as e:
                last_failure = f"{name}: {e}" if str(e) else f"{name}: {type(e).__name__}"
                logger.warning(
                    "scraper_strategy_failed",
                    strategy=name,
                    search=search,
                    error=str(e),
                    error_type=type(e).__name__,
                    source=self.source_id.value,
                )
                continue

            accepted = filter_listings(raw)
            logger.info(
                "scraper_strategy_complete",
                strategy=name,
                search=search,
                raw_count=len(raw),
                accepted_count=len(accepted),
                source=self.source_id.value,
            )
            if accepted:
                return SourceResult(source=self.label, results=accepted)

        message = f"No results found for '{search}'"
        if last_failure:
            message = f"{message} (last failure: {last_failure})"
        logger.warning("scraper_all_strategies_empty", search=search, source=self.source_id.value)
        return SourceResult(
            source=self.label,
            error=ScrapingError(source=self.label, message=message),
        )


__all__ = ["SourceScraper", "Strategy"]
