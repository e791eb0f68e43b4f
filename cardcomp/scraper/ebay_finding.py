"""
CardComp — eBay Finding API client (optional source)

Single strategy: findCompletedItems with SoldItemsOnly. Only usable when
EBAY_APP_ID is configured. Transport errors, HTTP 429 and 5xx are retried
with exponential backoff; eBay errorMessage envelopes fail immediately.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog

from cardcomp.config import CompSource, SourceId, settings
from cardcomp.errors import SourceTimeoutError, StrategyError
from cardcomp.models import RawListing
from cardcomp.scraper import SourceScraper, Strategy

logger = structlog.get_logger(__name__)


def _first(value: Any) -> Any:
    """The Finding API wraps every scalar in a one-element list."""
    while isinstance(value, list):
        if not value:
            return None
        value = value[0]
    return value


def _error_detail(data: dict[str, Any]) -> str:
    envelope = _first(data.get("errorMessage"))
    error = _first(envelope.get("error")) if isinstance(envelope, dict) else None
    message = _first(error.get("message")) if isinstance(error, dict) else None
    return str(message) if message else "unknown error"


class EbayFindingClient(SourceScraper):
    """
    Completed sold items from the official eBay Finding API.

    Usage:
        async with EbayFindingClient() as client:
            result = await client.fetch("2023 Topps Chrome Mike Trout #1")
    """

    source_id = SourceId.EBAY_API
    label = "eBay API"

    @classmethod
    def is_configured(cls) -> bool:
        return bool(settings.EBAY_APP_ID)

    def min_request_interval(self) -> float:
        return settings.EBAY_API_MIN_REQUEST_INTERVAL

    def strategies(self) -> list[tuple[str, Strategy]]:
        return [("finding_api", self.find_completed_items)]

    def _params(self, keywords: str) -> dict[str, str]:
        return {
            "OPERATION-NAME": "findCompletedItems",
            "SERVICE-VERSION": "1.0.0",
            "SECURITY-APPNAME": settings.EBAY_APP_ID,
            "RESPONSE-DATA-FORMAT": "JSON",
            "REST-PAYLOAD": "true",
            "keywords": keywords,
            "paginationInput.entriesPerPage": str(settings.EBAY_API_MAX_RESULTS),
            "paginationInput.pageNumber": "1",
            "sortOrder": "EndTimeSoonest",
            "itemFilter(0).name": "SoldItemsOnly",
            "itemFilter(0).value": "true",
        }

    async def _request_with_retry(self, params: dict[str, str]) -> dict[str, Any]:
        """Call the Finding API with retry logic and exponential backoff."""
        max_attempts = max(1, settings.API_MAX_RETRIES)
        last_error: Exception | None = None

        for attempt in range(max_attempts):
            wait_time = settings.API_BASE_BACKOFF_SECONDS * (2 ** attempt)
            try:
                response = await self._request(
                    "GET",
                    settings.EBAY_FINDING_URL,
                    params=params,
                    headers={"Accept": "application/json"},
                )

                if response.status_code == 429 or response.status_code >= 500:
                    last_error = StrategyError(f"HTTP {response.status_code}", "finding_api")
                    logger.warning(
                        "ebay_finding_retryable_status",
                        status_code=response.status_code,
                        attempt=attempt + 1,
                        source="ebay_api",
                    )
                    if attempt + 1 < max_attempts:
                        await asyncio.sleep(wait_time)
                    continue

                response.raise_for_status()
                data = response.json()

            except (httpx.RequestError, SourceTimeoutError) as e:
                last_error = e
                logger.warning(
                    "ebay_finding_request_error",
                    error=str(e) or type(e).__name__,
                    attempt=attempt + 1,
                    source="ebay_api",
                )
                if attempt + 1 < max_attempts:
                    await asyncio.sleep(wait_time)
                continue

            if not isinstance(data, dict):
                raise StrategyError("unexpected Finding API envelope", "finding_api")
            if "errorMessage" in data:
                raise StrategyError(f"eBay API error: {_error_detail(data)}", "finding_api")
            return data

        raise StrategyError(
            f"Finding API request failed after {max_attempts} attempts: {last_error}",
            "finding_api",
        ) from last_error

    async def find_completed_items(self, keywords: str) -> list[RawListing]:
        if not settings.EBAY_APP_ID:
            raise StrategyError("EBAY_APP_ID is not configured", "finding_api")

        data = await self._request_with_retry(self._params(keywords))

        body = _first(data.get("findCompletedItemsResponse"))
        search_result = _first(body.get("searchResult")) if isinstance(body, dict) else None
        if not isinstance(search_result, dict) or search_result.get("@count") == "0":
            logger.info("ebay_finding_no_items", keywords=keywords, source="ebay_api")
            return []

        results: list[RawListing] = []
        for item in search_result.get("item") or []:
            if not isinstance(item, dict):
                continue
            selling_status = _first(item.get("sellingStatus")) or {}
            listing_info = _first(item.get("listingInfo")) or {}
            current_price = _first(selling_status.get("currentPrice")) if isinstance(selling_status, dict) else None
            results.append(
                RawListing(
                    title=_first(item.get("title")) or "",
                    price=current_price.get("__value__") if isinstance(current_price, dict) else None,
                    date=_first(listing_info.get("endTime")) if isinstance(listing_info, dict) else None,
                    url=_first(item.get("viewItemURL")),
                    image=_first(item.get("galleryURL")),
                    source=CompSource.EBAY.value,
                    source_item_id=_first(item.get("itemId")),
                )
            )

        logger.info("ebay_finding_complete", keywords=keywords, item_count=len(results), source="ebay_api")
        return results
