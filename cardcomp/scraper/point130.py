"""
CardComp — 130point auction-aggregator scraper

Strategy ladder:
1. Structured sales endpoint (POST form, JSON back).
2. Legacy list endpoint (GET, format=json).
3. Sales page HTML: table rows, listing cards, generic result blocks.

Both JSON endpoints have changed shape over time, so the payload parser
accepts a bare list or a handful of envelopes, and several spellings per
field.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urljoin, urlsplit

import structlog

from cardcomp.config import CompSource, SourceId, settings
from cardcomp.errors import StrategyError
from cardcomp.models import RawListing
from cardcomp.scraper import SourceScraper, Strategy
from cardcomp.scraper.markup import PatternSet, ensure_listing_page, parse_listings
from cardcomp.utils.parsing import is_http_url

logger = structlog.get_logger(__name__)

_ENVELOPE_KEYS = ("results", "data", "sales", "items")

# Path fragments of the sale and lot pages 130point links out to
ITEM_PATH_MARKERS = ("/itm/", "/sale/", "/item/", "/items/", "/lot/", "/lots/")

_FIELD_KEYS: dict[str, tuple[str, ...]] = {
    "title": ("title", "name", "itemTitle", "item_title"),
    "price": ("price", "salePrice", "sale_price", "soldPrice", "sold_price", "currentPrice"),
    "date": ("date", "saleDate", "sale_date", "soldDate", "sold_date", "endTime", "end_date"),
    "url": ("url", "link", "itemUrl", "item_url", "itemWebUrl"),
    "image": ("image", "imageUrl", "image_url", "img", "thumbnail"),
    "id": ("id", "itemId", "item_id", "saleId"),
}

PATTERN_SETS = [
    PatternSet(
        name="table",
        item="table tr",
        title="td a, td.title",
        price="td.price, td[class*='price'], span[class*='price']",
        date="td.date, td[class*='date'], span[class*='date']",
        link="td a[href]",
        image="img",
    ),
    PatternSet(
        name="cards",
        item="div.sale-item, div[class*='sale-card'], div[class*='listing']",
        title="[class*='title'], h3, h4",
        price="[class*='price']",
        date="[class*='date']",
        link="a[href]",
        image="img",
    ),
    PatternSet(
        name="results",
        item="div[class*='result'], li[class*='result']",
        title="a[title], [class*='title'], a",
        price="[class*='price']",
        date="[class*='date'], time",
        link="a[href]",
        image="img",
    ),
]


def _pick(item: dict[str, Any], field: str) -> Any:
    for key in _FIELD_KEYS[field]:
        value = item.get(key)
        if value not in (None, ""):
            return value
    return None


def is_item_url(url: str) -> bool:
    """
    Absolute links shaped like a single sale: eBay or Heritage /itm/,
    130point /sale/, or an auction house lot page.
    """
    if not is_http_url(url):
        return False
    path = urlsplit(url).path.lower()
    return any(marker in path for marker in ITEM_PATH_MARKERS)


class Point130Scraper(SourceScraper):
    """
    Sold listings aggregated by 130point.

    Usage:
        async with Point130Scraper() as scraper:
            result = await scraper.fetch("2023 Topps Chrome Mike Trout")
    """

    source_id = SourceId.POINT130
    label = CompSource.POINT130.value

    def min_request_interval(self) -> float:
        return settings.POINT130_MIN_REQUEST_INTERVAL

    def strategies(self) -> list[tuple[str, Strategy]]:
        return [
            ("sales_api", self._search_sales_api),
            ("legacy_list", self._search_legacy_list),
            ("html", self._search_html),
        ]

    def parse_payload(self, payload: Any, base_url: str) -> list[RawListing]:
        """
        Defensive JSON parser shared by both structured endpoints.

        Raises:
            StrategyError: When the payload has no recognizable list of sales.
        """
        items: Any = payload
        if isinstance(payload, dict):
            items = None
            for key in _ENVELOPE_KEYS:
                if isinstance(payload.get(key), list):
                    items = payload[key]
                    break
        if not isinstance(items, list):
            raise StrategyError("unrecognized sales payload")

        results: list[RawListing] = []
        for item in items[: settings.MAX_ITEMS_PER_PAGE]:
            if not isinstance(item, dict):
                continue
            url = _pick(item, "url")
            image = _pick(item, "image")
            item_id = _pick(item, "id")
            results.append(
                RawListing(
                    title=str(_pick(item, "title") or ""),
                    price=_pick(item, "price"),
                    date=_pick(item, "date"),
                    url=urljoin(base_url, url) if isinstance(url, str) else None,
                    image=urljoin(base_url, image) if isinstance(image, str) else None,
                    source=self.label,
                    source_item_id=str(item_id) if item_id is not None else None,
                )
            )
        return [listing for listing in results if listing.url and is_item_url(listing.url)]

    async def _search_sales_api(self, search: str) -> list[RawListing]:
        response = await self._request(
            "POST",
            settings.POINT130_API_URL,
            data={"query": search, "sort": "date_desc", "format": "json"},
            headers={"Referer": settings.POINT130_SALES_URL, "Accept": "application/json"},
        )
        response.raise_for_status()
        return self.parse_payload(response.json(), settings.POINT130_SALES_URL)

    async def _search_legacy_list(self, search: str) -> list[RawListing]:
        response = await self._request(
            "GET",
            settings.POINT130_LEGACY_URL,
            params={"search": search, "format": "json"},
            headers={"Referer": settings.POINT130_SALES_URL, "Accept": "application/json"},
        )
        response.raise_for_status()
        return self.parse_payload(response.json(), str(response.url))

    async def _search_html(self, search: str) -> list[RawListing]:
        response = await self._request(
            "GET",
            settings.POINT130_SALES_URL,
            params={"search": search},
            headers={"Referer": settings.POINT130_SALES_URL},
        )
        response.raise_for_status()
        html = response.text
        ensure_listing_page(html, "html")
        return parse_listings(html, PATTERN_SETS, str(response.url), self.label, is_item_url)
