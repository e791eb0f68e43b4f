"""
CardComp — eBay sold-listing scraper

Strategy ladder:
1. Browse API (item_summary/search, sold items only). OAuth2 client
   credentials token cached until expiry. Skipped without credentials.
2. Sold-search RSS feed (_rss=1), parsed as XML.
3. Sold-search HTML page, three generations of result markup
   (s-item, s-card, data-view="mi:").

Only /itm/ links are genuine listings.
"""

from __future__ import annotations

import base64
import re
import xml.etree.ElementTree as ET
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog

from cardcomp.config import CompSource, SourceId, settings
from cardcomp.errors import StrategyError
from cardcomp.models import RawListing
from cardcomp.scraper import SourceScraper, Strategy
from cardcomp.scraper.markup import PatternSet, ensure_listing_page, parse_listings

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Module-level token cache
# ---------------------------------------------------------------------------
_TOKEN_CACHE: dict[str, Any] = {
    "access_token": None,
    "expires_at": datetime.min.replace(tzinfo=timezone.utc),
}

_RSS_PRICE = re.compile(r"\$\s?\d[\d,]*(?:\.\d{2})?")
_RSS_IMAGE = re.compile(r"""src=["'](https?://[^"']+)["']""")

PATTERN_SETS = [
    PatternSet(
        name="s-item",
        item="li.s-item, div.s-item",
        title=".s-item__title",
        price=".s-item__price",
        date=".s-item__title--tagblock .POSITIVE, .s-item__caption--signal, .s-item__ended-date",
        link="a.s-item__link",
        image=".s-item__image img",
    ),
    PatternSet(
        name="s-card",
        item="li.s-card, div.s-card",
        title=".s-card__title",
        price=".s-card__price",
        date=".s-card__caption",
        link="a.su-link, a[href*='/itm/']",
        image="img",
    ),
    PatternSet(
        name="data-view",
        item="[data-view^='mi:']",
        title="[role='heading'], h3",
        price="[class*='price']",
        date="[class*='caption'], [class*='ended'], [class*='sold']",
        link="a[href*='/itm/']",
        image="img",
    ),
]


def clear_token_cache() -> None:
    _TOKEN_CACHE["access_token"] = None
    _TOKEN_CACHE["expires_at"] = datetime.min.replace(tzinfo=timezone.utc)


def is_item_url(url: str) -> bool:
    return "/itm/" in url


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


class EbayScraper(SourceScraper):
    """
    Sold listings from the major marketplace.

    Usage:
        async with EbayScraper() as scraper:
            result = await scraper.fetch("2023 Topps Chrome Mike Trout #1")
    """

    source_id = SourceId.EBAY
    label = CompSource.EBAY.value

    def min_request_interval(self) -> float:
        return settings.EBAY_MIN_REQUEST_INTERVAL

    def strategies(self) -> list[tuple[str, Strategy]]:
        return [
            ("browse_api", self._search_browse_api),
            ("rss", self._search_rss),
            ("html", self._search_html),
        ]

    def _search_params(self, search: str) -> dict[str, str]:
        return {
            "_nkw": search,
            "LH_Sold": "1",
            "LH_Complete": "1",
            "_sop": "13",  # newest first
            "_ipg": str(settings.MAX_ITEMS_PER_PAGE),
        }

    # -----------------------------------------------------------------------
    # 1. Browse API
    # -----------------------------------------------------------------------

    async def _get_access_token(self) -> str:
        """
        OAuth2 Client Credentials flow using EBAY_APP_ID + EBAY_CERT_ID.

        Caches the token until expiry (with a 60-second safety margin).
        Returns an empty string when credentials are not configured.
        """
        if not settings.EBAY_APP_ID or not settings.EBAY_CERT_ID:
            return ""

        now = datetime.now(timezone.utc)
        if _TOKEN_CACHE["access_token"] and now < _TOKEN_CACHE["expires_at"]:
            return str(_TOKEN_CACHE["access_token"])

        credentials = f"{settings.EBAY_APP_ID}:{settings.EBAY_CERT_ID}"
        encoded = base64.b64encode(credentials.encode()).decode()

        response = await self._request(
            "POST",
            settings.EBAY_OAUTH_URL,
            headers={
                "Authorization": f"Basic {encoded}",
                "Content-Type": "application/x-www-form-urlencoded",
            },
            data={
                "grant_type": "client_credentials",
                "scope": "https://api.ebay.com/oauth/api_scope",
            },
        )
        response.raise_for_status()
        data = response.json()

        token = data.get("access_token", "")
        if not token:
            raise StrategyError("OAuth response carried no access token", "browse_api")
        expires_in = int(data.get("expires_in", 7200))

        _TOKEN_CACHE["access_token"] = token
        _TOKEN_CACHE["expires_at"] = now + timedelta(seconds=expires_in - 60)

        logger.info("ebay_token_refreshed", expires_in=expires_in, source="ebay")
        return token

    async def _search_browse_api(self, search: str) -> list[RawListing]:
        token = await self._get_access_token()
        if not token:
            logger.debug("ebay_browse_skipped_no_credentials", source="ebay")
            return []

        response = await self._request(
            "GET",
            f"{settings.EBAY_BROWSE_URL}/item_summary/search",
            headers={
                "Authorization": f"Bearer {token}",
                "X-EBAY-C-MARKETPLACE-ID": settings.EBAY_MARKETPLACE_ID,
            },
            params={
                "q": search,
                "filter": "soldItemsOnly:true,buyingOptions:{AUCTION|FIXED_PRICE}",
                "sort": "endTimeNewest",
                "limit": str(settings.EBAY_API_MAX_RESULTS),
            },
        )
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise StrategyError("unexpected Browse API envelope", "browse_api")

        items: list[Any] = []
        for key in ("itemSummaries", "items", "results"):
            if isinstance(data.get(key), list):
                items = data[key]
                break

        results: list[RawListing] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            results.append(
                RawListing(
                    title=item.get("title") or "",
                    price=(item.get("price") or {}).get("value"),
                    date=item.get("itemEndDate") or item.get("lastSoldDate"),
                    url=item.get("itemWebUrl"),
                    image=(item.get("image") or {}).get("imageUrl"),
                    source=self.label,
                    source_item_id=item.get("itemId"),
                )
            )
        return results

    # -----------------------------------------------------------------------
    # 2. RSS feed
    # -----------------------------------------------------------------------

    async def _search_rss(self, search: str) -> list[RawListing]:
        params = self._search_params(search)
        params["_rss"] = "1"
        response = await self._request("GET", settings.EBAY_SEARCH_URL, params=params)
        response.raise_for_status()

        try:
            root = ET.fromstring(response.content)
        except ET.ParseError as e:
            raise StrategyError(f"RSS feed is not valid XML: {e}", "rss") from e

        results: list[RawListing] = []
        for item in root.iter("item"):
            fields: dict[str, str] = {}
            for child in item:
                name = _local_name(child.tag)
                text = (child.text or "").strip()
                if name.endswith("CurrentPrice"):
                    fields["price"] = text
                elif name.endswith("EndTime"):
                    fields["end_time"] = text
                else:
                    fields.setdefault(name, text)

            description = fields.get("description", "")
            price: str | None = fields.get("price")
            if not price:
                match = _RSS_PRICE.search(description)
                price = match.group() if match else None
            image_match = _RSS_IMAGE.search(description)

            results.append(
                RawListing(
                    title=fields.get("title", ""),
                    price=price,
                    date=fields.get("end_time") or fields.get("pubDate"),
                    url=fields.get("link"),
                    image=image_match.group(1) if image_match else None,
                    source=self.label,
                )
            )
            if len(results) >= settings.MAX_ITEMS_PER_PAGE:
                break

        return [listing for listing in results if listing.url and is_item_url(listing.url)]

    # -----------------------------------------------------------------------
    # 3. HTML page
    # -----------------------------------------------------------------------

    async def _search_html(self, search: str) -> list[RawListing]:
        response = await self._request("GET", settings.EBAY_SEARCH_URL, params=self._search_params(search))
        response.raise_for_status()
        html = response.text
        ensure_listing_page(html, "html")
        return parse_listings(html, PATTERN_SETS, str(response.url), self.label, is_item_url)
