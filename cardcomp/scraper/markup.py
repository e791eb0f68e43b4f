"""
CardComp — Markup parsing with ordered pattern sets

Marketplace pages change their markup often. Each source declares a few
PatternSets (CSS selector bundles); they are tried in order until one
yields MIN_PATTERN_ITEMS listings, otherwise the set with the largest yield
is used.

A listing without a genuine item URL is dropped. URLs are never synthesized.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable
from urllib.parse import urljoin

import structlog
from bs4 import BeautifulSoup, Tag

from cardcomp.config import settings
from cardcomp.errors import StrategyError
from cardcomp.models import RawListing
from cardcomp.utils.text import normalize_whitespace

logger = structlog.get_logger(__name__)

_BLOCK_MARKERS = ("captcha", "pardon our interruption", "access denied", "verify you are a human")


@dataclass(frozen=True)
class PatternSet:
    """Selectors for one generation of a page's listing markup."""
    name: str
    item: str
    title: str
    price: str
    link: str
    date: str | None = None
    image: str | None = None


def ensure_listing_page(html: str, strategy: str) -> None:
    """Raise StrategyError for pages that are too short or are a bot challenge."""
    if len(html) < settings.MIN_HTML_LENGTH:
        raise StrategyError(f"page too short ({len(html)} chars), likely blocked", strategy)
    lowered = html.lower()
    for marker in _BLOCK_MARKERS:
        if marker in lowered:
            raise StrategyError(f"bot challenge detected ({marker})", strategy)


def _text(item: Tag, selector: str | None) -> str | None:
    if not selector:
        return None
    element = item.select_one(selector)
    if element is None:
        return None
    text = normalize_whitespace(element.get_text(" ", strip=True))
    return text or None


def _attr(item: Tag, selector: str | None, *names: str) -> str | None:
    if not selector:
        return None
    element = item.select_one(selector)
    if element is None:
        return None
    for name in names:
        value = element.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _extract(
    soup: BeautifulSoup,
    patterns: PatternSet,
    base_url: str,
    source: str,
    is_item_url: Callable[[str], bool],
) -> list[RawListing]:
    listings: list[RawListing] = []
    for item in soup.select(patterns.item):
        title = _text(item, patterns.title)
        href = _attr(item, patterns.link, "href")
        if not title or not href or href.startswith(("#", "javascript:")):
            continue
        url = urljoin(base_url, href)
        if not is_item_url(url):
            continue

        image = _attr(item, patterns.image, "src", "data-src")
        listings.append(
            RawListing(
                title=title,
                price=_text(item, patterns.price),
                date=_text(item, patterns.date),
                url=url,
                image=urljoin(base_url, image) if image else None,
                source=source,
            )
        )
        if len(listings) >= settings.MAX_ITEMS_PER_PAGE:
            break
    return listings


def parse_listings(
    html: str,
    pattern_sets: list[PatternSet],
    base_url: str,
    source: str,
    is_item_url: Callable[[str], bool],
) -> list[RawListing]:
    """
    Extract listings from a results page.

    Args:
        html: Page markup.
        pattern_sets: Selector bundles, most current markup first.
        base_url: URL the page was fetched from, for resolving relative links.
        source: Source label stamped on every RawListing.
        is_item_url: Predicate deciding whether a resolved link is a real listing.

    Returns:
        Listings from the first set reaching MIN_PATTERN_ITEMS, or the
        largest yield when none does.
    """
    soup = BeautifulSoup(html, "html.parser")
    best: list[RawListing] = []
    best_name: str | None = None

    for patterns in pattern_sets:
        listings = _extract(soup, patterns, base_url, source, is_item_url)
        logger.debug(
            "markup_pattern_tried",
            pattern=patterns.name,
            item_count=len(listings),
            source=source,
        )
        if len(listings) >= settings.MIN_PATTERN_ITEMS:
            return listings
        if len(listings) > len(best):
            best, best_name = listings, patterns.name

    if best:
        logger.debug("markup_pattern_best_effort", pattern=best_name, item_count=len(best), source=source)
    return best
