"""
CardComp — Scraper acceptance filter

Applied to every strategy's output before the ladder decides whether that
strategy "found something". Stricter than nothing, looser than the
normalizer: it only throws out listings that are obviously not a single
sold card.
"""

from __future__ import annotations

from typing import Iterable

from cardcomp.config import settings
from cardcomp.models import RawListing
from cardcomp.utils.parsing import is_http_url, parse_price
from cardcomp.utils.text import mentions_non_single_card, normalize_whitespace


def accept_listing(listing: RawListing) -> bool:
    title = normalize_whitespace(listing.title or "")
    if len(title) <= settings.MIN_TITLE_LENGTH:
        return False
    if mentions_non_single_card(title):
        return False

    price = parse_price(listing.price)
    if price is None or price <= 0 or price >= settings.SCRAPER_MAX_PRICE:
        return False

    return is_http_url(listing.url)


def filter_listings(listings: Iterable[RawListing]) -> list[RawListing]:
    return [listing for listing in listings if accept_listing(listing)]
