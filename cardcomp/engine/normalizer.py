"""
CardComp — Normalizer

Merges the raw listings every source returned for one search attempt into
NormalizedComp objects, then deduplicates.

Each listing is sanitized on its own. A listing that fails any rule is
dropped quietly (logged at debug level); that is noise filtering, not an
error, and it never aborts the rest of the batch.

Sanitization rules:
    title   trimmed, whitespace collapsed, unsafe characters stripped, >= 10 chars
    price   parsed from numbers or currency strings, 0 < price <= 50000, cents
    date    parseable and within [now - ~2 years, now + 7 days]
    url     absolute http(s); image likewise or dropped
    source  mapped onto the CompSource enumeration
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Iterable

import structlog

from cardcomp.config import CompSource, settings
from cardcomp.models import (
    NormalizationResult,
    NormalizedComp,
    RawListing,
    ScrapingError,
    SourceResult,
)
from cardcomp.utils.parsing import is_http_url, parse_date, parse_price
from cardcomp.utils.text import normalize_whitespace, significant_words

logger = structlog.get_logger(__name__)

_TWO_DP = Decimal("0.01")
_UNSAFE_TITLE_CHARS = re.compile(r"[^\w\s\-#.()/&'+]")

_SOURCE_ALIASES: dict[str, CompSource] = {
    "ebay": CompSource.EBAY,
    "ebay.com": CompSource.EBAY,
    "ebay api": CompSource.EBAY,
    "ebay_api": CompSource.EBAY,
    "ebay browse api": CompSource.EBAY,
    "ebay finding api": CompSource.EBAY,
    "130point": CompSource.POINT130,
    "130point.com": CompSource.POINT130,
    "130 point": CompSource.POINT130,
}


def sanitize_title(title: str) -> str:
    """Collapse whitespace, strip characters outside the safe set, cap length."""
    cleaned = _UNSAFE_TITLE_CHARS.sub("", normalize_whitespace(title))
    return normalize_whitespace(cleaned)[: settings.MAX_TITLE_LENGTH].strip()


def normalize_source(label: str) -> CompSource | None:
    """Map a free-form source label onto the fixed enumeration."""
    key = normalize_whitespace(label or "").lower()
    if key in _SOURCE_ALIASES:
        return _SOURCE_ALIASES[key]
    for member in CompSource:
        if key == member.value.lower():
            return member
    return None


def _today(now: datetime | None) -> date:
    return (now or datetime.now(timezone.utc)).date()


def normalize_listing(raw: RawListing, now: datetime | None = None) -> NormalizedComp | None:
    """
    Sanitize one raw listing.

    Returns:
        NormalizedComp, or None when any field fails validation.
    """
    title = sanitize_title(raw.title or "")
    if len(title) < settings.MIN_NORMALIZED_TITLE_LENGTH:
        return _reject(raw, "title")

    price = parse_price(raw.price)
    if price is None or price <= 0 or price > settings.MAX_COMP_PRICE:
        return _reject(raw, "price")
    price = price.quantize(_TWO_DP, rounding=ROUND_HALF_UP)
    if price <= 0:
        return _reject(raw, "price")

    sold_on = parse_date(raw.date)
    today = _today(now)
    if sold_on is None:
        return _reject(raw, "date")
    if sold_on < today - timedelta(days=settings.DATE_WINDOW_PAST_DAYS):
        return _reject(raw, "date_too_old")
    if sold_on > today + timedelta(days=settings.DATE_WINDOW_FUTURE_DAYS):
        return _reject(raw, "date_in_future")

    if not is_http_url(raw.url):
        return _reject(raw, "url")

    source = normalize_source(raw.source)
    if source is None:
        return _reject(raw, "source")

    image = raw.image if is_http_url(raw.image) else None

    return NormalizedComp(
        title=title,
        price=price,
        date=sold_on,
        source=source,
        url=raw.url,
        image=image,
    )


def _reject(raw: RawListing, reason: str) -> None:
    logger.debug(
        "normalizer_listing_rejected",
        reason=reason,
        title=(raw.title or "")[:80],
        listing_source=raw.source,
        source="normalizer",
    )
    return None


def dedup_signature(comp: NormalizedComp) -> tuple[str, Decimal, str]:
    """
    (significant title words, price bucket, source).

    Every significant word is kept, card numbers and grades included, and
    sorted so reordered titles collide.
    """
    words = sorted(set(significant_words(comp.title, keep_numbers=True)))
    bucket_width = settings.DEDUP_PRICE_BUCKET
    bucket = (comp.price / bucket_width).to_integral_value(rounding=ROUND_FLOOR) * bucket_width
    return " ".join(words), bucket, comp.source.value


def deduplicate(comps: Iterable[NormalizedComp]) -> list[NormalizedComp]:
    """
    Collapse comps sharing a signature, keeping the later sale date.

    Idempotent. Output is sorted by date, newest first.
    """
    kept: dict[tuple[str, Decimal, str], NormalizedComp] = {}
    total = 0
    for comp in comps:
        total += 1
        key = dedup_signature(comp)
        existing = kept.get(key)
        if existing is None or comp.date > existing.date:
            kept[key] = comp

    result = sorted(kept.values(), key=lambda c: c.date, reverse=True)
    logger.debug(
        "normalizer_deduplicated",
        before=total,
        after=len(result),
        source="normalizer",
    )
    return result


def combine(
    per_source_results: Iterable[SourceResult],
    now: datetime | None = None,
) -> NormalizationResult:
    """
    Merge every source's output for one search attempt.

    Args:
        per_source_results: One SourceResult per scraper call.
        now: Reference time for the date window (default: current UTC time).

    Returns:
        NormalizationResult with deduplicated comps (newest first) and the
        sources' errors.
    """
    comps: list[NormalizedComp] = []
    errors: list[ScrapingError] = []
    raw_count = 0

    for source_result in per_source_results:
        if source_result.error is not None:
            errors.append(source_result.error)
        for raw in source_result.results:
            raw_count += 1
            try:
                normalized = normalize_listing(raw, now=now)
            except Exception as e:
                logger.warning(
                    "normalizer_listing_failed",
                    error=str(e),
                    listing_source=raw.source,
                    source="normalizer",
                )
                continue
            if normalized is not None:
                comps.append(normalized)

    deduped = deduplicate(comps)
    logger.info(
        "normalizer_combined",
        raw_count=raw_count,
        valid_count=len(comps),
        final_count=len(deduped),
        error_count=len(errors),
        source="normalizer",
    )
    return NormalizationResult(comps=deduped, errors=errors)
