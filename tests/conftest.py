"""
CardComp — Shared pytest Fixtures & Configuration

Provides common fixtures for all test modules:
- No real sleeping: rate-limit intervals and retry backoff zeroed
- Fresh per-source rate limiters and eBay token cache per test
- Sample search query and raw/normalized listing factories
- Async test support via pytest-asyncio
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable
from unittest.mock import patch

import pytest

from cardcomp.config import CompSource, settings
from cardcomp.models import NormalizedComp, RawListing, SearchQuery
from cardcomp.scraper.ebay import clear_token_cache
from cardcomp.scraper.rate_limit import RateLimiter


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(autouse=True)
def fast_sources():
    """Zero rate-limit spacing and retry backoff; reset process-wide state."""
    RateLimiter.reset_registry()
    clear_token_cache()
    with patch.object(settings, "EBAY_MIN_REQUEST_INTERVAL", 0.0), patch.object(
        settings, "POINT130_MIN_REQUEST_INTERVAL", 0.0
    ), patch.object(settings, "EBAY_API_MIN_REQUEST_INTERVAL", 0.0), patch.object(
        settings, "API_BASE_BACKOFF_SECONDS", 0.0
    ), patch.object(settings, "EBAY_APP_ID", ""), patch.object(settings, "EBAY_CERT_ID", ""):
        yield
    RateLimiter.reset_registry()
    clear_token_cache()


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


@pytest.fixture
def now() -> datetime:
    """Current UTC timestamp; the pipeline's date window is relative to it."""
    return datetime.now(timezone.utc)


@pytest.fixture
def today(now: datetime) -> date:
    return now.date()


# ---------------------------------------------------------------------------
# Domain fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def trout_query() -> SearchQuery:
    """Mike Trout 2023 Topps Chrome #1."""
    return SearchQuery(player="Mike Trout", year="2023", set="Topps Chrome", card_number="1")


@pytest.fixture
def make_raw() -> Callable[..., RawListing]:
    """Factory for a plausible raw eBay listing; override any field."""

    def _make(**overrides: Any) -> RawListing:
        fields: dict[str, Any] = {
            "title": "2023 Topps Chrome Mike Trout #1 Angels",
            "price": "$120.00",
            "date": (datetime.now(timezone.utc) - timedelta(days=5)).date().isoformat(),
            "url": "https://www.ebay.com/itm/1001",
            "image": "https://i.ebayimg.com/images/g/abc/s-l225.jpg",
            "source": "eBay",
        }
        fields.update(overrides)
        return RawListing(**fields)

    return _make


@pytest.fixture
def make_comp(today: date) -> Callable[..., NormalizedComp]:
    """Factory for a NormalizedComp sold `days_ago` days before today."""

    def _make(
        price: str | Decimal = "100.00",
        days_ago: int = 1,
        title: str = "2023 Topps Chrome Mike Trout #1 Angels",
        source: CompSource = CompSource.EBAY,
        url: str = "https://www.ebay.com/itm/2001",
        match_score: float | None = None,
    ) -> NormalizedComp:
        comp = NormalizedComp(
            title=title,
            price=Decimal(str(price)),
            date=today - timedelta(days=days_ago),
            source=source,
            url=url,
        )
        return comp.with_score(match_score) if match_score is not None else comp

    return _make
