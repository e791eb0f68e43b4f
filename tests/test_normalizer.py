"""Tests for listing normalization and deduplication."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable

import pytest

from cardcomp.config import CompSource, settings
from cardcomp.engine.normalizer import (
    combine,
    dedup_signature,
    deduplicate,
    normalize_listing,
    normalize_source,
    sanitize_title,
)
from cardcomp.models import NormalizedComp, RawListing, ScrapingError, SourceResult
from cardcomp.utils.parsing import is_http_url

FIXED_NOW = datetime(2025, 10, 15, 12, 0, tzinfo=timezone.utc)


def _raw(**overrides) -> RawListing:
    fields = {
        "title": "2023 Topps Chrome Mike Trout #1 Angels",
        "price": "$120.00",
        "date": "2025-10-10",
        "url": "https://www.ebay.com/itm/1001",
        "source": "eBay",
    }
    fields.update(overrides)
    return RawListing(**fields)


def _assert_well_formed(comp: NormalizedComp, now: datetime) -> None:
    today = now.date()
    assert len(comp.title) >= settings.MIN_NORMALIZED_TITLE_LENGTH
    assert len(comp.title) <= settings.MAX_TITLE_LENGTH
    assert Decimal("0") < comp.price <= settings.MAX_COMP_PRICE
    assert comp.price == comp.price.quantize(Decimal("0.01"))
    assert today - timedelta(days=settings.DATE_WINDOW_PAST_DAYS) <= comp.date
    assert comp.date <= today + timedelta(days=settings.DATE_WINDOW_FUTURE_DAYS)
    assert is_http_url(comp.url)
    assert comp.image is None or is_http_url(comp.image)
    assert isinstance(comp.source, CompSource)


# ---------------------------------------------------------------------------
# Single listing
# ---------------------------------------------------------------------------


class TestNormalizeListing:
    def test_happy_path(self) -> None:
        """A clean listing normalizes field by field."""
        comp = normalize_listing(_raw(image="https://i.ebayimg.com/a.jpg"), now=FIXED_NOW)
        assert comp is not None
        assert comp.title == "2023 Topps Chrome Mike Trout #1 Angels"
        assert comp.price == Decimal("120.00")
        assert comp.date == date(2025, 10, 10)
        assert comp.source is CompSource.EBAY
        assert comp.image == "https://i.ebayimg.com/a.jpg"
        assert comp.match_score is None

    def test_currency_string_with_thousands(self) -> None:
        """'$1,234.56' parses to 1234.56."""
        comp = normalize_listing(_raw(price="$1,234.56"), now=FIXED_NOW)
        assert comp is not None and comp.price == Decimal("1234.56")

    def test_price_rounded_half_up(self) -> None:
        """Sub-cent prices round half-up to cents."""
        comp = normalize_listing(_raw(price=10.005), now=FIXED_NOW)
        assert comp is not None and comp.price == Decimal("10.01")

    @pytest.mark.parametrize("price", [0, "-5", "$0.00", "50000.01", "free", None])
    def test_bad_prices_rejected(self, price) -> None:
        """Zero, negative, over-limit and unparseable prices are dropped."""
        assert normalize_listing(_raw(price=price), now=FIXED_NOW) is None

    def test_max_price_inclusive(self) -> None:
        """Exactly 50000 is accepted."""
        assert normalize_listing(_raw(price="50000"), now=FIXED_NOW) is not None

    def test_short_title_rejected(self) -> None:
        """Titles under ten characters after cleaning are dropped."""
        assert normalize_listing(_raw(title="  Trout  "), now=FIXED_NOW) is None

    def test_title_sanitized(self) -> None:
        """Whitespace collapses and unsafe characters disappear."""
        comp = normalize_listing(_raw(title="  2023 <b>Topps</b>   Chrome Trout!! #1 "), now=FIXED_NOW)
        assert comp is not None
        assert comp.title == "2023 bTopps/b Chrome Trout #1"

    def test_long_title_truncated(self) -> None:
        """Titles are capped at the maximum length."""
        comp = normalize_listing(_raw(title="Mike Trout " * 40), now=FIXED_NOW)
        assert comp is not None and len(comp.title) <= settings.MAX_TITLE_LENGTH

    @pytest.mark.parametrize(
        "sold",
        ["not a date", None, "2022-01-01", "2025-11-01"],
    )
    def test_bad_dates_rejected(self, sold) -> None:
        """Unparseable, too-old and far-future dates are dropped."""
        assert normalize_listing(_raw(date=sold), now=FIXED_NOW) is None

    @pytest.mark.parametrize(
        "sold, expected",
        [
            ("2025-10-03T18:22:00.000Z", date(2025, 10, 3)),
            ("Sold Oct 3, 2025", date(2025, 10, 3)),
            ("3 Oct 2025", date(2025, 10, 3)),
            ("10/03/2025", date(2025, 10, 3)),
            ("Fri, 03 Oct 2025 18:22:00 GMT", date(2025, 10, 3)),
            ("2025-10-20", date(2025, 10, 20)),
        ],
    )
    def test_date_formats(self, sold, expected) -> None:
        """Common page and API date spellings parse; a few days ahead is tolerated."""
        comp = normalize_listing(_raw(date=sold), now=FIXED_NOW)
        assert comp is not None and comp.date == expected

    @pytest.mark.parametrize("url", ["", "/itm/1001", "ftp://ebay.com/itm/1", "javascript:void(0)", None])
    def test_bad_urls_rejected(self, url) -> None:
        """Only absolute http(s) URLs survive."""
        assert normalize_listing(_raw(url=url), now=FIXED_NOW) is None

    def test_bad_image_dropped_not_rejected(self) -> None:
        """An invalid image URL is cleared; the comp survives."""
        comp = normalize_listing(_raw(image="data:image/png;base64,xyz"), now=FIXED_NOW)
        assert comp is not None and comp.image is None

    def test_unknown_source_rejected(self) -> None:
        """Labels outside the source enumeration are dropped."""
        assert normalize_listing(_raw(source="Craigslist"), now=FIXED_NOW) is None


class TestNormalizeSource:
    @pytest.mark.parametrize(
        "label, expected",
        [
            ("eBay", CompSource.EBAY),
            ("EBAY ", CompSource.EBAY),
            ("eBay API", CompSource.EBAY),
            ("130point", CompSource.POINT130),
            ("130 Point", CompSource.POINT130),
            ("goldin", None),
        ],
    )
    def test_labels(self, label, expected) -> None:
        """Free-form labels map onto the fixed enumeration."""
        assert normalize_source(label) is expected


# ---------------------------------------------------------------------------
# Deduplication
# ---------------------------------------------------------------------------


class TestDeduplicate:
    def test_near_duplicates_collapse_to_latest(self, make_comp: Callable[..., NormalizedComp]) -> None:
        """Same words, same price bucket, same source: the later sale wins."""
        older = make_comp(price="101.00", days_ago=10, title="2023 Topps Chrome Mike Trout #1")
        newer = make_comp(price="103.50", days_ago=2, title="Mike  Trout 2023 Topps Chrome #1")
        assert deduplicate([older, newer]) == [newer]

    def test_different_price_bucket_kept(self, make_comp: Callable[..., NormalizedComp]) -> None:
        """Prices in different buckets are different sales."""
        result = deduplicate([make_comp(price="100.00"), make_comp(price="120.00")])
        assert len(result) == 2

    def test_different_source_kept(self, make_comp: Callable[..., NormalizedComp]) -> None:
        """The same sale seen on two sources is kept twice."""
        result = deduplicate([
            make_comp(source=CompSource.EBAY),
            make_comp(source=CompSource.POINT130, url="https://130point.com/sale/1"),
        ])
        assert len(result) == 2

    def test_sorted_newest_first(self, make_comp: Callable[..., NormalizedComp]) -> None:
        """Output is ordered by date descending."""
        result = deduplicate([
            make_comp(price="100", days_ago=30),
            make_comp(price="200", days_ago=1),
            make_comp(price="300", days_ago=10),
        ])
        assert [c.price for c in result] == [Decimal("200"), Decimal("300"), Decimal("100")]

    def test_idempotent(self, make_comp: Callable[..., NormalizedComp]) -> None:
        """Deduplicating the output again changes nothing."""
        comps = [
            make_comp(price="100", days_ago=3),
            make_comp(price="102", days_ago=1),
            make_comp(price="150", days_ago=2, title="2023 Topps Chrome Mike Trout Refractor #1"),
            make_comp(price="150", days_ago=5, source=CompSource.POINT130),
        ]
        once = deduplicate(comps)
        assert deduplicate(once) == once

    def test_signature_ignores_stopwords_and_case(self, make_comp: Callable[..., NormalizedComp]) -> None:
        """Filler words and casing do not split signatures."""
        a = make_comp(title="Mike Trout 2023 Topps Chrome card")
        b = make_comp(title="MIKE TROUT 2023 TOPPS CHROME")
        assert dedup_signature(a) == dedup_signature(b)

    def test_different_card_numbers_kept(self, make_comp: Callable[..., NormalizedComp]) -> None:
        """Short card numbers are part of the signature."""
        result = deduplicate([
            make_comp(price="120.00", days_ago=3, title="2023 Topps Chrome Mike Trout #1"),
            make_comp(price="122.00", days_ago=1, title="2023 Topps Chrome Mike Trout #27"),
        ])
        assert len(result) == 2

    def test_different_players_kept(self, make_comp: Callable[..., NormalizedComp]) -> None:
        """Words that sort late alphabetically still split signatures."""
        result = deduplicate([
            make_comp(price="120.00", days_ago=3, title="2023 Topps Chrome Black Gold Refractor Mike Trout"),
            make_comp(price="121.00", days_ago=1, title="2023 Topps Chrome Black Gold Refractor Zach Neto"),
        ])
        assert len(result) == 2

    def test_different_grades_kept(self, make_comp: Callable[..., NormalizedComp]) -> None:
        """PSA 9 and PSA 10 copies of the same card are different sales."""
        result = deduplicate([
            make_comp(price="120.00", days_ago=3, title="2023 Topps Chrome Mike Trout #1 PSA 9"),
            make_comp(price="121.00", days_ago=1, title="2023 Topps Chrome Mike Trout #1 PSA 10"),
        ])
        assert len(result) == 2


# ---------------------------------------------------------------------------
# Combine
# ---------------------------------------------------------------------------


class TestCombine:
    def test_merges_sources_and_collects_errors(self) -> None:
        """Listings from all sources merge; errors pass through."""
        results = [
            SourceResult(source="eBay", results=[_raw(), _raw(price="$300", url="https://www.ebay.com/itm/2")]),
            SourceResult(
                source="130point",
                error=ScrapingError(source="130point", message="No results found for 'x'"),
            ),
        ]
        outcome = combine(results, now=FIXED_NOW)
        assert len(outcome.comps) == 2
        assert outcome.errors == [ScrapingError(source="130point", message="No results found for 'x'")]

    def test_invalid_listings_dropped_silently(self) -> None:
        """Bad listings vanish without producing errors."""
        results = [SourceResult(source="eBay", results=[_raw(), _raw(price="free"), _raw(url="")])]
        outcome = combine(results, now=FIXED_NOW)
        assert len(outcome.comps) == 1
        assert outcome.errors == []

    def test_every_output_is_well_formed(self) -> None:
        """Whatever goes in, everything that comes out is a valid comp."""
        garbage = [
            _raw(),
            _raw(title="x"),
            _raw(price="$99,999.00"),
            _raw(price="12,50", url="https://www.ebay.com/itm/3"),
            _raw(date="2099-01-01"),
            _raw(date=1759500000, url="https://www.ebay.com/itm/4", price=45),
            _raw(url="www.ebay.com/itm/5"),
            _raw(source="130point", url="https://130point.com/sales/item/9", price="  $ 77 "),
            _raw(title="\t\n".join(["Trout"] * 60), url="https://www.ebay.com/itm/6"),
            _raw(image="not-a-url", url="https://www.ebay.com/itm/7", price="USD 12.00"),
        ]
        outcome = combine([SourceResult(source="mixed", results=garbage)], now=FIXED_NOW)
        assert outcome.comps
        for comp in outcome.comps:
            _assert_well_formed(comp, FIXED_NOW)

    def test_output_sorted_newest_first(self) -> None:
        """Combined comps are date-descending."""
        results = [SourceResult(source="eBay", results=[
            _raw(date="2025-09-01", price="10", url="https://www.ebay.com/itm/a"),
            _raw(date="2025-10-01", price="50", url="https://www.ebay.com/itm/b"),
            _raw(date="2025-09-15", price="90", url="https://www.ebay.com/itm/c"),
        ])]
        dates = [c.date for c in combine(results, now=FIXED_NOW).comps]
        assert dates == sorted(dates, reverse=True)


class TestSanitizeTitle:
    def test_allowed_punctuation_kept(self) -> None:
        """Card-number and grade punctuation survives."""
        assert sanitize_title("Trout #1 PSA 10 (Gem Mint) 1/1 Auto/Relic & more") == (
            "Trout #1 PSA 10 (Gem Mint) 1/1 Auto/Relic & more"
        )
