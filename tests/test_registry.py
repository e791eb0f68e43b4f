"""Tests for mapping request source identifiers onto scrapers."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from cardcomp.config import SourceId, settings
from cardcomp.errors import ConfigurationError
from cardcomp.pipeline.registry import build_scrapers
from cardcomp.scraper.ebay import EbayScraper
from cardcomp.scraper.ebay_finding import EbayFindingClient
from cardcomp.scraper.point130 import Point130Scraper


class TestBuildScrapers:
    def test_default_sources(self) -> None:
        """eBay and 130point build in the order requested."""
        scrapers = build_scrapers(["ebay", "130point"])
        assert [type(s) for s in scrapers] == [EbayScraper, Point130Scraper]

    def test_identifiers_normalized(self) -> None:
        """Case, whitespace and enum members are all accepted."""
        scrapers = build_scrapers([" EBAY ", SourceId.POINT130])
        assert [s.source_id for s in scrapers] == [SourceId.EBAY, SourceId.POINT130]

    def test_unknown_and_duplicate_ids_skipped(self) -> None:
        """Unknown identifiers are dropped; repeats build once."""
        scrapers = build_scrapers(["ebay", "myslabs", "ebay"])
        assert [type(s) for s in scrapers] == [EbayScraper]

    def test_unconfigured_api_dropped(self) -> None:
        """The Finding API is skipped without an App ID."""
        scrapers = build_scrapers(["ebay", "ebay_api"])
        assert [type(s) for s in scrapers] == [EbayScraper]

    def test_configured_api_included(self) -> None:
        """With an App ID the Finding API joins the source list."""
        with patch.object(settings, "EBAY_APP_ID", "app"):
            scrapers = build_scrapers(["ebay_api"])
        assert [type(s) for s in scrapers] == [EbayFindingClient]

    @pytest.mark.parametrize("source_ids", [[], ["myslabs"], ["ebay_api"]])
    def test_nothing_usable(self, source_ids) -> None:
        """No usable source is a configuration error."""
        with pytest.raises(ConfigurationError, match="No valid sources selected"):
            build_scrapers(source_ids)
