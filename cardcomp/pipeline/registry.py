"""
CardComp — Source registry

Maps request-level source identifiers to scraper classes. The orchestrator
holds whatever list this returns and never branches on source names.
"""

from __future__ import annotations

from typing import Iterable

import structlog

from cardcomp.config import SourceId
from cardcomp.errors import ConfigurationError
from cardcomp.scraper import SourceScraper
from cardcomp.scraper.ebay import EbayScraper
from cardcomp.scraper.ebay_finding import EbayFindingClient
from cardcomp.scraper.point130 import Point130Scraper

logger = structlog.get_logger(__name__)

SCRAPER_CLASSES: dict[SourceId, type[SourceScraper]] = {
    SourceId.EBAY: EbayScraper,
    SourceId.POINT130: Point130Scraper,
    SourceId.EBAY_API: EbayFindingClient,
}


def build_scrapers(source_ids: Iterable[str | SourceId]) -> list[SourceScraper]:
    """
    Instantiate one scraper per enabled, usable source identifier.

    Unknown identifiers and sources missing their credentials are dropped
    with a warning. Duplicates are ignored.

    Raises:
        ConfigurationError: When no usable source remains.
    """
    scrapers: list[SourceScraper] = []
    seen: set[SourceId] = set()

    for raw_id in source_ids:
        try:
            source_id = SourceId(str(raw_id.value if isinstance(raw_id, SourceId) else raw_id).strip().lower())
        except ValueError:
            logger.warning("registry_unknown_source", source_id=str(raw_id), source="registry")
            continue
        if source_id in seen:
            continue
        seen.add(source_id)

        scraper_cls = SCRAPER_CLASSES[source_id]
        if not scraper_cls.is_configured():
            logger.warning("registry_source_not_configured", source_id=source_id.value, source="registry")
            continue
        scrapers.append(scraper_cls())

    if not scrapers:
        raise ConfigurationError("No valid sources selected")

    logger.info(
        "registry_scrapers_built",
        sources=[s.source_id.value for s in scrapers],
        source="registry",
    )
    return scrapers
