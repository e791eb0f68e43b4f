"""
CardComp — Listing models

RawListing is whatever a scraper pulled off a page or API, weakly typed.
NormalizedComp is the canonical, validated listing the rest of the pipeline
works with. Comps are frozen: attaching a match score returns a copy.
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from cardcomp.config import CompSource


class WireModel(BaseModel):
    """Base for models that cross the pipeline boundary (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ScrapingError(WireModel):
    """A diagnostic entry: one source (or the system) failed at something."""
    source: str
    message: str


class RawListing(BaseModel):
    """Source-specific listing as scraped. Price and date are untrusted."""
    title: str = ""
    price: Any = None
    date: Any = None
    url: Any = None
    image: Any = None
    source: str
    source_item_id: str | None = None


class SourceResult(BaseModel):
    """Output of one scraper call: listings, or an error and zero listings."""
    source: str
    results: list[RawListing] = Field(default_factory=list)
    error: ScrapingError | None = None


class NormalizedComp(WireModel):
    """Canonical sold listing used as a comparable."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    title: str
    price: Decimal
    date: dt.date
    source: CompSource
    url: str
    image: str | None = None
    match_score: float | None = Field(default=None, exclude=True)

    def with_score(self, score: float) -> "NormalizedComp":
        """Return a copy carrying the matcher's relevance score."""
        return self.model_copy(update={"match_score": score})

    @field_serializer("price", when_used="json")
    def _price_as_number(self, value: Decimal) -> float:
        return float(value)


class NormalizationResult(BaseModel):
    comps: list[NormalizedComp] = Field(default_factory=list)
    errors: list[ScrapingError] = Field(default_factory=list)
