"""
CardComp — Matching, valuation and response models
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field, field_serializer

from cardcomp.config import MatchQuality
from cardcomp.models.listing import NormalizedComp, ScrapingError, WireModel


class MatchResult(BaseModel):
    exact_match_found: bool = False
    relevant_comps: list[NormalizedComp] = Field(default_factory=list)
    match_quality: MatchQuality = MatchQuality.FALLBACK
    match_message: str | None = None


class PriceRange(WireModel):
    low: Decimal = Decimal("0.00")
    high: Decimal = Decimal("0.00")

    @field_serializer("low", "high", when_used="json")
    def _as_number(self, value: Decimal) -> float:
        return float(value)


class CompingResult(BaseModel):
    estimated_value: Decimal
    logic_used: str
    confidence: float
    methodology: str
    price_range: PriceRange = Field(default_factory=PriceRange)


class DebugInfo(WireModel):
    attempted_queries: list[str] = Field(default_factory=list)
    raw_result_counts: dict[str, int] = Field(default_factory=dict)
    total_processing_time: int = 0  # milliseconds


class EstimateResponse(WireModel):
    """
    What the presentation layer receives.

    `model_dump(by_alias=True, mode="json")` yields the wire shape:
    estimatedValue, logicUsed, exactMatchFound, confidence, methodology,
    matchMessage, comps, errors, debug (plus priceRange, dataPoints,
    warnings and traceId).
    """

    estimated_value: str = "$0.00"
    logic_used: str
    exact_match_found: bool = False
    confidence: float = 0.0
    methodology: str = "No data available"
    match_message: str | None = None
    comps: list[NormalizedComp] = Field(default_factory=list)
    errors: list[ScrapingError] = Field(default_factory=list)
    debug: DebugInfo | None = None
    price_range: PriceRange = Field(default_factory=PriceRange)
    data_points: int = 0
    warnings: list[str] = Field(default_factory=list)
    trace_id: str | None = None


def format_currency(value: Decimal) -> str:
    """Decimal("124.99") -> "$124.99"."""
    return f"${value:.2f}"
