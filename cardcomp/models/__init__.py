"""
Models package — export all pydantic models.
"""

from cardcomp.models.estimate import (
    CompingResult,
    DebugInfo,
    EstimateResponse,
    MatchResult,
    PriceRange,
    format_currency,
)
from cardcomp.models.listing import (
    NormalizationResult,
    NormalizedComp,
    RawListing,
    ScrapingError,
    SourceResult,
)
from cardcomp.models.query import UNKNOWN, SearchQuery

__all__ = [
    "CompingResult",
    "DebugInfo",
    "EstimateResponse",
    "MatchResult",
    "NormalizationResult",
    "NormalizedComp",
    "PriceRange",
    "RawListing",
    "ScrapingError",
    "SearchQuery",
    "SourceResult",
    "UNKNOWN",
    "format_currency",
]
