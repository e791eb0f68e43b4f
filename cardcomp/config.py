"""
CardComp — Configuration & Constants

Every threshold, weight, timeout and endpoint used by the comp pipeline lives
here. No hardcoded values in business logic; functions take optional
overrides that default to these settings.

Usage:
    from cardcomp.config import settings
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum

from pydantic_settings import BaseSettings, SettingsConfigDict


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class CompLogic(str, Enum):
    """Caller-selected aggregation policy."""
    LAST_SALE = "lastSale"
    AVERAGE_3 = "average3"
    AVERAGE_5 = "average5"
    MEDIAN = "median"
    CONSERVATIVE = "conservative"
    MODE = "mode"


class MatchQuality(str, Enum):
    """Relevance tier of the comps handed to the valuator."""
    EXACT = "exact"         # score >= MATCH_EXACT_THRESHOLD
    PARTIAL = "partial"     # score >= MATCH_STRONG_THRESHOLD
    FUZZY = "fuzzy"         # score >= MATCH_PARTIAL_THRESHOLD
    FALLBACK = "fallback"   # score >= caller floor


class CompSource(str, Enum):
    """Fixed enumeration of sources a normalized comp may carry."""
    EBAY = "eBay"
    POINT130 = "130point"


class SourceId(str, Enum):
    """Identifiers callers use to enable sources on a request."""
    EBAY = "ebay"
    POINT130 = "130point"
    EBAY_API = "ebay_api"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """
    Central configuration for CardComp.

    Loads from environment variables with fallback defaults.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # -----------------------------------------------------------------------
    # eBay (Browse API, Finding API, sold-search pages)
    # -----------------------------------------------------------------------
    EBAY_APP_ID: str = ""                   # eBay Developer App ID (Client ID)
    EBAY_CERT_ID: str = ""                  # eBay Developer Cert ID (Client Secret)
    EBAY_OAUTH_URL: str = "https://api.ebay.com/identity/v1/oauth2/token"
    EBAY_BROWSE_URL: str = "https://api.ebay.com/buy/browse/v1"
    EBAY_FINDING_URL: str = "https://svcs.ebay.com/services/search/FindingService/v1"
    EBAY_SEARCH_URL: str = "https://www.ebay.com/sch/i.html"
    EBAY_MARKETPLACE_ID: str = "EBAY_US"
    EBAY_API_MAX_RESULTS: int = 50

    # -----------------------------------------------------------------------
    # 130point
    # -----------------------------------------------------------------------
    POINT130_API_URL: str = "https://back.130point.com/sales/"
    POINT130_LEGACY_URL: str = "https://130point.com/db/list.php"
    POINT130_SALES_URL: str = "https://130point.com/sales/"

    # -----------------------------------------------------------------------
    # Timeouts (seconds). request < query < global.
    # -----------------------------------------------------------------------
    REQUEST_TIMEOUT_SECONDS: float = 8.0
    QUERY_TIMEOUT_SECONDS: float = 20.0
    GLOBAL_TIMEOUT_SECONDS: float = 45.0

    # -----------------------------------------------------------------------
    # Self-rate-limiting: minimum seconds between requests, per source
    # -----------------------------------------------------------------------
    EBAY_MIN_REQUEST_INTERVAL: float = 1.5
    POINT130_MIN_REQUEST_INTERVAL: float = 0.8
    EBAY_API_MIN_REQUEST_INTERVAL: float = 0.1

    # -----------------------------------------------------------------------
    # Bounded retry for official APIs
    # -----------------------------------------------------------------------
    API_MAX_RETRIES: int = 3                # total attempts
    API_BASE_BACKOFF_SECONDS: float = 1.0   # doubled on each retry

    USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
    )

    # -----------------------------------------------------------------------
    # Query Builder
    # -----------------------------------------------------------------------
    MAX_SEARCH_QUERIES: int = 6
    MIN_QUERY_LENGTH: int = 5

    # -----------------------------------------------------------------------
    # Scraper acceptance filter & markup parsing
    # -----------------------------------------------------------------------
    MIN_TITLE_LENGTH: int = 10              # title must be longer than this
    SCRAPER_MAX_PRICE: Decimal = Decimal("25000")
    MIN_PATTERN_ITEMS: int = 3              # a pattern set "wins" at this many items
    MIN_HTML_LENGTH: int = 1000             # shorter pages are treated as blocked
    MAX_ITEMS_PER_PAGE: int = 50

    # -----------------------------------------------------------------------
    # Normalizer
    # -----------------------------------------------------------------------
    MIN_NORMALIZED_TITLE_LENGTH: int = 10
    MAX_TITLE_LENGTH: int = 200
    MAX_COMP_PRICE: Decimal = Decimal("50000")
    DATE_WINDOW_PAST_DAYS: int = 730        # ~2 years
    DATE_WINDOW_FUTURE_DAYS: int = 7
    DEDUP_PRICE_BUCKET: Decimal = Decimal("5")

    # -----------------------------------------------------------------------
    # Matcher — factor weights (sum to 1.0)
    # -----------------------------------------------------------------------
    MATCH_WEIGHT_PLAYER: float = 0.35
    MATCH_WEIGHT_YEAR: float = 0.25
    MATCH_WEIGHT_SET: float = 0.20
    MATCH_WEIGHT_CARD_NUMBER: float = 0.10
    MATCH_WEIGHT_GRADE: float = 0.05
    MATCH_WEIGHT_BONUS: float = 0.05
    MATCH_BONUS_ROOKIE: float = 0.02
    MATCH_BONUS_VARIANT: float = 0.01

    # Partial credit fractions
    MATCH_ADJACENT_YEAR_CREDIT: float = 0.6
    MATCH_SET_SYNONYM_CREDIT: float = 0.8
    MATCH_SET_WORD_CREDIT: float = 0.6

    # Penalties (subtracted from the normalized score)
    MATCH_MISSING_PLAYER_PENALTY: float = 0.35
    MATCH_NON_SINGLE_PENALTY: float = 0.30

    # Tier thresholds
    MATCH_EXACT_THRESHOLD: float = 0.80
    MATCH_STRONG_THRESHOLD: float = 0.60
    MATCH_PARTIAL_THRESHOLD: float = 0.40
    DEFAULT_MIN_MATCH_SCORE: float = 0.25
    MAX_COMPS_PER_TIER: int = 20
    SCORE_TIE_EPSILON: float = 0.05

    # -----------------------------------------------------------------------
    # Valuator
    # -----------------------------------------------------------------------
    MODE_BUCKET_WIDTH: Decimal = Decimal("20")
    CONFIDENCE_SATURATION_COUNT: int = 5
    RECENCY_WINDOW_DAYS: int = 90
    DEFAULT_MATCH_SCORE: float = 0.5
    CONSERVATIVE_PERCENTILE: Decimal = Decimal("0.25")

    # Price consistency warnings
    HIGH_VARIANCE_CV: float = 0.5
    OUTLIER_STDDEV: float = 2.0
    LOW_SAMPLE_SIZE: int = 3

    # -----------------------------------------------------------------------
    # Orchestrator
    # -----------------------------------------------------------------------
    EARLY_EXIT_COMP_COUNT: int = 5
    DEFAULT_COMP_LOGIC: CompLogic = CompLogic.AVERAGE_3

    # -----------------------------------------------------------------------
    # Logging
    # -----------------------------------------------------------------------
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True


# Singleton instance
settings = Settings()
