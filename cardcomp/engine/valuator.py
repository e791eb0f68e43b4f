"""
CardComp — Valuator

Turns the matched comps into a single price under the caller's comp logic.

Logics:
- lastSale:      price of the most recently dated comp
- average3/5:    mean of the 3 (or 5) most recent comps, fewer if not enough
- median:        median of all prices (mean of the two middle values when even)
- conservative:  ascending prices[floor(n * 0.25)]
- mode:          $20 buckets; mean of the most populated bucket (lowest wins ties)
- anything else: mean of all prices

Confidence = data_quality x match_quality x recency
    data_quality  = min(1, n / 5)
    match_quality = mean match score (0.5 for unscored comps)
    recency       = 0.5 + 0.5 x share of comps sold within the last 90 days

All money is Decimal, rounded half-up to cents.
"""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Sequence

import structlog

from cardcomp.config import CompLogic, settings
from cardcomp.models import CompingResult, NormalizedComp, PriceRange

logger = structlog.get_logger(__name__)

_TWO_DP = Decimal("0.01")

NO_DATA_METHODOLOGY = "No data available"


def _cents(value: Decimal) -> Decimal:
    return value.quantize(_TWO_DP, rounding=ROUND_HALF_UP)


def _mean(prices: Sequence[Decimal]) -> Decimal:
    return sum(prices, Decimal("0")) / len(prices)


def _most_recent(comps: Sequence[NormalizedComp], count: int | None = None) -> list[NormalizedComp]:
    ordered = sorted(comps, key=lambda c: c.date, reverse=True)
    return ordered if count is None else ordered[:count]


def _median(prices: Sequence[Decimal]) -> Decimal:
    mid = len(prices) // 2
    if len(prices) % 2 == 0:
        return (prices[mid - 1] + prices[mid]) / 2
    return prices[mid]


def _mode_price(prices: Sequence[Decimal], width: Decimal) -> Decimal:
    """Mean price of the most populated fixed-width bucket."""
    buckets: dict[Decimal, list[Decimal]] = {}
    for price in prices:
        key = (price / width).to_integral_value(rounding=ROUND_FLOOR) * width
        buckets.setdefault(key, []).append(price)

    best: list[Decimal] = []
    for key in sorted(buckets):
        if len(buckets[key]) > len(best):
            best = buckets[key]
    return _mean(best)


def _confidence(comps: Sequence[NormalizedComp], today: date) -> float:
    count = len(comps)
    data_quality = min(1.0, count / settings.CONFIDENCE_SATURATION_COUNT)

    scores = [
        c.match_score if c.match_score is not None else settings.DEFAULT_MATCH_SCORE
        for c in comps
    ]
    match_quality = sum(scores) / count

    cutoff = today - timedelta(days=settings.RECENCY_WINDOW_DAYS)
    recent = sum(1 for c in comps if c.date >= cutoff)
    recency = 0.5 + 0.5 * (recent / count)

    return round(max(0.0, min(1.0, data_quality * match_quality * recency)), 2)


def calculate_comp_value(
    comps: Sequence[NormalizedComp],
    logic: CompLogic | str,
    today: date | None = None,
) -> CompingResult:
    """
    Estimate a card's value from its relevant comps.

    Args:
        comps: Matched comps (match_score attached where available).
        logic: Comp logic; unrecognized values fall back to the mean of all prices.
        today: Reference day for the recency factor (default: current UTC date).

    Returns:
        CompingResult. Zero comps yield value 0, confidence 0 and
        "No data available".
    """
    logic_label = logic.value if isinstance(logic, CompLogic) else str(logic)

    if not comps:
        return CompingResult(
            estimated_value=Decimal("0.00"),
            logic_used=logic_label,
            confidence=0.0,
            methodology=NO_DATA_METHODOLOGY,
        )

    today = today or datetime.now(timezone.utc).date()
    prices = sorted(c.price for c in comps)

    if logic_label == CompLogic.LAST_SALE.value:
        value = _most_recent(comps, 1)[0].price
        methodology = "Most Recent Sale"
    elif logic_label in (CompLogic.AVERAGE_3.value, CompLogic.AVERAGE_5.value):
        window = 3 if logic_label == CompLogic.AVERAGE_3.value else 5
        recent = _most_recent(comps, window)
        value = _mean([c.price for c in recent])
        methodology = f"Average of {len(recent)} Most Recent Sales"
    elif logic_label == CompLogic.MEDIAN.value:
        value = _median(prices)
        methodology = "Median Price"
    elif logic_label == CompLogic.CONSERVATIVE.value:
        index = math.floor(len(prices) * settings.CONSERVATIVE_PERCENTILE)
        value = prices[index]
        methodology = "Conservative Estimate (25th Percentile)"
    elif logic_label == CompLogic.MODE.value:
        value = _mode_price(prices, settings.MODE_BUCKET_WIDTH)
        methodology = "Most Common Price Range"
    else:
        value = _mean(prices)
        methodology = "Average of All Comps"

    result = CompingResult(
        estimated_value=_cents(value),
        logic_used=logic_label,
        confidence=_confidence(comps, today),
        methodology=methodology,
        price_range=PriceRange(low=_cents(prices[0]), high=_cents(prices[-1])),
    )

    logger.info(
        "valuator_complete",
        logic=logic_label,
        comp_count=len(comps),
        estimated_value=str(result.estimated_value),
        confidence=result.confidence,
        source="valuator",
    )
    return result


def check_price_consistency(comps: Sequence[NormalizedComp]) -> list[str]:
    """
    Human-readable warnings about the spread of comp prices.

    Flags a high coefficient of variation, outliers beyond OUTLIER_STDDEV
    standard deviations, and small samples. Fewer than two comps yields
    no warnings.
    """
    prices = [float(c.price) for c in comps]
    if len(prices) < 2:
        return []

    warnings: list[str] = []
    mean = sum(prices) / len(prices)
    std_dev = math.sqrt(sum((p - mean) ** 2 for p in prices) / len(prices))

    if mean > 0:
        cv = std_dev / mean
        if cv > settings.HIGH_VARIANCE_CV:
            warnings.append(
                f"High price variance detected ({round(cv * 100)}% CV). "
                "Results may be less reliable."
            )

    outliers = [p for p in prices if abs(p - mean) > settings.OUTLIER_STDDEV * std_dev]
    if outliers:
        warnings.append(
            f"{len(outliers)} potential price outlier(s) detected. "
            "Consider reviewing individual sales."
        )

    if len(prices) < settings.LOW_SAMPLE_SIZE:
        warnings.append("Limited sales data available. Estimate may be less accurate.")

    return warnings
