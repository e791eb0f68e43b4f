"""
CardComp — Lenient value parsers

Prices and dates come straight off third-party pages and APIs as strings,
numbers, or garbage. These helpers never raise: anything they cannot make
sense of comes back as None.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from email.utils import parsedate_to_datetime
from typing import Any
from urllib.parse import urlsplit

_NUMBER = re.compile(r"(-\s*\$?\s*)?(\d[\d,]*(?:\.\d+)?)")
_THOUSANDS = re.compile(r"^\d{1,3}(?:,\d{3})+(?:\.\d+)?$")
_DECIMAL_COMMA = re.compile(r"^\d+,\d{1,2}$")
_DATE_PREFIX = re.compile(r"^(?:sold|ended|date|sale date)\s*:?\s*", re.IGNORECASE)
_ISO_DAY = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_DATE_FORMATS = (
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d %Y",
    "%d %b %Y",
    "%d %B %Y",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%Y/%m/%d",
    "%m-%d-%Y",
)


def parse_price(value: Any) -> Decimal | None:
    """
    Parse a price into a Decimal.

    Accepts numbers and strings such as "$1,234.56", "USD 12.00" or
    "12,50 €". For ranges ("$10.00 to $20.00") the first figure wins.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, (int, float)):
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            return None
        return result if result.is_finite() else None

    match = _NUMBER.search(str(value))
    if not match:
        return None
    number = match.group(2)
    if _THOUSANDS.match(number):
        number = number.replace(",", "")
    elif _DECIMAL_COMMA.match(number):
        number = number.replace(",", ".")
    else:
        number = number.replace(",", "")
    try:
        result = Decimal(number)
    except InvalidOperation:
        return None
    return -result if match.group(1) else result


def parse_date(value: Any) -> date | None:
    """Parse a sale date from ISO strings, page text, RFC-822 or epoch numbers."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        return _from_epoch(value)

    text = _DATE_PREFIX.sub("", str(value).strip()).strip()
    if not text:
        return None

    if _ISO_DAY.match(text[:10]):
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            try:
                return date.fromisoformat(text[:10])
            except ValueError:
                return None

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    try:
        return parsedate_to_datetime(text).date()
    except (TypeError, ValueError, IndexError):
        pass

    if text.isdigit():
        return _from_epoch(int(text))
    return None


def _from_epoch(value: float) -> date | None:
    # Milliseconds when the number is too large to be seconds
    seconds = value / 1000 if value > 1e11 else value
    if seconds <= 0:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc).date()
    except (OverflowError, OSError, ValueError):
        return None


def is_http_url(value: Any) -> bool:
    """True for syntactically valid absolute http(s) URLs."""
    if not isinstance(value, str) or not value or any(ch.isspace() for ch in value):
        return False
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)
