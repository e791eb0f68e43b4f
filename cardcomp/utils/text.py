"""
CardComp — Title text helpers

Shared by the scraper acceptance filter, the normalizer's dedup signature and
the matcher's penalties, so all three agree on what a "lot" or a "break" is.
"""

from __future__ import annotations

import re

_WHITESPACE = re.compile(r"\s+")
_TOKEN = re.compile(r"[a-z0-9]+")

# Listings that are not a single card: lots, group breaks, bundles, repacks.
NON_SINGLE_CARD_PATTERN = re.compile(
    r"\b(?:lots?|lot\s+of|breaks?|case\s+break|box\s+break|bundles?|"
    r"mystery\s+(?:pack|box)|repacks?|team\s+set|you\s+pick|choose\s+your|"
    r"complete\s+set)\b",
    re.IGNORECASE,
)

STOPWORDS = frozenset({
    "the", "and", "for", "with", "card", "cards", "new", "listing",
    "sold", "free", "shipping", "see", "details",
})


def normalize_whitespace(text: str) -> str:
    """Trim and collapse runs of whitespace to a single space."""
    return _WHITESPACE.sub(" ", text).strip()


def significant_words(text: str, keep_numbers: bool = False) -> list[str]:
    """
    Lowercase alphanumeric tokens longer than two characters, minus stopwords.

    With keep_numbers, short tokens containing a digit ("1", "27", "9") are
    kept too, so card numbers and grades survive.
    """
    return [
        token for token in _TOKEN.findall(text.lower())
        if token not in STOPWORDS
        and (len(token) > 2 or (keep_numbers and any(ch.isdigit() for ch in token)))
    ]


def is_unknown(value: str | None) -> bool:
    """True for None, blank strings and the "unknown" sentinel."""
    return value is None or not value.strip() or value.strip().lower() == "unknown"


def mentions_non_single_card(title: str) -> bool:
    return bool(NON_SINGLE_CARD_PATTERN.search(title))
