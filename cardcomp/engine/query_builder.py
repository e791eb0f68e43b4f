"""
CardComp — Query Builder

Turns structured card attributes into a ranked, deduplicated list of search
strings, most specific first:

    year + set + player + #number
    year + set + player + "rookie"
    player + set
    player + year + sport
    player + year
    player

Unknown fields are left out of each template. Without a known player there
is nothing to search for and the result is empty.
"""

from __future__ import annotations

import structlog

from cardcomp.config import settings
from cardcomp.models import SearchQuery
from cardcomp.utils.text import normalize_whitespace

logger = structlog.get_logger(__name__)


def build_search_queries(
    query: SearchQuery,
    max_queries: int | None = None,
    min_length: int | None = None,
) -> list[str]:
    """
    Build search strings for a card.

    Args:
        query: Structured card attributes.
        max_queries: Cap on the number of strings (default: MAX_SEARCH_QUERIES).
        min_length: Shortest meaningful string (default: MIN_QUERY_LENGTH).

    Returns:
        Ordered list of distinct search strings, most specific first.
        Empty when the player is unknown.
    """
    cap = max_queries if max_queries is not None else settings.MAX_SEARCH_QUERIES
    floor = min_length if min_length is not None else settings.MIN_QUERY_LENGTH

    player = query.known("player")
    if player is None:
        logger.info("query_builder_no_player", source="query_builder")
        return []

    year = query.known("year")
    card_set = query.known("set")
    number = query.known("card_number")
    sport = query.known("sport")
    card_number = f"#{number.lstrip('#')}" if number else None

    context_fields = sum(1 for field in (year, card_set, card_number) if field)

    # (parts, applicable) — a template only runs when its defining fields are known
    templates: list[tuple[list[str | None], bool]] = [
        ([year, card_set, player, card_number], context_fields >= 2),
        ([year, card_set, player, "rookie"], bool(year and card_set)),
        ([player, card_set], bool(card_set)),
        ([player, year, sport], bool(year and sport)),
        ([player, year], bool(year)),
        ([player], True),
    ]

    queries: list[str] = []
    seen: set[str] = set()
    for parts, applicable in templates:
        if not applicable:
            continue
        candidate = normalize_whitespace(" ".join(p for p in parts if p))
        if len(candidate) < floor or candidate in seen:
            continue
        # "unknown" can still leak in through a multi-word field
        if "unknown" in candidate.lower().split():
            continue
        seen.add(candidate)
        queries.append(candidate)

    queries = queries[:cap]
    logger.info(
        "query_builder_complete",
        player=player,
        query_count=len(queries),
        source="query_builder",
    )
    return queries
