"""
CardComp — Comp Matcher

Scores every normalized comp against the searched card and keeps the best
non-empty relevance tier.

Weighted factors (see MATCH_WEIGHT_* in config):

    | factor      | weight | rule                                              |
    |:------------|:-------|:--------------------------------------------------|
    | player      | 0.35   | full name 1.0; all parts 0.9; last name 0.6       |
    | year        | 0.25   | exact full credit; +/-1 year partial credit       |
    | set         | 0.20   | exact 1.0; known synonym 0.8; word overlap 0.6x   |
    | card number | 0.10   | "#N", "no. N" or N as a whole token               |
    | grade       | 0.05   | substring when the query names a grade            |
    | bonus       | 0.05   | rookie co-occurrence 0.02, variant keyword 0.01   |

Penalties after normalization: player's last name missing (-0.35, suffixes
such as "Jr." are not last names) and lot/break/bundle titles (-0.30).

Tiers: >= 0.80 exact, >= 0.60 partial (strong), >= 0.40 fuzzy,
>= caller floor fallback.
"""

from __future__ import annotations

import re
from datetime import date

import structlog

from cardcomp.config import MatchQuality, settings
from cardcomp.models import MatchResult, NormalizedComp, SearchQuery
from cardcomp.utils.text import mentions_non_single_card

logger = structlog.get_logger(__name__)

_ROOKIE = re.compile(r"\b(?:rc|rookie|1st bowman)\b")

NAME_SUFFIXES = frozenset({"jr", "sr", "ii", "iii", "iv", "v"})

VARIANT_TERMS = (
    "silver", "gold", "red", "blue", "green", "purple", "orange", "black",
    "chrome", "refractor", "prizm", "parallel", "holo", "wave", "shimmer",
)

# Families of set names that listings spell in several ways
SET_SYNONYMS: dict[str, tuple[str, ...]] = {
    "prizm": ("prizm", "panini prizm"),
    "silver": ("silver prizm", "prizm silver", "silver"),
    "gold": ("gold prizm", "prizm gold", "gold refractor"),
    "chrome": ("chrome", "topps chrome", "bowman chrome"),
    "optic": ("optic", "donruss optic", "panini optic"),
    "select": ("select", "panini select"),
    "mosaic": ("mosaic", "panini mosaic"),
    "bowman": ("bowman", "bowman chrome", "bowman draft"),
    "refractor": ("refractor", "chrome refractor"),
    "upper deck": ("upper deck", "ud"),
}


def _name_parts(player: str) -> list[str]:
    """Name tokens without punctuation or generational suffixes ("Jr.", "III")."""
    parts = [re.sub(r"[^\w'-]", "", part) for part in player.split()]
    return [part for part in parts if len(part) > 1 and part not in NAME_SUFFIXES]


def _player_match(title: str, player: str) -> float:
    if player in title:
        return 1.0

    parts = _name_parts(player)
    if not parts:
        return 0.0
    matched = [part for part in parts if part in title]
    if len(matched) == len(parts):
        return 0.9

    score = (len(matched) / len(parts)) * 0.7 if matched else 0.0
    last_name = parts[-1]
    first_name = parts[0]
    if last_name in title:
        score = max(score, 0.6)
    elif len(parts) > 1 and first_name in title:
        score = max(score, 0.3)
    return score


def _year_match(title: str, year: str) -> float:
    if year in title:
        return 1.0
    if year.isdigit():
        base = int(year)
        for neighbour in (base - 1, base + 1):
            if str(neighbour) in title:
                return settings.MATCH_ADJACENT_YEAR_CREDIT
    return 0.0


def set_variations(card_set: str) -> list[str]:
    """Alternative spellings a listing might use for this set."""
    variations: list[str] = []
    for key, spellings in SET_SYNONYMS.items():
        if key in card_set:
            variations.extend(s for s in spellings if s not in variations)
    return variations


def _set_match(title: str, card_set: str) -> float:
    if card_set in title:
        return 1.0
    for variation in set_variations(card_set):
        if variation in title:
            return settings.MATCH_SET_SYNONYM_CREDIT
    words = [word for word in card_set.split() if len(word) > 2]
    if not words:
        return 0.0
    matched = [word for word in words if word in title]
    return (len(matched) / len(words)) * settings.MATCH_SET_WORD_CREDIT


def _card_number_match(title: str, card_number: str) -> bool:
    number = card_number.lstrip("#").strip()
    if not number:
        return False
    escaped = re.escape(number)
    if re.search(rf"(?:#|no\.\s?){escaped}(?![\w/])", title):
        return True
    return re.search(rf"(?<![\w/#.]){escaped}(?![\w/])", title) is not None


def score_comp(comp: NormalizedComp, query: SearchQuery) -> float:
    """
    Weighted relevance of one comp to the searched card, in [0, 1].
    """
    title = comp.title.lower()
    player = (query.known("player") or "").lower()
    year = query.known("year")
    card_set = (query.known("set") or "").lower()
    card_number = query.known("card_number")
    grade = (query.known("grade") or "").lower() if query.grade else ""

    score = 0.0
    if player:
        score += _player_match(title, player) * settings.MATCH_WEIGHT_PLAYER
    if year:
        score += _year_match(title, year) * settings.MATCH_WEIGHT_YEAR
    if card_set:
        score += _set_match(title, card_set) * settings.MATCH_WEIGHT_SET
    if card_number and _card_number_match(title, card_number.lower()):
        score += settings.MATCH_WEIGHT_CARD_NUMBER
    if grade and grade in title:
        score += settings.MATCH_WEIGHT_GRADE

    bonus = 0.0
    query_text = f"{player} {card_set}"
    if _ROOKIE.search(title) and (_ROOKIE.search(query_text) or "rookie" in query_text):
        bonus += settings.MATCH_BONUS_ROOKIE
    for term in VARIANT_TERMS:
        if term in card_set and term in title:
            bonus += settings.MATCH_BONUS_VARIANT
            break
    score += min(bonus, settings.MATCH_WEIGHT_BONUS)

    max_score = (
        settings.MATCH_WEIGHT_PLAYER
        + settings.MATCH_WEIGHT_YEAR
        + settings.MATCH_WEIGHT_SET
        + settings.MATCH_WEIGHT_CARD_NUMBER
        + settings.MATCH_WEIGHT_GRADE
        + settings.MATCH_WEIGHT_BONUS
    )
    normalized = min(1.0, score / max_score) if max_score > 0 else 0.0

    if player:
        parts = _name_parts(player)
        if parts and parts[-1] not in title:
            normalized -= settings.MATCH_MISSING_PLAYER_PENALTY
    if mentions_non_single_card(title):
        normalized -= settings.MATCH_NON_SINGLE_PENALTY

    return round(max(0.0, min(1.0, normalized)), 4)


def _sort_key(comp: NormalizedComp) -> tuple[float, date]:
    return (comp.match_score or 0.0, comp.date)


def _rank(scored: list[NormalizedComp]) -> list[NormalizedComp]:
    """
    Score descending; comps within SCORE_TIE_EPSILON of each other are
    ordered by sale date, newest first.
    """
    by_score = sorted(scored, key=_sort_key, reverse=True)
    ranked: list[NormalizedComp] = []
    group: list[NormalizedComp] = []
    for comp in by_score:
        if group and (group[0].match_score or 0.0) - (comp.match_score or 0.0) > settings.SCORE_TIE_EPSILON:
            ranked.extend(sorted(group, key=lambda c: c.date, reverse=True))
            group = []
        group.append(comp)
    ranked.extend(sorted(group, key=lambda c: c.date, reverse=True))
    return ranked


def find_relevant_matches(
    comps: list[NormalizedComp],
    query: SearchQuery,
    min_score: float | None = None,
) -> MatchResult:
    """
    Score comps and return the highest non-empty relevance tier.

    Args:
        comps: Normalized, deduplicated comps.
        query: The searched card.
        min_score: Floor for the fallback tier (default: DEFAULT_MIN_MATCH_SCORE).

    Returns:
        MatchResult. An empty tier is a valid outcome, not an error.
    """
    floor = min_score if min_score is not None else settings.DEFAULT_MIN_MATCH_SCORE
    cap = settings.MAX_COMPS_PER_TIER

    ranked = _rank([comp.with_score(score_comp(comp, query)) for comp in comps])

    def tier(threshold: float) -> list[NormalizedComp]:
        return [c for c in ranked if (c.match_score or 0.0) >= threshold]

    exact = tier(settings.MATCH_EXACT_THRESHOLD)
    strong = tier(settings.MATCH_STRONG_THRESHOLD)
    partial = tier(settings.MATCH_PARTIAL_THRESHOLD)
    fallback = tier(floor)

    logger.info(
        "matcher_distribution",
        total=len(ranked),
        exact=len(exact),
        strong=len(strong),
        partial=len(partial),
        fallback=len(fallback),
        source="matcher",
    )

    if exact:
        return MatchResult(
            exact_match_found=True,
            relevant_comps=exact[:cap],
            match_quality=MatchQuality.EXACT,
        )
    if strong:
        return MatchResult(
            relevant_comps=strong[:cap],
            match_quality=MatchQuality.PARTIAL,
            match_message=f"Found {len(strong)} strong matches for your card, but no exact match.",
        )
    if partial:
        return MatchResult(
            relevant_comps=partial[:cap],
            match_quality=MatchQuality.FUZZY,
            match_message=f"Found {len(partial)} partial matches. Results may be less accurate.",
        )
    if fallback:
        return MatchResult(
            relevant_comps=fallback[:cap],
            match_quality=MatchQuality.FALLBACK,
            match_message=(
                f"Found {len(fallback)} similar cards, but no close matches for your specific card."
            ),
        )
    return MatchResult(
        relevant_comps=[],
        match_quality=MatchQuality.FALLBACK,
        match_message="No relevant matches found. Try a different search or check the card details.",
    )
