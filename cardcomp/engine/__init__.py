"""
Engine package — pure calculation layers of the comp pipeline.
"""

from cardcomp.engine.matcher import find_relevant_matches, score_comp
from cardcomp.engine.normalizer import combine, deduplicate, normalize_listing
from cardcomp.engine.query_builder import build_search_queries
from cardcomp.engine.valuator import calculate_comp_value, check_price_consistency

__all__ = [
    "build_search_queries",
    "calculate_comp_value",
    "check_price_consistency",
    "combine",
    "deduplicate",
    "find_relevant_matches",
    "normalize_listing",
    "score_comp",
]
