"""Tests for the search query builder."""

from __future__ import annotations

from unittest.mock import patch

import cardcomp.engine.query_builder as qb_module
from cardcomp.engine.query_builder import build_search_queries
from cardcomp.models import SearchQuery


class TestBuildSearchQueries:
    def test_most_specific_first(self, trout_query: SearchQuery) -> None:
        """Full context produces year+set+player+number first, player alone last."""
        queries = build_search_queries(trout_query)
        assert queries[0] == "2023 Topps Chrome Mike Trout #1"
        assert queries[1] == "2023 Topps Chrome Mike Trout rookie"
        assert queries[-1] == "Mike Trout"

    def test_full_order(self, trout_query: SearchQuery) -> None:
        """Templates appear in decreasing specificity; sport-less template skipped."""
        assert build_search_queries(trout_query) == [
            "2023 Topps Chrome Mike Trout #1",
            "2023 Topps Chrome Mike Trout rookie",
            "Mike Trout Topps Chrome",
            "Mike Trout 2023",
            "Mike Trout",
        ]

    def test_sport_template(self) -> None:
        """A known sport adds player + year + sport before player + year."""
        query = SearchQuery(player="Mike Trout", year="2011", sport="baseball")
        assert build_search_queries(query) == [
            "Mike Trout 2011 baseball",
            "Mike Trout 2011",
            "Mike Trout",
        ]

    def test_unknown_player_returns_empty(self) -> None:
        """No player means no queries, whatever else is known."""
        query = SearchQuery(player="unknown", year="2023", set="Topps Chrome", card_number="1")
        assert build_search_queries(query) == []

    def test_blank_player_returns_empty(self) -> None:
        """Whitespace-only player counts as unknown."""
        assert build_search_queries(SearchQuery(player="   ", year="2023")) == []

    def test_player_only(self) -> None:
        """Player alone yields exactly one query."""
        assert build_search_queries(SearchQuery(player="Shohei Ohtani")) == ["Shohei Ohtani"]

    def test_card_number_hash_not_doubled(self) -> None:
        """A card number already prefixed with # is rendered once."""
        query = SearchQuery(player="Mike Trout", year="2023", set="Topps Chrome", card_number="#27")
        assert build_search_queries(query)[0] == "2023 Topps Chrome Mike Trout #27"

    def test_number_without_set_still_specific(self) -> None:
        """Year + number is enough context for the numbered template."""
        query = SearchQuery(player="Mike Trout", year="2023", card_number="1")
        queries = build_search_queries(query)
        assert queries[0] == "2023 Mike Trout #1"
        assert "rookie" not in " ".join(queries)

    def test_no_duplicates(self) -> None:
        """Templates collapsing to the same string appear once."""
        queries = build_search_queries(SearchQuery(player="Mike Trout", year="2023"))
        assert len(queries) == len(set(queries))

    def test_short_strings_dropped(self) -> None:
        """Strings shorter than the minimum length are discarded."""
        assert build_search_queries(SearchQuery(player="Bo")) == []

    def test_capped(self, trout_query: SearchQuery) -> None:
        """Output never exceeds the configured cap."""
        assert len(build_search_queries(trout_query, max_queries=2)) == 2
        with patch.object(qb_module.settings, "MAX_SEARCH_QUERIES", 3):
            assert len(build_search_queries(trout_query)) == 3

    def test_camel_case_input(self) -> None:
        """SearchQuery accepts the upstream camelCase field names."""
        query = SearchQuery.model_validate(
            {"player": "Mike Trout", "year": "2023", "set": "Topps Chrome", "cardNumber": "1"}
        )
        assert build_search_queries(query)[0] == "2023 Topps Chrome Mike Trout #1"
