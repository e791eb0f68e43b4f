"""
CardComp — Comp Orchestrator

Per request:

    BUILD_QUERIES
    -> for each search string, strictly in order:
           SCRAPE_PARALLEL (all sources, bounded by QUERY_TIMEOUT_SECONDS)
           -> NORMALIZE -> ACCUMULATE
           [stop early once EARLY_EXIT_COMP_COUNT comps are in hand]
    -> DEDUPLICATE_ALL -> MATCH -> VALUATE -> RESPOND

The global budget is checked before each search string. Running out of it
skips the remaining strings and records a "System" error; it never raises.
Only ConfigurationError escapes run().
"""

from __future__ import annotations

import asyncio
import time
import uuid
from contextlib import AsyncExitStack
from typing import Any, Iterable, Sequence

import structlog

from cardcomp.config import CompLogic, SourceId, settings
from cardcomp.engine.matcher import find_relevant_matches
from cardcomp.engine.normalizer import combine, deduplicate
from cardcomp.engine.query_builder import build_search_queries
from cardcomp.engine.valuator import NO_DATA_METHODOLOGY, calculate_comp_value, check_price_consistency
from cardcomp.errors import ConfigurationError
from cardcomp.models import (
    DebugInfo,
    EstimateResponse,
    NormalizedComp,
    ScrapingError,
    SearchQuery,
    SourceResult,
    format_currency,
)
from cardcomp.pipeline.registry import build_scrapers
from cardcomp.scraper import SourceScraper

logger = structlog.get_logger(__name__)

SYSTEM_SOURCE = "System"
QUERY_BUILDER_SOURCE = "Query Builder"
DEFAULT_SOURCES: tuple[str, ...] = (SourceId.EBAY.value, SourceId.POINT130.value)


def _resolve_logic(comp_logic: CompLogic | str | None) -> CompLogic | str:
    if comp_logic is None:
        return settings.DEFAULT_COMP_LOGIC
    if isinstance(comp_logic, CompLogic):
        return comp_logic
    try:
        return CompLogic(comp_logic)
    except ValueError:
        # Unrecognized logic falls through to the valuator's plain average
        return comp_logic


def _logic_label(logic: CompLogic | str) -> str:
    return logic.value if isinstance(logic, CompLogic) else logic


class CompOrchestrator:
    """
    Runs the comp pipeline over a fixed list of scrapers.

    Usage:
        orchestrator = CompOrchestrator(build_scrapers(["ebay", "130point"]))
        response = await orchestrator.run(query, CompLogic.AVERAGE_3)
    """

    def __init__(
        self,
        scrapers: Sequence[SourceScraper],
        query_timeout: float | None = None,
        global_timeout: float | None = None,
        early_exit_count: int | None = None,
        min_match_score: float | None = None,
    ) -> None:
        self._scrapers = list(scrapers)
        self._query_timeout = query_timeout if query_timeout is not None else settings.QUERY_TIMEOUT_SECONDS
        self._global_timeout = global_timeout if global_timeout is not None else settings.GLOBAL_TIMEOUT_SECONDS
        self._early_exit_count = (
            early_exit_count if early_exit_count is not None else settings.EARLY_EXIT_COMP_COUNT
        )
        self._min_match_score = min_match_score

    def _validate(self) -> None:
        if not self._scrapers:
            raise ConfigurationError("No valid sources selected")
        request_timeout = settings.REQUEST_TIMEOUT_SECONDS
        if not 0 < request_timeout < self._query_timeout < self._global_timeout:
            raise ConfigurationError(
                "Timeouts must satisfy 0 < request < query < global "
                f"(got {request_timeout}, {self._query_timeout}, {self._global_timeout})"
            )

    async def run(
        self,
        query: SearchQuery,
        comp_logic: CompLogic | str | None = None,
    ) -> EstimateResponse:
        """
        Estimate a card's value.

        Args:
            query: Structured card attributes.
            comp_logic: Aggregation policy (default: DEFAULT_COMP_LOGIC).

        Returns:
            EstimateResponse. Source failures, timeouts and empty results are
            reported inside the response.

        Raises:
            ConfigurationError: No scrapers, or inconsistent timeouts.
        """
        self._validate()
        logic = _resolve_logic(comp_logic)
        trace_id = uuid.uuid4().hex[:12]
        started = time.monotonic()
        debug = DebugInfo()
        errors: list[ScrapingError] = []

        with structlog.contextvars.bound_contextvars(trace_id=trace_id):
            logger.info(
                "orchestrator_run_start",
                player=query.player,
                comp_logic=_logic_label(logic),
                sources=[s.source_id.value for s in self._scrapers],
                source="orchestrator",
            )
            try:
                response = await self._run(query, logic, debug, errors, started)
            except Exception as e:
                logger.exception("orchestrator_run_failed", error=str(e), source="orchestrator")
                errors.append(ScrapingError(source=SYSTEM_SOURCE, message=f"Unexpected error: {e}"))
                response = self._no_data_response(
                    logic,
                    errors,
                    debug,
                    "Something went wrong while estimating this card. Please try again.",
                )

            debug.total_processing_time = int((time.monotonic() - started) * 1000)
            response.debug = debug
            response.trace_id = trace_id
            logger.info(
                "orchestrator_run_complete",
                estimated_value=response.estimated_value,
                comp_count=len(response.comps),
                error_count=len(response.errors),
                processing_ms=debug.total_processing_time,
                source="orchestrator",
            )
            return response

    async def _run(
        self,
        query: SearchQuery,
        logic: CompLogic | str,
        debug: DebugInfo,
        errors: list[ScrapingError],
        started: float,
    ) -> EstimateResponse:
        searches = build_search_queries(query)
        if not searches:
            errors.append(
                ScrapingError(
                    source=QUERY_BUILDER_SOURCE,
                    message="No search queries could be built: the player name is unknown.",
                )
            )
            return self._no_data_response(
                logic,
                errors,
                debug,
                "Could not identify the player on this card. Please provide more details.",
            )

        accumulated: list[NormalizedComp] = []

        async with AsyncExitStack() as stack:
            for scraper in self._scrapers:
                await stack.enter_async_context(scraper)

            for index, search in enumerate(searches):
                remaining = self._global_timeout - (time.monotonic() - started)
                if remaining <= 0:
                    skipped = len(searches) - index
                    errors.append(
                        ScrapingError(
                            source=SYSTEM_SOURCE,
                            message=(
                                f"Global timeout of {self._global_timeout:g}s reached; "
                                f"skipped {skipped} remaining search quer{'y' if skipped == 1 else 'ies'}."
                            ),
                        )
                    )
                    logger.warning("orchestrator_global_timeout", skipped=skipped, source="orchestrator")
                    break

                debug.attempted_queries.append(search)
                results = await self._scrape_parallel(search, min(self._query_timeout, remaining))
                for result in results:
                    debug.raw_result_counts[f"{result.source}:{search}"] = len(result.results)

                normalized = combine(results)
                errors.extend(normalized.errors)
                accumulated.extend(normalized.comps)

                if len(accumulated) >= self._early_exit_count:
                    logger.info(
                        "orchestrator_early_exit",
                        comp_count=len(accumulated),
                        queries_run=index + 1,
                        source="orchestrator",
                    )
                    break

        comps = deduplicate(accumulated)
        if not comps:
            return self._no_data_response(
                logic,
                errors,
                debug,
                "No comparable sales were found for this card. Try adjusting the card details.",
            )

        match = find_relevant_matches(comps, query, self._min_match_score)
        valuation = calculate_comp_value(match.relevant_comps, logic)
        warnings = check_price_consistency(match.relevant_comps)

        return EstimateResponse(
            estimated_value=format_currency(valuation.estimated_value),
            logic_used=valuation.logic_used,
            exact_match_found=match.exact_match_found,
            confidence=valuation.confidence,
            methodology=valuation.methodology,
            match_message=match.match_message,
            comps=match.relevant_comps,
            errors=errors,
            price_range=valuation.price_range,
            data_points=len(match.relevant_comps),
            warnings=warnings,
        )

    async def _scrape_parallel(self, search: str, timeout: float) -> list[SourceResult]:
        """
        Fan out one search string to every scraper and wait for all to settle.

        Scrapers still running at the deadline are cancelled and reported as
        timeouts. Results come back in scraper order.
        """
        tasks: dict[asyncio.Task[SourceResult], SourceScraper] = {
            asyncio.create_task(scraper.fetch(search)): scraper for scraper in self._scrapers
        }
        _, pending = await asyncio.wait(tasks, timeout=timeout)

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        results: list[SourceResult] = []
        for task, scraper in tasks.items():
            if task in pending:
                logger.warning(
                    "orchestrator_source_timeout",
                    search=search,
                    timeout_seconds=round(timeout, 2),
                    source=scraper.source_id.value,
                )
                message = f"Timed out after {timeout:.1f}s searching for '{search}'"
            elif task.exception() is not None:
                exc = task.exception()
                logger.error(
                    "orchestrator_source_crashed",
                    search=search,
                    error=str(exc),
                    source=scraper.source_id.value,
                )
                message = f"Unexpected error searching for '{search}': {exc}"
            else:
                results.append(task.result())
                continue
            results.append(
                SourceResult(source=scraper.label, error=ScrapingError(source=scraper.label, message=message))
            )
        return results

    def _no_data_response(
        self,
        logic: CompLogic | str,
        errors: list[ScrapingError],
        debug: DebugInfo,
        message: str,
    ) -> EstimateResponse:
        return EstimateResponse(
            estimated_value=format_currency(calculate_comp_value([], logic).estimated_value),
            logic_used=_logic_label(logic),
            exact_match_found=False,
            confidence=0.0,
            methodology=NO_DATA_METHODOLOGY,
            match_message=message,
            comps=[],
            errors=errors,
            debug=debug,
        )


async def estimate_card_value(
    query: SearchQuery | dict[str, Any],
    comp_logic: CompLogic | str | None = None,
    sources: Iterable[str | SourceId] = DEFAULT_SOURCES,
) -> EstimateResponse:
    """
    Convenience entry point: build scrapers for `sources` and run once.

    Raises:
        ConfigurationError: When no usable source is selected.
    """
    if not isinstance(query, SearchQuery):
        query = SearchQuery.model_validate(query)
    scrapers = build_scrapers(sources)
    return await CompOrchestrator(scrapers).run(query, comp_logic)
