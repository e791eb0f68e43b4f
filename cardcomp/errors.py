"""
CardComp — Exception hierarchy

Only ConfigurationError is allowed to escape the pipeline. StrategyError and
its subclasses are raised inside a single scraper strategy and always caught
by that scraper's fallback ladder.
"""

from __future__ import annotations


class CardCompError(Exception):
    """Base class for all CardComp errors."""


class ConfigurationError(CardCompError):
    """The request cannot run at all (no usable sources, bad timeouts)."""


class StrategyError(CardCompError):
    """One scraping strategy failed; the next strategy should be tried."""

    def __init__(self, message: str, strategy: str | None = None) -> None:
        super().__init__(message)
        self.strategy = strategy


class SourceTimeoutError(StrategyError):
    """The per-request timer won the race against the network call."""
