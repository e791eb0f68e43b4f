"""CardComp — Structured card attributes handed to the pipeline."""

from __future__ import annotations

from pydantic import ConfigDict
from pydantic.alias_generators import to_camel

from cardcomp.models.listing import WireModel
from cardcomp.utils.text import is_unknown

UNKNOWN = "unknown"


class SearchQuery(WireModel):
    """
    Card identity produced by the upstream attribute-extraction step.

    Any field may hold the sentinel "unknown". Only `player` is mandatory
    for a search to happen at all.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    player: str = UNKNOWN
    year: str = UNKNOWN
    set: str = UNKNOWN
    card_number: str = UNKNOWN
    grade: str | None = None
    sport: str = UNKNOWN

    def known(self, field: str) -> str | None:
        """Return the stripped field value, or None when it is blank or unknown."""
        value = getattr(self, field)
        if is_unknown(value):
            return None
        return value.strip()
