"""CardComp — Pipeline orchestration"""

from cardcomp.pipeline.orchestrator import CompOrchestrator, estimate_card_value
from cardcomp.pipeline.registry import build_scrapers

__all__ = ["CompOrchestrator", "build_scrapers", "estimate_card_value"]
