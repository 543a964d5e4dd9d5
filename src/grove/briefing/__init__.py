"""Conversation briefings: context assembly, narration and caching."""

from .context import MAX_INTERACTIONS, BriefingContext, BriefingContextAssembler
from .narrator import Briefing, BriefingNarrator
from .service import BriefingService

__all__ = [
    "MAX_INTERACTIONS",
    "Briefing",
    "BriefingContext",
    "BriefingContextAssembler",
    "BriefingNarrator",
    "BriefingService",
]
