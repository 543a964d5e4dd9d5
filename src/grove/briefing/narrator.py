"""Narrative briefings written by an LLM from a BriefingContext."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from ..errors import CollaboratorError
from ..ingest.extractor import parse_json_object
from ..llm_client import LLMClient
from ..prompts import PromptTemplate, load_prompt
from .context import BriefingContext

logger = logging.getLogger(__name__)


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    items = (str(item).strip() for item in value if isinstance(item, (str, int, float)))
    return [item for item in items if item]


@dataclass
class Briefing:
    """A conversation briefing for one contact."""

    relationship_summary: str
    recent_highlights: list[str] = field(default_factory=list)
    conversation_starters: list[str] = field(default_factory=list)
    upcoming_milestones: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Briefing:
        """Parse a briefing payload.

        Accepts relationshipSummary/recentHighlights/conversationStarters/
        upcomingMilestones, their snake_case forms, and the short aliases
        summary/highlights.

        Raises:
            ValueError: If there is no summary.
        """

        def pick(*keys: str) -> Any:
            for key in keys:
                if key in data:
                    return data[key]
            return None

        summary = pick("relationshipSummary", "relationship_summary", "summary")
        if not isinstance(summary, str) or not summary.strip():
            raise ValueError("Briefing has no relationship summary")

        return cls(
            relationship_summary=summary.strip(),
            recent_highlights=_string_list(
                pick("recentHighlights", "recent_highlights", "highlights")
            ),
            conversation_starters=_string_list(
                pick("conversationStarters", "conversation_starters")
            ),
            upcoming_milestones=_string_list(
                pick("upcomingMilestones", "upcoming_milestones")
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "relationshipSummary": self.relationship_summary,
            "recentHighlights": list(self.recent_highlights),
            "conversationStarters": list(self.conversation_starters),
            "upcomingMilestones": list(self.upcoming_milestones),
        }


class BriefingNarrator:
    """Turns a BriefingContext into a Briefing using an LLM."""

    def __init__(self, llm: LLMClient, prompt: PromptTemplate | None = None) -> None:
        """Initialize the narrator.

        Args:
            llm: LLM used to write briefings.
            prompt: System prompt, the bundled 'briefing' prompt if None.
        """
        self.llm = llm
        self.prompt = prompt or load_prompt("briefing")

    async def narrate(self, context: BriefingContext, today: date | None = None) -> Briefing:
        """Write a briefing.

        Raises:
            CollaboratorError: If the model call fails or the reply is unusable.
        """
        prompt = (
            "Generate a conversation briefing for this contact:\n\n"
            f"{context.to_prompt()}"
        )
        try:
            content = await self.llm.complete(
                prompt,
                system=self.prompt.render(today),
                json_mode=True,
            )
        except Exception as e:
            logger.warning("Briefing call failed: %s", e)
            raise CollaboratorError(f"Briefing failed: {e}") from e

        data = parse_json_object(content)
        try:
            return Briefing.from_dict(data)
        except ValueError as e:
            raise CollaboratorError(f"Unusable briefing: {e}") from e
