"""Briefing generation with a per-contact cache."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from datetime import datetime

from ..contacts.models import Contact, utcnow
from ..contacts.store import ContactStore
from ..errors import GroveError
from ..logging import JSONLLogger, get_logger
from .context import BriefingContextAssembler
from .narrator import Briefing, BriefingNarrator

logger = logging.getLogger(__name__)


class BriefingService:
    """Assembles context, narrates it, and caches the result on the contact.

    A cached briefing stays valid until the contact changes: any write that
    bumps the contact's updated_at past briefing_generated_at invalidates it.
    """

    def __init__(
        self,
        store: ContactStore,
        assembler: BriefingContextAssembler,
        narrator: BriefingNarrator,
        event_logger: JSONLLogger | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.assembler = assembler
        self.narrator = narrator
        self.event_logger = event_logger or get_logger()
        self.clock = clock

    async def brief(self, contact_id: int, force_refresh: bool = False) -> tuple[Briefing, bool]:
        """Get a briefing for a contact, from cache when still valid.

        Args:
            contact_id: The contact's id.
            force_refresh: Regenerate even if a valid cached briefing exists.

        Returns:
            Tuple of (briefing, whether it came from the cache).

        Raises:
            NotFoundError: If the contact does not exist.
            CollaboratorError: If the briefing model call failed.
        """
        try:
            contact = self.store.get_contact(contact_id, interaction_limit=1)
        except GroveError as e:
            self.event_logger.log_error("briefing_error", e, contact_id=contact_id)
            raise

        if not force_refresh:
            cached = self._cached(contact)
            if cached is not None:
                self.event_logger.log("briefing_cache_hit", contact_id=contact_id)
                return cached, True

        # Taken before assembly so a write during narration still invalidates
        generated_at = self.clock()
        start = time.monotonic()
        try:
            context = self.assembler.assemble(contact_id)
            briefing = await self.narrator.narrate(context, today=generated_at.date())
        except GroveError as e:
            self.event_logger.log_error("briefing_error", e, contact_id=contact_id)
            raise
        duration_ms = (time.monotonic() - start) * 1000

        self.store.save_briefing(contact_id, json.dumps(briefing.to_dict()), generated_at)
        self.event_logger.log(
            "briefing_generated",
            contact_id=contact_id,
            model=self.narrator.llm.model,
            duration_ms=duration_ms,
            interactions=len(context.interactions),
        )
        return briefing, False

    def _cached(self, contact: Contact) -> Briefing | None:
        """The contact's cached briefing, if present and not stale."""
        if not contact.cached_briefing or contact.briefing_generated_at is None:
            return None
        if contact.updated_at is not None and contact.briefing_generated_at < contact.updated_at:
            return None

        try:
            return Briefing.from_dict(json.loads(contact.cached_briefing))
        except (TypeError, ValueError) as e:
            logger.warning("Ignoring unreadable cached briefing for %s: %s", contact.id, e)
            return None
