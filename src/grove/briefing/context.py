"""Bounded context about a contact, handed to the briefing model."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime

from ..contacts.dates import days_until_birthday
from ..contacts.health import CadenceThresholds, HealthStatus, evaluate
from ..contacts.models import (
    Cadence,
    FamilyMember,
    Interaction,
    Preference,
    PreferenceCategory,
    Seedling,
    utcnow,
)
from ..contacts.store import ContactStore

MAX_INTERACTIONS = 20


@dataclass
class BriefingContext:
    """Everything a briefing may draw on for one contact.

    Attributes:
        contact_id: The contact's id.
        name: Display name.
        location: City or address, if known.
        birthday: Birth date, if known.
        days_until_birthday: Days to the next birthday, None without a birthday.
        cadence: Desired contact frequency.
        health: Derived relationship health.
        last_interaction_at: Most recent interaction, None if never contacted.
        interactions: Most recent interactions, newest first.
        active_seedlings: Pending follow-ups.
        always: ALWAYS preferences.
        never: NEVER preferences.
        family_members: Important people in the contact's life.
    """

    contact_id: int
    name: str
    cadence: Cadence
    health: HealthStatus
    location: str | None = None
    birthday: date | None = None
    days_until_birthday: int | None = None
    last_interaction_at: datetime | None = None
    interactions: list[Interaction] = field(default_factory=list)
    active_seedlings: list[Seedling] = field(default_factory=list)
    always: list[Preference] = field(default_factory=list)
    never: list[Preference] = field(default_factory=list)
    family_members: list[FamilyMember] = field(default_factory=list)

    def to_prompt(self) -> str:
        """Render the context as the plain text given to the briefing model."""
        lines = [f"Contact: {self.name}"]
        if self.location:
            lines.append(f"Location: {self.location}")
        lines.append(f"Cadence: {self.cadence.value}")
        lines.append(f"Relationship health: {self.health.value.replace('_', ' ')}")
        if self.birthday is not None:
            lines.append(
                f"Birthday: {self.birthday.strftime('%B %d')} "
                f"(in {self.days_until_birthday} days)"
            )

        sections = [
            (
                "Important people",
                [f"{m.name} ({m.relation})" if m.relation else m.name for m in self.family_members],
            ),
            ("Things they love (ALWAYS)", [p.content for p in self.always]),
            ("Things to avoid (NEVER)", [p.content for p in self.never]),
            ("Follow-up topics", [s.content for s in self.active_seedlings]),
            (
                "Recent interactions",
                [
                    f"{i.date.date().isoformat()} ({i.type.value}): {i.summary}"
                    for i in self.interactions
                ],
            ),
        ]
        for title, items in sections:
            if not items:
                continue
            lines.append("")
            lines.append(f"{title}:")
            lines.extend(f"- {item}" for item in items)

        if not self.interactions:
            lines.append("")
            lines.append("No interactions recorded yet.")

        return "\n".join(lines)


class BriefingContextAssembler:
    """Builds BriefingContext bundles from stored contacts."""

    def __init__(
        self,
        store: ContactStore,
        thresholds: Mapping[Cadence, CadenceThresholds] | None = None,
        interaction_limit: int = MAX_INTERACTIONS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the assembler.

        Args:
            store: Persistence for contacts and children.
            thresholds: Health threshold table, the defaults if None.
            interaction_limit: Interactions to include, capped at 20.
            clock: Source of the current time.
        """
        if interaction_limit < 1:
            raise ValueError("interaction_limit must be at least 1")
        self.store = store
        self.thresholds = thresholds
        self.interaction_limit = min(interaction_limit, MAX_INTERACTIONS)
        self.clock = clock

    def assemble(self, contact_id: int) -> BriefingContext:
        """Build the context for a contact.

        Raises:
            NotFoundError: If the contact does not exist.
        """
        contact = self.store.get_contact(contact_id, interaction_limit=self.interaction_limit)
        now = self.clock()

        # Interactions come back newest first, so the head is the latest
        last = contact.interactions[0].date if contact.interactions else None

        return BriefingContext(
            contact_id=contact.id,
            name=contact.name,
            cadence=contact.cadence,
            health=evaluate(contact.cadence, last, now, self.thresholds),
            location=contact.location,
            birthday=contact.birthday,
            days_until_birthday=(
                days_until_birthday(contact.birthday, now.date())
                if contact.birthday is not None
                else None
            ),
            last_interaction_at=last,
            interactions=list(contact.interactions),
            active_seedlings=contact.active_seedlings,
            always=contact.preferences_in(PreferenceCategory.ALWAYS),
            never=contact.preferences_in(PreferenceCategory.NEVER),
            family_members=list(contact.family_members),
        )
