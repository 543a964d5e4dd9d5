"""Data models for contacts and their child records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum

from ..errors import ValidationError


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class Cadence(Enum):
    """Desired contact frequency for a relationship."""

    OFTEN = "OFTEN"
    REGULARLY = "REGULARLY"
    SELDOMLY = "SELDOMLY"
    RARELY = "RARELY"


class PreferenceCategory(Enum):
    """ALWAYS for likes, NEVER for things to avoid."""

    ALWAYS = "ALWAYS"
    NEVER = "NEVER"


class InteractionType(Enum):
    """How an interaction happened."""

    CALL = "CALL"
    TEXT = "TEXT"
    MEET = "MEET"
    VOICE = "VOICE"


class SeedlingStatus(Enum):
    """Follow-up state. ACTIVE is pending, PLANTED is done."""

    ACTIVE = "ACTIVE"
    PLANTED = "PLANTED"


@dataclass
class Preference:
    """Something a contact always wants, or never wants."""

    category: PreferenceCategory
    content: str
    id: int | None = None
    contact_id: int | None = None


@dataclass
class Interaction:
    """A logged call, message, meeting or note."""

    type: InteractionType
    summary: str
    date: datetime = field(default_factory=utcnow)
    id: int | None = None
    contact_id: int | None = None


@dataclass
class Seedling:
    """A follow-up idea or conversation topic for a contact."""

    content: str
    status: SeedlingStatus = SeedlingStatus.ACTIVE
    created_at: datetime = field(default_factory=utcnow)
    id: int | None = None
    contact_id: int | None = None

    def transition_to(self, status: SeedlingStatus) -> bool:
        """Move to a new status.

        Only ACTIVE -> PLANTED is allowed. Setting the current status again
        is a no-op.

        Returns:
            True if the status changed.

        Raises:
            ValidationError: On an attempt to move PLANTED back to ACTIVE.
        """
        if status == self.status:
            return False
        if self.status == SeedlingStatus.PLANTED:
            raise ValidationError("A planted seedling cannot become active again")
        self.status = status
        return True


@dataclass
class FamilyMember:
    """Someone important to a contact (partner, child, pet)."""

    name: str
    relation: str
    id: int | None = None
    contact_id: int | None = None


@dataclass
class Contact:
    """A person and everything recorded about them.

    Attributes:
        name: Display name, never empty.
        cadence: Desired contact frequency.
        location: City or address, if known.
        birthday: Birth date, if known.
        avatar_url: Reference to an avatar image.
        socials: Handles keyed by platform.
        preferences: Child preferences.
        interactions: Child interactions, newest first when loaded.
        seedlings: Child seedlings, newest first when loaded.
        family_members: Child family members.
        cached_briefing: Last generated briefing as JSON text.
        briefing_generated_at: When cached_briefing was produced.
        last_interaction_at: Most recent interaction date, filled by listings.
    """

    name: str
    cadence: Cadence = Cadence.REGULARLY
    location: str | None = None
    birthday: date | None = None
    avatar_url: str | None = None
    socials: dict[str, str] = field(default_factory=dict)
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    preferences: list[Preference] = field(default_factory=list)
    interactions: list[Interaction] = field(default_factory=list)
    seedlings: list[Seedling] = field(default_factory=list)
    family_members: list[FamilyMember] = field(default_factory=list)
    cached_briefing: str | None = None
    briefing_generated_at: datetime | None = None
    last_interaction_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValidationError("Contact name cannot be empty")

    @property
    def active_seedlings(self) -> list[Seedling]:
        """Seedlings still waiting to be acted on."""
        return [s for s in self.seedlings if s.status == SeedlingStatus.ACTIVE]

    def preferences_in(self, category: PreferenceCategory) -> list[Preference]:
        """Preferences of a single category."""
        return [p for p in self.preferences if p.category == category]
