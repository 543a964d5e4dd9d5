"""Extraction payloads: untrusted model output and its normalized form.

An ``Extraction`` mirrors whatever the extraction model returned. ``None``
means a field was absent; an empty string or empty list means it was present
but empty. The distinction matters for overrides, where a present field
replaces the extraction's value and an absent one leaves it alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..contacts.models import InteractionType, PreferenceCategory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreferenceCandidate:
    """A preference proposed by an extraction."""

    category: PreferenceCategory
    content: str

    @property
    def key(self) -> tuple[str, str]:
        """Identity used for duplicate detection."""
        return (self.category.value, self.content.casefold())


@dataclass(frozen=True)
class FamilyMemberCandidate:
    """A family member proposed by an extraction."""

    name: str
    relation: str

    @property
    def key(self) -> tuple[str, str]:
        """Identity used for duplicate detection."""
        return (self.name.casefold(), self.relation.casefold())


@dataclass(frozen=True)
class InteractionCandidate:
    """The interaction an extraction wants recorded."""

    type: InteractionType
    summary: str
    date: datetime | None = None


@dataclass
class Extraction:
    """Structured facts about one contact, as returned by the model.

    Attributes:
        contact_name: The person's name.
        is_new_contact: Model's guess that this is someone new.
        location: City, state or address.
        preferences: Proposed preferences.
        family_members: Proposed family members.
        seedlings: Proposed follow-up texts.
        interaction_summary: Short summary of the interaction.
        interaction_type: How the interaction happened.
        interaction_date: YYYY-MM-DD of the interaction.
    """

    contact_name: str | None = None
    is_new_contact: bool | None = None
    location: str | None = None
    preferences: list[PreferenceCandidate] | None = None
    family_members: list[FamilyMemberCandidate] | None = None
    seedlings: list[str] | None = None
    interaction_summary: str | None = None
    interaction_type: InteractionType | None = None
    interaction_date: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Extraction:
        """Parse an untrusted payload, accepting camelCase or snake_case keys.

        Items of the wrong shape are dropped with a warning; an unknown
        interaction type counts as absent.
        """
        if not isinstance(data, dict):
            raise TypeError("Extraction payload must be an object")

        def pick(camel: str, snake: str) -> Any:
            if camel in data:
                return data[camel]
            return data.get(snake)

        return cls(
            contact_name=_optional_str(pick("contactName", "contact_name")),
            is_new_contact=_optional_bool(pick("isNewContact", "is_new_contact")),
            location=_optional_str(data.get("location")),
            preferences=_parse_preferences(data.get("preferences")),
            family_members=_parse_family_members(pick("familyMembers", "family_members")),
            seedlings=_parse_seedlings(data.get("seedlings")),
            interaction_summary=_optional_str(
                pick("interactionSummary", "interaction_summary")
            ),
            interaction_type=_parse_interaction_type(
                pick("interactionType", "interaction_type")
            ),
            interaction_date=_optional_str(pick("interactionDate", "interaction_date")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Render the camelCase wire form, omitting absent fields."""
        data: dict[str, Any] = {}
        if self.contact_name is not None:
            data["contactName"] = self.contact_name
        if self.is_new_contact is not None:
            data["isNewContact"] = self.is_new_contact
        if self.location is not None:
            data["location"] = self.location
        if self.preferences is not None:
            data["preferences"] = [
                {"category": p.category.value, "content": p.content} for p in self.preferences
            ]
        if self.family_members is not None:
            data["familyMembers"] = [
                {"name": m.name, "relation": m.relation} for m in self.family_members
            ]
        if self.seedlings is not None:
            data["seedlings"] = list(self.seedlings)
        if self.interaction_summary is not None:
            data["interactionSummary"] = self.interaction_summary
        if self.interaction_type is not None:
            data["interactionType"] = self.interaction_type.value
        if self.interaction_date is not None:
            data["interactionDate"] = self.interaction_date
        return data


@dataclass(frozen=True)
class NormalizedExtraction:
    """A validated extraction, cleaned and deduplicated against a contact.

    Attributes:
        contact_name: Trimmed, non-empty name.
        location: Trimmed location, None if absent or empty.
        preferences: New preferences only.
        family_members: New family members only.
        seedlings: New seedling texts only.
        interaction: Interaction to record, if a summary was extracted.
        is_new_contact: The model's hint, passed through.
        skipped: Duplicates dropped per kind.
        source: The cleaned extraction before deduplication.
    """

    contact_name: str
    location: str | None = None
    preferences: tuple[PreferenceCandidate, ...] = ()
    family_members: tuple[FamilyMemberCandidate, ...] = ()
    seedlings: tuple[str, ...] = ()
    interaction: InteractionCandidate | None = None
    is_new_contact: bool | None = None
    skipped: dict[str, int] = field(default_factory=dict)
    source: Extraction = field(default_factory=Extraction)


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    # bool is an int subclass; true must not become the text "True"
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return str(value)
    logger.warning("Expected text, got %s", type(value).__name__)
    return None


def _optional_bool(value: Any) -> bool | None:
    return value if isinstance(value, bool) else None


def _parse_interaction_type(value: Any) -> InteractionType | None:
    if value is None:
        return None
    try:
        return InteractionType(str(value).upper())
    except ValueError:
        logger.warning("Ignoring unknown interaction type: %s", value)
        return None


def _parse_preferences(value: Any) -> list[PreferenceCandidate] | None:
    if value is None:
        return None
    if not isinstance(value, list):
        logger.warning("Ignoring preferences that are not a list")
        return []

    preferences = []
    for item in value:
        if not isinstance(item, dict) or not isinstance(item.get("content"), str):
            logger.warning("Skipping invalid preference item: %s", item)
            continue
        try:
            category = PreferenceCategory(str(item.get("category", "")).upper())
        except ValueError:
            logger.warning("Skipping preference with unknown category: %s", item)
            continue
        preferences.append(PreferenceCandidate(category=category, content=item["content"]))
    return preferences


def _parse_family_members(value: Any) -> list[FamilyMemberCandidate] | None:
    if value is None:
        return None
    if not isinstance(value, list):
        logger.warning("Ignoring family members that are not a list")
        return []

    members = []
    for item in value:
        if not isinstance(item, dict) or not isinstance(item.get("name"), str):
            logger.warning("Skipping invalid family member item: %s", item)
            continue
        relation = item.get("relation")
        if relation is not None and not isinstance(relation, str):
            logger.warning("Ignoring non-text relation: %s", relation)
            relation = None
        members.append(FamilyMemberCandidate(name=item["name"], relation=relation or ""))
    return members


def _parse_seedlings(value: Any) -> list[str] | None:
    if value is None:
        return None
    if not isinstance(value, list):
        logger.warning("Ignoring seedlings that are not a list")
        return []
    seedlings = []
    for item in value:
        if not isinstance(item, str):
            logger.warning("Skipping invalid seedling item: %s", item)
            continue
        seedlings.append(item)
    return seedlings
