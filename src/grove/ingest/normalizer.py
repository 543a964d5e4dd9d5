"""Validation and cleanup of extraction payloads before they are merged."""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Iterable
from datetime import datetime
from typing import TypeVar

from ..contacts.dates import parse_date_input
from ..contacts.models import Contact, InteractionType, SeedlingStatus
from ..errors import ValidationError
from .models import (
    Extraction,
    FamilyMemberCandidate,
    InteractionCandidate,
    NormalizedExtraction,
    PreferenceCandidate,
)

logger = logging.getLogger(__name__)

DEFAULT_INTERACTION_TYPE = InteractionType.VOICE

T = TypeVar("T")


def _clean(value: str | None) -> str | None:
    """Trim text, mapping absent and blank alike to None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def clean_extraction(raw: Extraction) -> Extraction:
    """Trim every text field and drop entries that end up empty.

    Absent list fields stay absent so override precedence still works on
    the cleaned form.
    """
    preferences = None
    if raw.preferences is not None:
        preferences = [
            PreferenceCandidate(category=p.category, content=p.content.strip())
            for p in raw.preferences
            if p.content.strip()
        ]

    family_members = None
    if raw.family_members is not None:
        family_members = [
            FamilyMemberCandidate(name=m.name.strip(), relation=m.relation.strip())
            for m in raw.family_members
            if m.name.strip()
        ]

    seedlings = None
    if raw.seedlings is not None:
        seedlings = [s.strip() for s in raw.seedlings if s.strip()]

    return Extraction(
        contact_name=raw.contact_name.strip() if raw.contact_name is not None else None,
        is_new_contact=raw.is_new_contact,
        location=raw.location.strip() if raw.location is not None else None,
        preferences=preferences,
        family_members=family_members,
        seedlings=seedlings,
        interaction_summary=(
            raw.interaction_summary.strip() if raw.interaction_summary is not None else None
        ),
        interaction_type=raw.interaction_type,
        interaction_date=(
            raw.interaction_date.strip() if raw.interaction_date is not None else None
        ),
    )


def _parse_interaction_date(value: str | None) -> datetime | None:
    """Interaction date from YYYY-MM-DD; unparseable dates fall back to now."""
    if not value:
        return None
    try:
        return parse_date_input(value)
    except ValidationError:
        logger.warning("Ignoring invalid interaction date: %s", value)
        return None


def _dedupe(
    candidates: Iterable[T],
    key: Callable[[T], Hashable],
    existing: set[Hashable],
) -> tuple[list[T], int]:
    """Keep candidates whose key is not already known.

    Returns:
        Tuple of (kept candidates, number dropped).
    """
    seen = set(existing)
    kept: list[T] = []
    dropped = 0
    for candidate in candidates:
        k = key(candidate)
        if k in seen:
            dropped += 1
            continue
        seen.add(k)
        kept.append(candidate)
    return kept, dropped


def normalize(raw: Extraction, existing_contact: Contact | None = None) -> NormalizedExtraction:
    """Validate an extraction and reduce it to what is new for a contact.

    Args:
        raw: The extraction as returned by the model (or merged with overrides).
        existing_contact: Contact to deduplicate against, None for a new one.

    Returns:
        A NormalizedExtraction holding only non-duplicate facts.

    Raises:
        ValidationError: If the contact name is missing or blank.
    """
    cleaned = clean_extraction(raw)

    if not cleaned.contact_name:
        raise ValidationError("Could not identify a person in the note")

    existing_preferences: set[Hashable] = set()
    existing_members: set[Hashable] = set()
    existing_seedlings: set[Hashable] = set()
    if existing_contact is not None:
        existing_preferences = {
            PreferenceCandidate(p.category, p.content.strip()).key
            for p in existing_contact.preferences
        }
        existing_members = {
            FamilyMemberCandidate(m.name.strip(), m.relation.strip()).key
            for m in existing_contact.family_members
        }
        existing_seedlings = {
            s.content.strip().casefold()
            for s in existing_contact.seedlings
            if s.status == SeedlingStatus.ACTIVE
        }

    preferences, skipped_preferences = _dedupe(
        cleaned.preferences or [], lambda p: p.key, existing_preferences
    )
    family_members, skipped_members = _dedupe(
        cleaned.family_members or [], lambda m: m.key, existing_members
    )
    seedlings, skipped_seedlings = _dedupe(
        cleaned.seedlings or [], lambda s: s.casefold(), existing_seedlings
    )

    interaction = None
    summary = _clean(cleaned.interaction_summary)
    if summary:
        date_text = _clean(cleaned.interaction_date)
        interaction = InteractionCandidate(
            type=cleaned.interaction_type or DEFAULT_INTERACTION_TYPE,
            summary=summary,
            date=_parse_interaction_date(date_text),
        )

    return NormalizedExtraction(
        contact_name=cleaned.contact_name,
        location=_clean(cleaned.location),
        preferences=tuple(preferences),
        family_members=tuple(family_members),
        seedlings=tuple(seedlings),
        interaction=interaction,
        is_new_contact=cleaned.is_new_contact,
        skipped={
            "preferences": skipped_preferences,
            "familyMembers": skipped_members,
            "seedlings": skipped_seedlings,
        },
        source=cleaned,
    )
