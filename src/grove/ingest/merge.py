"""Reconciles normalized extractions into stored contacts.

A merge resolves which contact an extraction is about, works out the set of
writes it implies (the change set), and either reports that change set as a
preview or applies it to the store as one transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..contacts.models import (
    Cadence,
    Contact,
    FamilyMember,
    Interaction,
    Preference,
    Seedling,
    utcnow,
)
from ..contacts.store import ContactChangeSet, ContactStore
from .models import Extraction, NormalizedExtraction
from .normalizer import normalize

logger = logging.getLogger(__name__)


def resolve_overrides(extraction: Extraction, overrides: Extraction | None) -> Extraction:
    """Apply user overrides on top of an extraction, field by field.

    A field the overrides carry (even as an empty string or list) replaces
    the extraction's value; a field the overrides leave as None keeps it.
    """
    if overrides is None:
        return extraction

    def pick(override: Any, original: Any) -> Any:
        return original if override is None else override

    return Extraction(
        contact_name=pick(overrides.contact_name, extraction.contact_name),
        is_new_contact=pick(overrides.is_new_contact, extraction.is_new_contact),
        location=pick(overrides.location, extraction.location),
        preferences=pick(overrides.preferences, extraction.preferences),
        family_members=pick(overrides.family_members, extraction.family_members),
        seedlings=pick(overrides.seedlings, extraction.seedlings),
        interaction_summary=pick(overrides.interaction_summary, extraction.interaction_summary),
        interaction_type=pick(overrides.interaction_type, extraction.interaction_type),
        interaction_date=pick(overrides.interaction_date, extraction.interaction_date),
    )


@dataclass
class MergeResult:
    """Outcome of a merge, previewed or committed.

    Attributes:
        is_new_contact: True if the merge creates a contact.
        contact_id: Target contact id, None for a new contact in a preview.
        contact_name: Name of the target contact.
        summary: Human-readable description of the changes.
        updates: Counts of new preferences, familyMembers, seedlings.
        interaction_recorded: Whether an interaction is (or would be) logged.
        location_updated: Whether the stored location is (or would be) changed.
        skipped: Duplicates dropped per kind.
        dry_run: True for previews.
        extraction: The extraction after overrides were applied.
        existing_contact: id, name and location of the matched contact.
    """

    is_new_contact: bool
    contact_id: int | None
    contact_name: str
    summary: str
    updates: dict[str, int] = field(default_factory=dict)
    interaction_recorded: bool = False
    location_updated: bool = False
    skipped: dict[str, int] = field(default_factory=dict)
    dry_run: bool = False
    extraction: Extraction = field(default_factory=Extraction)
    existing_contact: dict[str, Any] | None = None

    @property
    def changed(self) -> bool:
        """True if the merge adds or changes anything."""
        return (
            self.is_new_contact
            or self.interaction_recorded
            or self.location_updated
            or any(self.updates.values())
        )

    def to_dict(self) -> dict[str, Any]:
        """Render the preview or commit response."""
        if self.dry_run:
            return {
                "success": True,
                "preview": True,
                "extraction": self.extraction.to_dict(),
                "existingContact": self.existing_contact,
                "isNewContact": self.is_new_contact,
                "summary": self.summary,
                "updates": {
                    **self.updates,
                    "interaction": self.interaction_recorded,
                    "location": self.location_updated,
                },
                "skipped": dict(self.skipped),
            }
        return {
            "success": True,
            "contactId": self.contact_id,
            "isNewContact": self.is_new_contact,
            "summary": self.summary,
            "updates": {
                **self.updates,
                "interaction": self.interaction_recorded,
                "location": self.location_updated,
            },
            "skipped": dict(self.skipped),
        }


def build_summary(is_new_contact: bool, name: str, changeset: ContactChangeSet) -> str:
    """Describe a change set, e.g. 'Updated Mia, 1 preference(s), interaction logged'."""
    parts = [f"Created new contact: {name}" if is_new_contact else f"Updated {name}"]
    if changeset.preferences:
        parts.append(f"{len(changeset.preferences)} preference(s)")
    if changeset.family_members:
        parts.append(f"{len(changeset.family_members)} family member(s)")
    if changeset.seedlings:
        parts.append(f"{len(changeset.seedlings)} seedling(s)")
    if changeset.interactions:
        parts.append("interaction logged")
    if "location" in changeset.contact_updates:
        parts.append("location updated")
    return ", ".join(parts)


class ContactMergeEngine:
    """Merges extractions into contacts, as a preview or a commit.

    Duplicate facts are dropped silently (and counted in ``skipped``);
    interactions are never deduplicated.
    """

    def __init__(
        self,
        store: ContactStore,
        default_cadence: Cadence = Cadence.REGULARLY,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the engine.

        Args:
            store: Persistence for contacts and children.
            default_cadence: Cadence for contacts created by a merge.
            clock: Source of the current time.
        """
        self.store = store
        self.default_cadence = default_cadence
        self.clock = clock

    def resolve_target(self, name: str, target_id: int | None = None) -> Contact | None:
        """Find the contact a merge applies to.

        An explicit id wins; otherwise the name is matched case-insensitively.

        Raises:
            NotFoundError: If target_id does not resolve to a stored contact.
        """
        if target_id is not None:
            return self.store.get_contact(target_id)
        return self.store.find_by_name(name)

    def merge(
        self,
        extraction: NormalizedExtraction,
        target_id: int | None = None,
        overrides: Extraction | None = None,
        dry_run: bool = False,
    ) -> MergeResult:
        """Merge an extraction into a new or existing contact.

        Args:
            extraction: A normalized extraction.
            target_id: Explicit contact to merge into.
            overrides: User corrections taking precedence over the extraction.
            dry_run: If True, compute the result without writing anything.

        Returns:
            MergeResult describing the (would-be) changes.

        Raises:
            ValidationError: If overrides blank out the contact name.
            NotFoundError: If target_id does not resolve to a stored contact.
            PersistenceError: If the commit failed and was rolled back.
        """
        resolved = resolve_overrides(extraction.source, overrides)

        # Validates the resolved name before touching the store
        name = normalize(resolved).contact_name
        target = self.resolve_target(name, target_id)
        normalized = normalize(resolved, target)

        changeset = self.plan(normalized, target, overrides)
        is_new = target is None
        contact_name = normalized.contact_name if is_new else target.name
        existing = (
            None
            if is_new
            else {"id": target.id, "name": target.name, "location": target.location}
        )

        contact_id = None if is_new else target.id
        if not dry_run and changeset.has_changes:
            stored = self.store.apply_changeset(changeset)
            contact_id = stored.id
            logger.debug("Committed merge into contact %s", contact_id)

        return MergeResult(
            is_new_contact=is_new,
            contact_id=contact_id,
            contact_name=contact_name,
            summary=build_summary(is_new, contact_name, changeset),
            updates={
                "preferences": len(changeset.preferences),
                "familyMembers": len(changeset.family_members),
                "seedlings": len(changeset.seedlings),
            },
            interaction_recorded=bool(changeset.interactions),
            location_updated="location" in changeset.contact_updates,
            skipped=dict(normalized.skipped),
            dry_run=dry_run,
            extraction=resolved,
            existing_contact=existing,
        )

    def plan(
        self,
        normalized: NormalizedExtraction,
        target: Contact | None,
        overrides: Extraction | None = None,
    ) -> ContactChangeSet:
        """Work out the writes a merge implies, without applying them.

        Args:
            normalized: Extraction already deduplicated against target.
            target: Existing contact, or None to create one.
            overrides: Used to tell whether the location was set explicitly.
        """
        now = self.clock()

        if target is None:
            contact = Contact(
                name=normalized.contact_name,
                location=normalized.location,
                cadence=self.default_cadence,
            )
            updates: dict[str, Any] = {}
        else:
            contact = target
            updates = self._contact_updates(normalized, target, overrides)

        interactions = []
        if normalized.interaction is not None:
            interactions.append(
                Interaction(
                    type=normalized.interaction.type,
                    summary=normalized.interaction.summary,
                    date=normalized.interaction.date or now,
                )
            )

        return ContactChangeSet(
            contact=contact,
            contact_updates=updates,
            preferences=[
                Preference(category=p.category, content=p.content)
                for p in normalized.preferences
            ],
            family_members=[
                FamilyMember(name=m.name, relation=m.relation)
                for m in normalized.family_members
            ],
            seedlings=[Seedling(content=s, created_at=now) for s in normalized.seedlings],
            interactions=interactions,
            touched_at=now,
        )

    def _contact_updates(
        self,
        normalized: NormalizedExtraction,
        target: Contact,
        overrides: Extraction | None,
    ) -> dict[str, Any]:
        """Column changes for an existing contact.

        Extracted locations only fill a blank; an overridden location
        always replaces the stored one.
        """
        location_overridden = overrides is not None and overrides.location is not None
        if location_overridden:
            if normalized.location != target.location:
                return {"location": normalized.location}
            return {}
        if normalized.location and not target.location:
            return {"location": normalized.location}
        return {}
