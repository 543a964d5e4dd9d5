"""Contacts, their child records, storage and derived health."""

from .health import (
    DEFAULT_THRESHOLDS,
    CadenceThresholds,
    HealthStatus,
    contact_health,
    evaluate,
    format_last_contact,
    last_interaction_at,
    rank_contacts,
)
from .models import (
    Cadence,
    Contact,
    FamilyMember,
    Interaction,
    InteractionType,
    Preference,
    PreferenceCategory,
    Seedling,
    SeedlingStatus,
)
from .store import ContactChangeSet, ContactStore

__all__ = [
    "DEFAULT_THRESHOLDS",
    "Cadence",
    "CadenceThresholds",
    "Contact",
    "ContactChangeSet",
    "ContactStore",
    "FamilyMember",
    "HealthStatus",
    "Interaction",
    "InteractionType",
    "Preference",
    "PreferenceCategory",
    "Seedling",
    "SeedlingStatus",
    "contact_health",
    "evaluate",
    "format_last_contact",
    "last_interaction_at",
    "rank_contacts",
]
