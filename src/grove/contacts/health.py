"""Relationship health derived from cadence and recency of contact.

Health is never stored. It is computed on read by comparing the whole days
elapsed since the last interaction against the cadence's thresholds:

- flourishing: elapsed <= due_days
- needs attention: due_days < elapsed <= overdue_days, or never contacted
- wilting: elapsed > overdue_days
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from .models import Cadence, Contact, Interaction


class HealthStatus(Enum):
    """Derived urgency of a relationship."""

    FLOURISHING = "flourishing"
    NEEDS_ATTENTION = "needs_attention"
    WILTING = "wilting"

    @property
    def rank(self) -> int:
        """0 is the most favorable status, higher is worse."""
        ranks = {
            HealthStatus.FLOURISHING: 0,
            HealthStatus.NEEDS_ATTENTION: 1,
            HealthStatus.WILTING: 2,
        }
        return ranks[self]


@dataclass(frozen=True)
class CadenceThresholds:
    """Day counts after which a relationship is due, then overdue.

    Attributes:
        due_days: Up to this many days since contact the relationship flourishes.
        overdue_days: Past this many days the relationship is wilting.
    """

    due_days: int
    overdue_days: int

    def __post_init__(self) -> None:
        if self.due_days < 0:
            raise ValueError("due_days must be non-negative")
        if self.overdue_days < self.due_days:
            raise ValueError("overdue_days must be at least due_days")


DEFAULT_THRESHOLDS: dict[Cadence, CadenceThresholds] = {
    Cadence.OFTEN: CadenceThresholds(due_days=10, overdue_days=14),
    Cadence.REGULARLY: CadenceThresholds(due_days=30, overdue_days=45),
    Cadence.SELDOMLY: CadenceThresholds(due_days=90, overdue_days=120),
    Cadence.RARELY: CadenceThresholds(due_days=180, overdue_days=365),
}


def elapsed_days(last_interaction_at: datetime, now: datetime) -> int:
    """Whole days between two instants, never negative."""
    return max((now - last_interaction_at).days, 0)


def evaluate(
    cadence: Cadence,
    last_interaction_at: datetime | None,
    now: datetime,
    thresholds: Mapping[Cadence, CadenceThresholds] | None = None,
) -> HealthStatus:
    """Classify a relationship's health.

    Args:
        cadence: Desired contact frequency.
        last_interaction_at: Most recent interaction, None if never contacted.
        now: Evaluation instant.
        thresholds: Threshold table, DEFAULT_THRESHOLDS if None.

    Returns:
        The derived HealthStatus.
    """
    if last_interaction_at is None:
        return HealthStatus.NEEDS_ATTENTION

    table = thresholds or DEFAULT_THRESHOLDS
    limits = table[cadence]
    days = elapsed_days(last_interaction_at, now)

    if days <= limits.due_days:
        return HealthStatus.FLOURISHING
    if days <= limits.overdue_days:
        return HealthStatus.NEEDS_ATTENTION
    return HealthStatus.WILTING


def last_interaction_at(interactions: Iterable[Interaction]) -> datetime | None:
    """Most recent interaction date, or None when there are none."""
    return max((i.date for i in interactions), default=None)


def contact_health(
    contact: Contact,
    now: datetime,
    thresholds: Mapping[Cadence, CadenceThresholds] | None = None,
) -> HealthStatus:
    """Evaluate a contact using its loaded interactions or listing summary."""
    last = contact.last_interaction_at or last_interaction_at(contact.interactions)
    return evaluate(contact.cadence, last, now, thresholds)


def rank_contacts(
    contacts: Iterable[Contact],
    now: datetime,
    status: HealthStatus | None = None,
    thresholds: Mapping[Cadence, CadenceThresholds] | None = None,
) -> list[tuple[Contact, HealthStatus]]:
    """Order contacts least healthy first, optionally keeping one status.

    Within a status, never-contacted people come first, then the longest
    silence.
    """
    evaluated = [(c, contact_health(c, now, thresholds)) for c in contacts]

    if status is not None:
        evaluated = [(c, s) for c, s in evaluated if s == status]

    def sort_key(item: tuple[Contact, HealthStatus]) -> tuple[int, int, float]:
        contact, health = item
        last = contact.last_interaction_at or last_interaction_at(contact.interactions)
        if last is None:
            return (-health.rank, 0, 0.0)
        return (-health.rank, 1, last.timestamp())

    return sorted(evaluated, key=sort_key)


def format_last_contact(last: datetime | None, now: datetime) -> str:
    """Human label like 'Today', '2 weeks ago' or 'Never contacted'."""
    if last is None:
        return "Never contacted"

    days = elapsed_days(last, now)

    if days == 0:
        return "Today"
    if days == 1:
        return "Yesterday"
    if days < 7:
        return f"{days} days ago"
    if days < 30:
        weeks = days // 7
        return f"{weeks} {'week' if weeks == 1 else 'weeks'} ago"
    if days < 365:
        months = days // 30
        return f"{months} {'month' if months == 1 else 'months'} ago"
    years = days // 365
    return f"{years} {'year' if years == 1 else 'years'} ago"
