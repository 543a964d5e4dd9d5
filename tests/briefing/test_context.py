"""Tests for BriefingContextAssembler."""

from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

from grove.briefing import MAX_INTERACTIONS, BriefingContextAssembler
from grove.contacts import (
    Cadence,
    Contact,
    ContactChangeSet,
    ContactStore,
    FamilyMember,
    HealthStatus,
    Interaction,
    InteractionType,
    Preference,
    PreferenceCategory,
    Seedling,
    SeedlingStatus,
)
from grove.errors import NotFoundError

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(tmp_path: Path) -> ContactStore:
    """Create a ContactStore with a temporary database."""
    store = ContactStore(tmp_path / "grove.db")
    store.init_db()
    yield store
    store.close()


@pytest.fixture
def assembler(store: ContactStore) -> BriefingContextAssembler:
    """Create an assembler with a fixed clock."""
    return BriefingContextAssembler(store, clock=lambda: NOW)


def add_contact(store: ContactStore, interactions: int = 0, **fields) -> Contact:
    return store.apply_changeset(
        ContactChangeSet(
            contact=Contact(name=fields.pop("name", "Mia Chen"), **fields),
            interactions=[
                Interaction(InteractionType.CALL, f"call {n}", date=NOW - timedelta(days=n))
                for n in range(interactions)
            ],
            touched_at=NOW,
        )
    )


class TestAssemble:
    """Tests for assemble."""

    def test_caps_at_twenty_newest_first(
        self, assembler: BriefingContextAssembler, store: ContactStore
    ):
        """25 interactions yield exactly the 20 most recent, newest first."""
        contact = add_contact(store, interactions=25)

        context = assembler.assemble(contact.id)

        assert len(context.interactions) == MAX_INTERACTIONS == 20
        assert [i.summary for i in context.interactions] == [f"call {n}" for n in range(20)]
        dates = [i.date for i in context.interactions]
        assert dates == sorted(dates, reverse=True)

    def test_limit_never_exceeds_twenty(self, store: ContactStore):
        """A larger configured limit is still capped."""
        assembler = BriefingContextAssembler(store, interaction_limit=50, clock=lambda: NOW)
        contact = add_contact(store, interactions=25)
        assert len(assembler.assemble(contact.id).interactions) == 20

    def test_smaller_limit(self, store: ContactStore):
        """A smaller configured limit is honored."""
        assembler = BriefingContextAssembler(store, interaction_limit=5, clock=lambda: NOW)
        contact = add_contact(store, interactions=8)
        assert len(assembler.assemble(contact.id).interactions) == 5

    def test_invalid_limit(self, store: ContactStore):
        """A limit below one is rejected."""
        with pytest.raises(ValueError):
            BriefingContextAssembler(store, interaction_limit=0)

    def test_missing_contact(self, assembler: BriefingContextAssembler):
        """Unknown contacts raise NotFoundError."""
        with pytest.raises(NotFoundError):
            assembler.assemble(404)

    def test_children_and_identity(
        self, assembler: BriefingContextAssembler, store: ContactStore
    ):
        """Active seedlings, split preferences and family are included."""
        contact = store.apply_changeset(
            ContactChangeSet(
                contact=Contact(
                    name="Mia Chen",
                    location="Seattle",
                    birthday=date(1990, 6, 20),
                    cadence=Cadence.OFTEN,
                ),
                preferences=[
                    Preference(PreferenceCategory.ALWAYS, "coffee"),
                    Preference(PreferenceCategory.NEVER, "mornings"),
                ],
                family_members=[FamilyMember("Leo", "son")],
                seedlings=[
                    Seedling("Ask about the move"),
                    Seedling("Send the book", status=SeedlingStatus.PLANTED),
                ],
                touched_at=NOW,
            )
        )

        context = assembler.assemble(contact.id)

        assert context.name == "Mia Chen"
        assert context.location == "Seattle"
        assert context.cadence == Cadence.OFTEN
        assert context.birthday == date(1990, 6, 20)
        assert context.days_until_birthday == 5
        assert [p.content for p in context.always] == ["coffee"]
        assert [p.content for p in context.never] == ["mornings"]
        assert [m.name for m in context.family_members] == ["Leo"]
        assert [s.content for s in context.active_seedlings] == ["Ask about the move"]

    def test_health_never_contacted(
        self, assembler: BriefingContextAssembler, store: ContactStore
    ):
        """A contact with no interactions needs attention."""
        contact = add_contact(store)
        context = assembler.assemble(contact.id)
        assert context.health == HealthStatus.NEEDS_ATTENTION
        assert context.last_interaction_at is None

    def test_health_from_latest_interaction(self, store: ContactStore):
        """Health is derived from the newest interaction."""
        contact = add_contact(store, interactions=1, cadence=Cadence.OFTEN)
        later = NOW + timedelta(days=20)
        assembler = BriefingContextAssembler(store, clock=lambda: later)

        context = assembler.assemble(contact.id)
        assert context.health == HealthStatus.WILTING
        assert context.last_interaction_at == NOW

    def test_assemble_is_read_only(
        self, assembler: BriefingContextAssembler, store: ContactStore
    ):
        """Assembling does not change the contact."""
        contact = add_contact(store, interactions=3)
        assembler.assemble(contact.id)
        assert store.get_contact(contact.id).updated_at == contact.updated_at


class TestToPrompt:
    """Tests for BriefingContext.to_prompt."""

    def test_renders_sections(self, assembler: BriefingContextAssembler, store: ContactStore):
        """Present sections are rendered, empty ones skipped."""
        contact = store.apply_changeset(
            ContactChangeSet(
                contact=Contact(name="Mia Chen", location="Seattle"),
                preferences=[Preference(PreferenceCategory.ALWAYS, "coffee")],
                interactions=[Interaction(InteractionType.MEET, "Lunch", date=NOW)],
                touched_at=NOW,
            )
        )

        text = assembler.assemble(contact.id).to_prompt()

        assert "Contact: Mia Chen" in text
        assert "Location: Seattle" in text
        assert "Relationship health: flourishing" in text
        assert "- coffee" in text
        assert "2024-06-15 (MEET): Lunch" in text
        assert "Things to avoid" not in text
        assert "Birthday" not in text

    def test_no_interactions_note(self, assembler: BriefingContextAssembler, store: ContactStore):
        """A contact without history says so."""
        contact = add_contact(store)
        assert "No interactions recorded yet." in assembler.assemble(contact.id).to_prompt()
