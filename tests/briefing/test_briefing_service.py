"""Tests for BriefingService caching."""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from grove.briefing import BriefingContextAssembler, BriefingNarrator, BriefingService
from grove.contacts import Contact, ContactStore
from grove.errors import CollaboratorError, NotFoundError
from grove.ingest import ContactMergeEngine, Extraction, normalize
from grove.logging import JSONLLogger

BRIEFING_JSON = json.dumps(
    {
        "relationshipSummary": "Mia is a close friend.",
        "recentHighlights": ["Moved to Seattle"],
        "conversationStarters": ["How is Seattle?"],
        "upcomingMilestones": [],
    }
)


class Clock:
    """A settable clock shared by the services under test."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> Clock:
    return Clock(datetime.now(timezone.utc) + timedelta(minutes=1))


@pytest.fixture
def store(tmp_path: Path) -> ContactStore:
    """Create a ContactStore with a temporary database."""
    store = ContactStore(tmp_path / "grove.db")
    store.init_db()
    yield store
    store.close()


@pytest.fixture
def mock_llm() -> AsyncMock:
    """Create a mock LLMClient."""
    llm = AsyncMock()
    llm.model = "test-model"
    llm.complete = AsyncMock(return_value=BRIEFING_JSON)
    return llm


@pytest.fixture
def event_logger(tmp_path: Path) -> JSONLLogger:
    return JSONLLogger(log_dir=tmp_path / "logs")


@pytest.fixture
def service(
    store: ContactStore, mock_llm: AsyncMock, event_logger: JSONLLogger, clock: Clock
) -> BriefingService:
    """Create a BriefingService with a mock LLM."""
    return BriefingService(
        store,
        BriefingContextAssembler(store, clock=clock),
        BriefingNarrator(mock_llm),
        event_logger,
        clock=clock,
    )


def events(event_logger: JSONLLogger) -> list[str]:
    lines = event_logger.log_path.read_text().strip().split("\n")
    return [json.loads(line)["event"] for line in lines]


class TestBrief:
    """Tests for BriefingService.brief."""

    @pytest.mark.asyncio
    async def test_generates_and_caches(
        self, service: BriefingService, store: ContactStore, event_logger: JSONLLogger
    ):
        """The first call generates and stores the briefing."""
        contact = store.create_contact(Contact(name="Mia Chen"))

        briefing, from_cache = await service.brief(contact.id)

        assert from_cache is False
        assert briefing.relationship_summary == "Mia is a close friend."
        stored = store.get_contact(contact.id)
        cached = json.loads(stored.cached_briefing)
        assert cached["relationshipSummary"] == briefing.relationship_summary
        assert events(event_logger) == ["briefing_generated"]

    @pytest.mark.asyncio
    async def test_second_call_uses_cache(
        self, service: BriefingService, store: ContactStore, mock_llm: AsyncMock,
        event_logger: JSONLLogger,
    ):
        """An unchanged contact is served from the cache."""
        contact = store.create_contact(Contact(name="Mia Chen"))

        first, _ = await service.brief(contact.id)
        second, from_cache = await service.brief(contact.id)

        assert from_cache is True
        assert second == first
        assert mock_llm.complete.await_count == 1
        assert events(event_logger) == ["briefing_generated", "briefing_cache_hit"]

    @pytest.mark.asyncio
    async def test_force_refresh(
        self, service: BriefingService, store: ContactStore, mock_llm: AsyncMock
    ):
        """force_refresh bypasses a valid cache."""
        contact = store.create_contact(Contact(name="Mia Chen"))
        await service.brief(contact.id)

        _, from_cache = await service.brief(contact.id, force_refresh=True)

        assert from_cache is False
        assert mock_llm.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_merge_invalidates_cache(
        self, service: BriefingService, store: ContactStore, mock_llm: AsyncMock, clock: Clock
    ):
        """A committed merge after the briefing makes the cache stale."""
        contact = store.create_contact(Contact(name="Mia Chen"))
        await service.brief(contact.id)

        clock.now += timedelta(minutes=5)
        engine = ContactMergeEngine(store, clock=clock)
        extraction = Extraction(contact_name="Mia Chen", seedlings=["Ask about Seattle"])
        engine.merge(normalize(extraction))

        _, from_cache = await service.brief(contact.id)
        assert from_cache is False
        assert mock_llm.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_corrupt_cache_regenerates(
        self, service: BriefingService, store: ContactStore, mock_llm: AsyncMock, clock: Clock
    ):
        """An unreadable cached briefing is regenerated."""
        contact = store.create_contact(Contact(name="Mia Chen"))
        store.save_briefing(contact.id, "{not json", clock.now)

        _, from_cache = await service.brief(contact.id)

        assert from_cache is False
        assert mock_llm.complete.await_count == 1

    @pytest.mark.asyncio
    async def test_missing_contact(
        self, service: BriefingService, mock_llm: AsyncMock, event_logger: JSONLLogger
    ):
        """Unknown contacts raise NotFoundError without a model call, and are logged."""
        with pytest.raises(NotFoundError):
            await service.brief(404)
        mock_llm.complete.assert_not_called()
        assert events(event_logger) == ["briefing_error"]

    @pytest.mark.asyncio
    async def test_failure_not_cached(
        self,
        service: BriefingService,
        store: ContactStore,
        mock_llm: AsyncMock,
        event_logger: JSONLLogger,
    ):
        """A failed briefing leaves no cache behind."""
        contact = store.create_contact(Contact(name="Mia Chen"))
        mock_llm.complete.side_effect = RuntimeError("boom")

        with pytest.raises(CollaboratorError):
            await service.brief(contact.id)

        assert store.get_contact(contact.id).cached_briefing is None
        assert events(event_logger) == ["briefing_error"]
