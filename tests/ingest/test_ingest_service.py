"""Tests for IngestService."""

import json
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from grove.contacts import Contact, ContactStore
from grove.errors import CollaboratorError, NotFoundError, ValidationError
from grove.ingest import (
    ContactExtractor,
    ContactMergeEngine,
    Extraction,
    IngestRequest,
    IngestService,
)
from grove.llm_client import ImageData
from grove.logging import JSONLLogger

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)

MIA_JSON = json.dumps(
    {
        "contactName": "Mia Chen",
        "location": "Boston",
        "preferences": [{"category": "ALWAYS", "content": "coffee"}],
        "interactionSummary": "Coffee catch-up",
    }
)


@pytest.fixture
def store(tmp_path: Path) -> ContactStore:
    """Create a ContactStore with a temporary database."""
    store = ContactStore(tmp_path / "grove.db")
    store.init_db()
    yield store
    store.close()


@pytest.fixture
def mock_llm() -> AsyncMock:
    """Create a mock LLMClient returning Mia's extraction."""
    llm = AsyncMock()
    llm.complete = AsyncMock(return_value=MIA_JSON)
    return llm


@pytest.fixture
def event_logger(tmp_path: Path) -> JSONLLogger:
    """Create a JSONLLogger writing to a temporary directory."""
    return JSONLLogger(log_dir=tmp_path / "logs")


@pytest.fixture
def service(store: ContactStore, mock_llm: AsyncMock, event_logger: JSONLLogger) -> IngestService:
    """Create an IngestService over a real store and a mock LLM."""
    engine = ContactMergeEngine(store, clock=lambda: NOW)
    return IngestService(ContactExtractor(mock_llm), engine, event_logger)


def read_events(event_logger: JSONLLogger) -> list[dict]:
    if not event_logger.log_path.exists():
        return []
    lines = event_logger.log_path.read_text().strip().split("\n")
    return [json.loads(line) for line in lines if line]


class TestIngestCommit:
    """Tests for committing notes."""

    @pytest.mark.asyncio
    async def test_commit_creates_contact(self, service: IngestService, store: ContactStore):
        """A committed note creates the contact."""
        result = await service.ingest(IngestRequest(raw_input="Had coffee with Mia Chen"))

        assert result.is_new_contact is True
        contact = store.get_contact(result.contact_id)
        assert contact.name == "Mia Chen"
        assert contact.location == "Boston"
        assert len(contact.interactions) == 1

    @pytest.mark.asyncio
    async def test_commit_logged(self, service: IngestService, event_logger: JSONLLogger):
        """Commits are logged as ingest_commit."""
        result = await service.ingest(IngestRequest(raw_input="note"))

        events = read_events(event_logger)
        assert events[-1]["event"] == "ingest_commit"
        assert events[-1]["contact_id"] == result.contact_id
        assert events[-1]["extra"]["updates"]["preferences"] == 1

    @pytest.mark.asyncio
    async def test_explicit_contact_id(self, service: IngestService, store: ContactStore):
        """contactId targets that contact."""
        target = store.create_contact(Contact(name="Mia C."))
        result = await service.ingest(IngestRequest(raw_input="note", contact_id=target.id))
        assert result.contact_id == target.id

    @pytest.mark.asyncio
    async def test_unknown_contact_id(
        self, service: IngestService, store: ContactStore, event_logger: JSONLLogger
    ):
        """An unknown contactId raises NotFoundError and logs it."""
        with pytest.raises(NotFoundError):
            await service.ingest(IngestRequest(raw_input="note", contact_id=99))

        assert store.list_contacts() == []
        events = read_events(event_logger)
        assert events[-1]["event"] == "ingest_error"
        assert events[-1]["extra"]["kind"] == "not_found"


class TestIngestPreview:
    """Tests for dry-run previews."""

    @pytest.mark.asyncio
    async def test_preview_writes_nothing(
        self, service: IngestService, store: ContactStore, event_logger: JSONLLogger
    ):
        """A preview returns the payload and persists nothing."""
        result = await service.ingest(IngestRequest(raw_input="note", dry_run=True))

        payload = result.to_dict()
        assert payload["preview"] is True
        assert payload["isNewContact"] is True
        assert payload["existingContact"] is None
        assert payload["extraction"]["location"] == "Boston"
        assert store.list_contacts() == []
        assert read_events(event_logger)[-1]["event"] == "ingest_preview"

    @pytest.mark.asyncio
    async def test_preview_then_commit_reviewed_extraction(
        self, service: IngestService, store: ContactStore, mock_llm: AsyncMock
    ):
        """Committing a reviewed extraction skips the model."""
        preview = await service.ingest(IngestRequest(raw_input="note", dry_run=True))
        result = await service.ingest(IngestRequest(extraction=preview.extraction))

        assert mock_llm.complete.await_count == 1
        assert store.get_contact(result.contact_id).name == "Mia Chen"


class TestIngestOverrides:
    """Tests for overrides through the service."""

    @pytest.mark.asyncio
    async def test_override_location(self, service: IngestService, store: ContactStore):
        """Override location replaces the extracted one."""
        result = await service.ingest(
            IngestRequest(raw_input="note", overrides=Extraction(location="Seattle"))
        )
        assert store.get_contact(result.contact_id).location == "Seattle"

    @pytest.mark.asyncio
    async def test_override_name_rescues_extraction(
        self, service: IngestService, store: ContactStore, mock_llm: AsyncMock
    ):
        """A name from overrides fills in when the model found none."""
        mock_llm.complete.return_value = '{"interactionSummary": "Quick call"}'
        result = await service.ingest(
            IngestRequest(raw_input="note", overrides=Extraction(contact_name="Sam"))
        )
        assert store.get_contact(result.contact_id).name == "Sam"

    @pytest.mark.asyncio
    async def test_overrides_only_skip_model(
        self, service: IngestService, store: ContactStore, mock_llm: AsyncMock
    ):
        """Overrides with a name and no note need no extraction call."""
        result = await service.ingest(
            IngestRequest(overrides=Extraction(contact_name="Sam", seedlings=["Ask about the trip"]))
        )
        mock_llm.complete.assert_not_called()
        contact = store.get_contact(result.contact_id)
        assert [s.content for s in contact.seedlings] == ["Ask about the trip"]


class TestIngestErrors:
    """Tests for failures."""

    @pytest.mark.asyncio
    async def test_empty_request_rejected(self, service: IngestService, mock_llm: AsyncMock):
        """No note, image or overrides is a validation error."""
        with pytest.raises(ValidationError):
            await service.ingest(IngestRequest(raw_input="  "))
        mock_llm.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_name_rejected(
        self, service: IngestService, store: ContactStore, mock_llm: AsyncMock
    ):
        """An extraction without a name is rejected with no writes."""
        mock_llm.complete.return_value = '{"contactName": "  ", "seedlings": ["x"]}'
        with pytest.raises(ValidationError):
            await service.ingest(IngestRequest(raw_input="note"))
        assert store.list_contacts() == []

    @pytest.mark.asyncio
    async def test_collaborator_failure(
        self,
        service: IngestService,
        store: ContactStore,
        mock_llm: AsyncMock,
        event_logger: JSONLLogger,
    ):
        """Extraction failures surface as CollaboratorError."""
        mock_llm.complete.side_effect = TimeoutError("timed out")
        with pytest.raises(CollaboratorError):
            await service.ingest(IngestRequest(raw_input="note", dry_run=True))

        assert store.list_contacts() == []
        event = read_events(event_logger)[-1]
        assert event["event"] == "ingest_error"
        assert event["dry_run"] is True
        assert event["extra"]["kind"] == "collaborator"

    @pytest.mark.asyncio
    async def test_image_request(self, service: IngestService, mock_llm: AsyncMock):
        """Image requests go through image extraction."""
        image = ImageData(base64="aGVsbG8=", mime_type="image/png")
        await service.ingest(IngestRequest(image=image, dry_run=True))
        assert mock_llm.complete.call_args.kwargs["image"] == image


class TestNeedsExtraction:
    """Tests for IngestRequest.needs_extraction."""

    def test_note_needs_extraction(self):
        """A note is always extracted."""
        assert IngestRequest(raw_input="note", overrides=Extraction(contact_name="Sam")).needs_extraction()

    def test_named_overrides_skip(self):
        """Named overrides without a note skip extraction."""
        assert not IngestRequest(overrides=Extraction(contact_name="Sam")).needs_extraction()

    def test_reviewed_extraction_skips(self):
        """A reviewed extraction is never re-extracted."""
        assert not IngestRequest(raw_input="note", extraction=Extraction()).needs_extraction()
