"""Ingestion pipeline: note or image in, preview or committed merge out."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import GroveError, ValidationError
from ..llm_client import ImageData
from ..logging import JSONLLogger, get_logger
from .extractor import ContactExtractor
from .merge import ContactMergeEngine, MergeResult, resolve_overrides
from .models import Extraction
from .normalizer import normalize

logger = logging.getLogger(__name__)


@dataclass
class IngestRequest:
    """A request to ingest a note about a contact.

    Attributes:
        raw_input: Free-text note or voice transcript.
        contact_id: Explicit contact to merge into.
        dry_run: Compute a preview without writing anything.
        overrides: User corrections applied over the extraction.
        image: Optional photo or screenshot to extract from.
        extraction: An extraction already reviewed in a preview; used as-is
            instead of calling the extraction model again.
    """

    raw_input: str = ""
    contact_id: int | None = None
    dry_run: bool = False
    overrides: Extraction | None = None
    image: ImageData | None = None
    extraction: Extraction | None = None

    def needs_extraction(self) -> bool:
        """False when a reviewed extraction or the overrides describe the contact."""
        if self.extraction is not None:
            return False
        if self.image is not None or self.raw_input.strip():
            return True
        return not (self.overrides and self.overrides.contact_name)


class IngestService:
    """Runs extraction, normalization and merge for one request."""

    def __init__(
        self,
        extractor: ContactExtractor,
        engine: ContactMergeEngine,
        event_logger: JSONLLogger | None = None,
    ) -> None:
        self.extractor = extractor
        self.engine = engine
        self.event_logger = event_logger or get_logger()

    async def ingest(self, request: IngestRequest) -> MergeResult:
        """Ingest a note, returning the preview or the committed result.

        Raises:
            ValidationError: If there is nothing to ingest or no name resolves.
            NotFoundError: If request.contact_id does not exist.
            CollaboratorError: If extraction failed.
            PersistenceError: If the commit was rolled back.
        """
        try:
            result = await self._ingest(request)
        except GroveError as e:
            logger.info("Ingestion failed (%s): %s", e.kind, e.message)
            self.event_logger.log_error(
                "ingest_error",
                e,
                contact_id=request.contact_id,
                dry_run=request.dry_run,
            )
            raise

        self.event_logger.log_ingest(
            result.to_dict(),
            dry_run=request.dry_run,
            contact_id=result.contact_id,
        )
        return result

    async def _ingest(self, request: IngestRequest) -> MergeResult:
        if (
            not request.raw_input.strip()
            and request.image is None
            and request.overrides is None
            and request.extraction is None
        ):
            raise ValidationError("rawInput is required")

        extraction = await self._extract(request)

        # Overrides go first so a corrected name can rescue an extraction without one
        resolved = resolve_overrides(extraction, request.overrides)
        normalized = normalize(resolved)

        return self.engine.merge(
            normalized,
            target_id=request.contact_id,
            overrides=request.overrides,
            dry_run=request.dry_run,
        )

    async def _extract(self, request: IngestRequest) -> Extraction:
        if request.extraction is not None:
            return request.extraction
        if not request.needs_extraction():
            return Extraction()
        if request.image is not None:
            return await self.extractor.extract_from_image(
                request.image, context=request.raw_input or None
            )
        return await self.extractor.extract(request.raw_input)
