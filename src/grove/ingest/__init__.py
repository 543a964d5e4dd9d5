"""Ingestion of notes into contacts: extraction, normalization and merge."""

from .extractor import ContactExtractor
from .merge import ContactMergeEngine, MergeResult, build_summary, resolve_overrides
from .models import (
    Extraction,
    FamilyMemberCandidate,
    InteractionCandidate,
    NormalizedExtraction,
    PreferenceCandidate,
)
from .normalizer import normalize
from .service import IngestRequest, IngestService

__all__ = [
    "ContactExtractor",
    "ContactMergeEngine",
    "Extraction",
    "FamilyMemberCandidate",
    "IngestRequest",
    "IngestService",
    "InteractionCandidate",
    "MergeResult",
    "NormalizedExtraction",
    "PreferenceCandidate",
    "build_summary",
    "normalize",
    "resolve_overrides",
]
