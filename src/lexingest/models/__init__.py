"""Data models for legal sources, provisions, slots and pipeline results."""

from .legal import (
    ExtractedStatute,
    Jurisdiction,
    LegalDomain,
    LegalProvision,
    LegalSource,
    ScrapedSection,
    ScrapedStatute,
    new_id,
    utcnow,
)
from .results import (
    BatchFailure,
    BatchResult,
    ChangeCheckResult,
    ChangeDetection,
    DomainRelevance,
    IngestionFailure,
    IngestionReport,
    IngestionSummary,
    SlotGenerationResult,
)
from .slots import Importance, LegalBasis, SlotAIMetadata, SlotDefinition, SlotType

__all__ = [
    "BatchFailure",
    "BatchResult",
    "ChangeCheckResult",
    "ChangeDetection",
    "DomainRelevance",
    "ExtractedStatute",
    "Importance",
    "IngestionFailure",
    "IngestionReport",
    "IngestionSummary",
    "Jurisdiction",
    "LegalBasis",
    "LegalDomain",
    "LegalProvision",
    "LegalSource",
    "ScrapedSection",
    "ScrapedStatute",
    "SlotAIMetadata",
    "SlotDefinition",
    "SlotGenerationResult",
    "SlotType",
    "new_id",
    "utcnow",
]
