"""Results returned by the relevance engine, orchestrator and monitor."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from .legal import ScrapedStatute, utcnow
from .slots import SlotDefinition


class DomainRelevance(BaseModel):
    """Ephemeral score of one source against one domain."""

    domain_id: str
    domain_slug: str
    domain_name: str
    relevance_score: float = Field(ge=0.0, le=1.0)
    reasoning: str


class BatchFailure(BaseModel):
    batch_index: int
    provision_numbers: list[str] = Field(default_factory=list)
    error: str


class BatchResult(BaseModel):
    """Aggregate of one orchestration run over a source's provisions."""

    source_id: str
    total_slots: int = 0
    batches: int = 0
    batches_succeeded: int = 0
    batches_failed: int = 0
    batches_skipped: int = 0
    slots_per_batch: list[int] = Field(default_factory=list)
    average_confidence: float = 0.0
    failures: list[BatchFailure] = Field(default_factory=list)
    completed: bool = False
    completed_at: datetime | None = None


class SlotGenerationResult(BaseModel):
    slots: list[SlotDefinition] = Field(default_factory=list)
    confidence: float = 0.0
    model: str = ""


class ChangeCheckResult(BaseModel):
    source_id: str
    citation: str
    has_changes: bool
    old_content: str
    new_content: str
    diff: str | None = None


class ChangeDetection(BaseModel):
    id: str
    legal_source_id: str
    detection_type: str = "amendment"
    change_summary: str
    detected_by: str = "automated-monitor"
    confidence_score: float = 0.85
    requires_human_review: bool = True
    human_reviewed: bool = False
    impact_severity: str = "high"
    affected_slot_ids: list[str] = Field(default_factory=list)
    detected_at: datetime = Field(default_factory=utcnow)


class IngestionReport(BaseModel):
    """What one ingestion run produced."""

    source_id: str
    citation: str
    provisions: int
    created: bool
    statute: ScrapedStatute | None = None
    relevant_domains: list[DomainRelevance] = Field(default_factory=list)
    batch_result: BatchResult | None = None


class IngestionFailure(BaseModel):
    url: str
    error: str
    type: str


class IngestionSummary(BaseModel):
    """Outcome of ingesting several URLs one after another."""

    reports: list[IngestionReport] = Field(default_factory=list)
    skipped: list[IngestionFailure] = Field(default_factory=list)
    errors: list[IngestionFailure] = Field(default_factory=list)
