"""Batch orchestration of slot generation over a source's provisions.

Large statutes overflow a single model response, so provisions are split
into small groups that run one after another. Each batch succeeds or fails
on its own; slots are saved as soon as their batch succeeds, and the source
is flagged processed only when every batch has slots.
"""
from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Awaitable, Callable, Sequence, TypeVar

import structlog

from lexingest.config import CONFIG, PipelineConfig
from lexingest.errors import BatchInferenceFailure, SourceNotFound
from lexingest.idempotency import fingerprint_batch
from lexingest.models import BatchFailure, BatchResult, LegalProvision, utcnow

from .slots import SlotGenerator

if TYPE_CHECKING:
    from lexingest.storage import LegalStore

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def create_batches(items: Sequence[T], batch_size: int) -> list[list[T]]:
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    return [list(items[i:i + batch_size]) for i in range(0, len(items), batch_size)]


def batch_key(provisions: Sequence[LegalProvision]) -> str:
    return fingerprint_batch(p.id for p in provisions).value


class BatchSlotOrchestrator:
    """Runs slot generation batch by batch and aggregates the outcome."""

    def __init__(
        self,
        store: LegalStore,
        generator: SlotGenerator,
        config: PipelineConfig = CONFIG,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.store = store
        self.generator = generator
        self.config = config
        self._sleep = sleep

    async def process_source(
        self,
        source_id: str,
        domain_slug: str | None = None,
        batch_size: int | None = None,
    ) -> BatchResult:
        """Generate slots for every in-force provision of ``source_id``.

        Raises:
            SourceNotFound: No source with that id
        """
        source = self.store.get_source(source_id)
        if source is None:
            raise SourceNotFound(source_id)

        provisions = self.store.list_provisions(source_id, in_force_only=True)
        batches = create_batches(provisions, batch_size or self.config.batch_size)
        existing = self.store.slots_by_batch(source_id)

        logger.info(
            "batch.start",
            source_id=source_id,
            citation=source.citation,
            provisions=len(provisions),
            batches=len(batches),
        )

        result = BatchResult(source_id=source_id, batches=len(batches))
        confidences: list[float] = []
        ran_one = False

        for index, batch in enumerate(batches):
            key = batch_key(batch)
            numbers = [p.provision_number for p in batch]

            stored = existing.get(key)
            if stored:
                result.batches_skipped += 1
                result.total_slots += len(stored)
                confidences.extend(s.confidence for s in stored)
                logger.info("batch.skipped", index=index, provisions=numbers, slots=len(stored))
                continue

            if ran_one and self.config.inter_batch_delay > 0:
                await self._sleep(self.config.inter_batch_delay)
            ran_one = True

            try:
                slots = await self.generator.generate_for_batch(source, batch, index, domain_slug)
            except BatchInferenceFailure as e:
                result.batches_failed += 1
                result.failures.append(
                    BatchFailure(batch_index=index, provision_numbers=numbers, error=e.cause)
                )
                logger.error("batch.failed", index=index, provisions=numbers, error=e.cause)
                continue

            self.store.save_slots(slots, source, batch_key=key)
            result.batches_succeeded += 1
            result.slots_per_batch.append(len(slots))
            result.total_slots += len(slots)
            confidences.extend(s.confidence for s in slots)
            logger.info("batch.completed", index=index, provisions=numbers, slots=len(slots))

        result.average_confidence = sum(confidences) / len(confidences) if confidences else 0.0
        if not result.failures:
            self.store.mark_processed(source_id)
            result.completed = True
            result.completed_at = utcnow()

        logger.info(
            "batch.finished",
            source_id=source_id,
            total_slots=result.total_slots,
            failed=result.batches_failed,
            skipped=result.batches_skipped,
            average_confidence=round(result.average_confidence, 3),
            completed=result.completed,
        )
        return result

    async def reprocess(
        self,
        source_id: str,
        domain_slug: str | None = None,
        delete_existing: bool = True,
        batch_size: int | None = None,
    ) -> BatchResult:
        """Start over: clear the flag and run every batch again.

        With ``delete_existing`` false the stored definitions are kept and
        upserted (version bumped) by the new run.
        """
        if self.store.get_source(source_id) is None:
            raise SourceNotFound(source_id)
        if delete_existing:
            deleted = self.store.delete_slots_for_source(source_id)
            logger.info("batch.slots_deleted", source_id=source_id, deleted=deleted)
        else:
            self.store.clear_slot_batches(source_id)
        self.store.reset_processed(source_id)
        return await self.process_source(source_id, domain_slug, batch_size)

    async def process_next_unprocessed(
        self,
        domain_slug: str | None = None,
        batch_size: int | None = None,
    ) -> BatchResult | None:
        """Process the most recently created source still awaiting slots."""
        source = self.store.most_recent_unprocessed()
        if source is None:
            logger.info("batch.nothing_to_process")
            return None
        return await self.process_source(source.id, domain_slug, batch_size)

