"""Slot generation from legal provisions.

Builds the slot prompt for a group of provisions, asks the model for a JSON
array of slot definitions and validates each one. Invalid slots are dropped
with a warning; a model failure for the whole group is raised as
``BatchInferenceFailure`` so the orchestrator can isolate it.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Sequence

import structlog
from pydantic import ValidationError

from lexingest.config import CONFIG, PipelineConfig
from lexingest.errors import BatchInferenceFailure, ModelError, SourceNotFound
from lexingest.llm import SLOT_BATCH_PROMPT, SLOT_SYSTEM_PROMPT, LLMClient, complete_with_deadline, extract_json_array
from lexingest.llm.prompts import DOMAIN_FOCUS, format_provisions
from lexingest.models import LegalProvision, LegalSource, SlotDefinition, SlotGenerationResult, utcnow

if TYPE_CHECKING:
    from lexingest.storage import LegalStore

logger = structlog.get_logger(__name__)

MIN_SLOTS = 5
MAX_SLOTS = 15


def average_confidence(slots: Sequence[SlotDefinition]) -> float:
    if not slots:
        return 0.0
    return sum(s.confidence for s in slots) / len(slots)


class SlotGenerator:
    """Turns provisions into validated ``SlotDefinition`` objects."""

    def __init__(
        self,
        client: LLMClient,
        store: LegalStore,
        config: PipelineConfig = CONFIG,
    ) -> None:
        self.client = client
        self.store = store
        self.config = config

    def build_prompt(
        self,
        source: LegalSource,
        provisions: Sequence[LegalProvision],
        domain_slug: str | None = None,
    ) -> str:
        jurisdiction = self.store.get_jurisdiction(source.jurisdiction_code)
        domain_slug = domain_slug or source.legal_domain_slug
        domain = self.store.get_domain(domain_slug) if domain_slug else None
        return SLOT_BATCH_PROMPT.format(
            citation=source.citation,
            title=source.long_title,
            jurisdiction=jurisdiction.name if jurisdiction else source.jurisdiction_code,
            jurisdiction_code=source.jurisdiction_code,
            domain=domain.name if domain else (domain_slug or "General"),
            focus=DOMAIN_FOCUS.format(domain_slug=domain_slug) if domain_slug else "",
            provisions=format_provisions(provisions),
            min_slots=MIN_SLOTS,
            max_slots=MAX_SLOTS,
            source_id=source.id,
            generated_at=utcnow().isoformat(),
            model=self.client.model,
        )

    def parse_slots(self, raw_text: str, source: LegalSource) -> list[SlotDefinition]:
        """Validate each array element; drop the ones that do not fit."""
        slots: list[SlotDefinition] = []
        for i, item in enumerate(extract_json_array(raw_text)):
            if not isinstance(item, dict):
                logger.warning("slots.invalid", index=i, error="not an object")
                continue
            try:
                slot = SlotDefinition.model_validate(_with_source(item, source.id))
            except ValidationError as e:
                logger.warning(
                    "slots.invalid",
                    index=i,
                    slot_key=item.get("slotKey") or item.get("slot_key"),
                    error=str(e).splitlines()[0],
                )
                continue
            slots.append(slot)
        return slots

    async def generate(
        self,
        source: LegalSource,
        provisions: Sequence[LegalProvision],
        domain_slug: str | None = None,
    ) -> list[SlotDefinition]:
        """One model call for ``provisions``. Raises ``ModelError`` subclasses."""
        text = await complete_with_deadline(
            self.client,
            system_prompt=SLOT_SYSTEM_PROMPT,
            user_message=self.build_prompt(source, provisions, domain_slug),
            timeout=self.config.slot_timeout_seconds,
            temperature=self.config.slot_temperature,
            max_tokens=self.config.slot_max_tokens,
        )
        return self.parse_slots(text, source)

    async def generate_for_batch(
        self,
        source: LegalSource,
        provisions: Sequence[LegalProvision],
        batch_index: int,
        domain_slug: str | None = None,
    ) -> list[SlotDefinition]:
        try:
            return await self.generate(source, provisions, domain_slug)
        except ModelError as e:
            raise BatchInferenceFailure(
                batch_index=batch_index,
                provision_numbers=[p.provision_number for p in provisions],
                cause=str(e),
            ) from e

    async def generate_for_source(
        self,
        source_id: str,
        domain_slug: str | None = None,
        max_provisions: int | None = None,
    ) -> SlotGenerationResult:
        """Single-shot generation over the first ``max_provisions`` provisions."""
        source = self.store.get_source(source_id)
        if source is None:
            raise SourceNotFound(source_id)
        provisions = self.store.list_provisions(source_id, in_force_only=True, limit=max_provisions)
        logger.info("slots.generate_start", source_id=source_id, provisions=len(provisions))

        slots = await self.generate(source, provisions, domain_slug)
        confidence = average_confidence(slots)
        logger.info("slots.generated", source_id=source_id, slots=len(slots), confidence=round(confidence, 3))
        return SlotGenerationResult(slots=slots, confidence=confidence, model=self.client.model)


def _with_source(item: dict[str, Any], source_id: str) -> dict[str, Any]:
    """Force the legal basis to point at the real source."""
    item = dict(item)
    basis = item.get("legalBasis") or item.get("legal_basis") or {}
    if not isinstance(basis, dict):
        basis = {}
    item.pop("legal_basis", None)
    item["legalBasis"] = {**basis, "sourceId": source_id}
    item["legalBasis"].pop("source_id", None)
    return item
