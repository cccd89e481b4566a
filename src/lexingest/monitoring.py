"""Change detection for stored statutes.

Re-scrapes each monitored source, compares its full text with what is
stored, and records a change detection for human review when they differ.
Scheduling is left to the host (cron, systemd timers); ``lexingest monitor``
runs one pass.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable

import structlog

from lexingest.config import CONFIG, PipelineConfig
from lexingest.errors import PipelineError, SourceNotFound
from lexingest.idempotency import fingerprint_content
from lexingest.models import ChangeCheckResult, ChangeDetection, new_id
from lexingest.scraping import StatuteScraper
from lexingest.storage import LegalStore

logger = structlog.get_logger(__name__)


def generate_simple_diff(old_text: str, new_text: str) -> str:
    """Count non-blank lines present on one side only."""
    old_lines = [line for line in old_text.split("\n") if line.strip()]
    new_lines = [line for line in new_text.split("\n") if line.strip()]
    old_set, new_set = set(old_lines), set(new_lines)
    added = sum(1 for line in new_lines if line not in old_set)
    removed = sum(1 for line in old_lines if line not in new_set)
    return f"Added: {added} lines, Removed: {removed} lines"


@dataclass
class MonitorSummary:
    checked: int = 0
    changed: int = 0
    unchanged: int = 0
    errors: list[str] = field(default_factory=list)


class ChangeMonitor:
    def __init__(
        self,
        scraper: StatuteScraper,
        store: LegalStore,
        config: PipelineConfig = CONFIG,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.scraper = scraper
        self.store = store
        self.config = config
        self._sleep = sleep

    async def check_source(self, source_id: str) -> ChangeCheckResult:
        """Re-scrape one source and record a change detection if it moved."""
        source = self.store.get_source(source_id)
        if source is None or not source.official_url:
            raise SourceNotFound(source_id)

        current = await self.scraper.scrape(source.official_url)
        old_content = source.full_text or ""
        new_content = current.full_text
        has_changes = fingerprint_content(old_content) != fingerprint_content(new_content)

        result = ChangeCheckResult(
            source_id=source.id,
            citation=source.citation,
            has_changes=has_changes,
            old_content=old_content,
            new_content=new_content,
            diff=generate_simple_diff(old_content, new_content) if has_changes else None,
        )

        if has_changes:
            affected = [s.id for s in self.store.existing_slots_for_source(source.id)]
            self.store.record_change(
                ChangeDetection(
                    id=new_id(),
                    legal_source_id=source.id,
                    change_summary=result.diff or "Content has changed",
                    affected_slot_ids=affected,
                ),
                old_content=old_content,
                new_content=new_content,
            )
            logger.warning(
                "monitor.changed",
                source_id=source.id,
                citation=source.citation,
                diff=result.diff,
                affected_slots=len(affected),
            )
        else:
            logger.info("monitor.unchanged", source_id=source.id, citation=source.citation)
        return result

    async def check_all_sources(self) -> MonitorSummary:
        sources = self.store.list_monitored_sources()
        logger.info("monitor.start", sources=len(sources))

        summary = MonitorSummary()
        for i, source in enumerate(sources):
            if i and self.config.monitor_delay > 0:
                await self._sleep(self.config.monitor_delay)
            try:
                result = await self.check_source(source.id)
            except PipelineError as e:
                logger.error("monitor.check_failed", citation=source.citation, error=str(e))
                summary.errors.append(f"{source.citation}: {e}")
                continue
            summary.checked += 1
            if result.has_changes:
                summary.changed += 1
            else:
                summary.unchanged += 1

        logger.info(
            "monitor.finished",
            checked=summary.checked,
            changed=summary.changed,
            unchanged=summary.unchanged,
            errors=len(summary.errors),
        )
        return summary

    def pending_changes(self) -> list[ChangeDetection]:
        return self.store.pending_changes()
