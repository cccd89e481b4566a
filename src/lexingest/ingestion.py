"""End-to-end ingestion of one statute URL.

fetch -> extract -> persist (upsert by citation) -> optional relevance
linking -> optional slot generation. Each step is a separate fallible call;
idempotency comes from the citation upsert and the processed flag rather
than from a transaction spanning the steps.
"""
from __future__ import annotations

from typing import Iterable

import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from lexingest import __version__
from lexingest.analysis import RelevanceEngine
from lexingest.config import CONFIG, PipelineConfig
from lexingest.errors import FetchBlocked, FetchTimeout, PipelineError, error_payload
from lexingest.models import IngestionFailure, IngestionReport, IngestionSummary, ScrapedStatute
from lexingest.processing import BatchSlotOrchestrator
from lexingest.scraping import StatuteScraper
from lexingest.storage import LegalStore

logger = structlog.get_logger(__name__)


class IngestionCoordinator:
    """Composes the scraper, store, relevance engine and orchestrator."""

    def __init__(
        self,
        scraper: StatuteScraper,
        store: LegalStore,
        relevance_engine: RelevanceEngine | None = None,
        orchestrator: BatchSlotOrchestrator | None = None,
        config: PipelineConfig = CONFIG,
    ) -> None:
        self.scraper = scraper
        self.store = store
        self.relevance_engine = relevance_engine or RelevanceEngine()
        self.orchestrator = orchestrator
        self.config = config

    async def _scrape_with_retry(self, url: str) -> ScrapedStatute:
        """Retry navigation timeouts; a blocked site fails on the first try."""

        @retry(
            reraise=True,
            stop=stop_after_attempt(max(1, self.config.fetch_attempts)),
            wait=wait_exponential_jitter(
                initial=self.config.fetch_backoff_initial,
                max=self.config.fetch_backoff_max,
                jitter=self.config.fetch_backoff_initial,
            ),
            retry=retry_if_exception_type(FetchTimeout),
        )
        async def _do() -> ScrapedStatute:
            return await self.scraper.scrape(url)

        return await _do()

    async def ingest(
        self,
        url: str,
        jurisdiction_code: str,
        domain_slug: str | None = None,
        link_domains: bool = True,
        generate_slots: bool = False,
        batch_size: int | None = None,
    ) -> IngestionReport:
        statute = await self._scrape_with_retry(url)
        logger.info(
            "ingest.scraped",
            url=url,
            citation=statute.citation,
            sections=len(statute.sections),
        )

        upsert = self.store.upsert_source(statute, jurisdiction_code, domain_slug)
        self.store.record_job(
            "ai-scrape",
            url,
            jurisdiction_code,
            domain_slug,
            items=len(statute.sections),
            scraper_version=f"lexingest-{__version__}",
        )
        report = IngestionReport(
            source_id=upsert.source.id,
            citation=upsert.source.citation,
            provisions=len(statute.sections),
            created=upsert.created,
            statute=statute,
        )

        if link_domains:
            linked = self.relevance_engine.auto_link(upsert.source, self.store.list_domains())
            report.relevant_domains = linked["domains"]  # type: ignore[assignment]

        if generate_slots:
            if self.orchestrator is None:
                raise PipelineError("Slot generation requested but no orchestrator configured")
            report.batch_result = await self.orchestrator.process_source(
                upsert.source.id, domain_slug, batch_size
            )

        logger.info(
            "ingest.completed",
            source_id=report.source_id,
            citation=report.citation,
            created=report.created,
            relevant_domains=len(report.relevant_domains),
        )
        return report

    async def ingest_many(
        self,
        urls: Iterable[str],
        jurisdiction_code: str,
        domain_slug: str | None = None,
        link_domains: bool = True,
        generate_slots: bool = False,
        batch_size: int | None = None,
    ) -> IngestionSummary:
        """Ingest URLs one by one; a failing URL does not stop the rest."""
        summary = IngestionSummary()
        for url in urls:
            try:
                report = await self.ingest(
                    url, jurisdiction_code, domain_slug, link_domains, generate_slots, batch_size
                )
            except FetchBlocked as e:
                logger.warning("ingest.blocked", url=url, site=e.site)
                summary.skipped.append(_failure(url, e))
                continue
            except PipelineError as e:
                logger.error("ingest.failed", url=url, error=str(e))
                summary.errors.append(_failure(url, e))
                continue
            summary.reports.append(report)
        return summary


def _failure(url: str, exc: BaseException) -> IngestionFailure:
    payload = error_payload(exc)
    return IngestionFailure(url=url, error=payload["error"], type=payload["type"])
