"""Tests for end-to-end ingestion with a scripted scraper."""
from __future__ import annotations

from dataclasses import replace

import pytest

from conftest import fenced, make_statute, slot_dict
from lexingest.config import CONFIG
from lexingest.errors import FetchBlocked, FetchTimeout, MalformedModelResponse, PipelineError
from lexingest.ingestion import IngestionCoordinator
from lexingest.llm import MockLLMClient
from lexingest.processing import BatchSlotOrchestrator, SlotGenerator
from lexingest.storage import LegalStore

URL = "https://www.ontario.ca/laws/statute/00e41"
NO_WAIT = replace(CONFIG, fetch_attempts=3, fetch_backoff_initial=0.0, fetch_backoff_max=0.0, inter_batch_delay=0.0)


class ScriptedScraper:
    """Returns (or raises) the scripted outcomes in order, one per scrape."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.urls: list[str] = []

    async def scrape(self, url: str):
        self.urls.append(url)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def coordinator(store: LegalStore, scraper, orchestrator=None) -> IngestionCoordinator:
    return IngestionCoordinator(scraper, store, orchestrator=orchestrator, config=NO_WAIT)


class TestIngest:
    @pytest.mark.asyncio
    async def test_persists_source_and_links_domains(self, store: LegalStore, domains):
        scraper = ScriptedScraper(make_statute())

        report = await coordinator(store, scraper).ingest(URL, "CA-ON", "wrongful-termination")

        assert report.created
        assert report.citation == "SO 2000, c 41"
        assert report.provisions == 4
        assert {d.domain_slug for d in report.relevant_domains} == {"wrongful-termination", "employment-contracts"}
        assert store.get_source(report.source_id).legal_domain_slug == "wrongful-termination"
        assert report.batch_result is None

    @pytest.mark.asyncio
    async def test_reingesting_same_citation_updates(self, store: LegalStore):
        scraper = ScriptedScraper(make_statute())
        first = await coordinator(store, scraper).ingest(URL, "CA-ON")
        second = await coordinator(store, scraper).ingest(URL, "CA-ON")

        assert not second.created
        assert second.source_id == first.source_id
        assert len(store.list_sources()) == 1

    @pytest.mark.asyncio
    async def test_linking_can_be_skipped(self, store: LegalStore, domains):
        report = await coordinator(store, ScriptedScraper(make_statute())).ingest(URL, "CA-ON", link_domains=False)
        assert report.relevant_domains == []

    @pytest.mark.asyncio
    async def test_timeout_is_retried(self, store: LegalStore):
        scraper = ScriptedScraper(FetchTimeout(url=URL), make_statute())

        report = await coordinator(store, scraper).ingest(URL, "CA-ON")

        assert report.created
        assert len(scraper.urls) == 2

    @pytest.mark.asyncio
    async def test_timeouts_give_up_after_configured_attempts(self, store: LegalStore):
        scraper = ScriptedScraper(FetchTimeout(url=URL))

        with pytest.raises(FetchTimeout):
            await coordinator(store, scraper).ingest(URL, "CA-ON")
        assert len(scraper.urls) == 3

    @pytest.mark.asyncio
    async def test_blocked_site_is_not_retried(self, store: LegalStore):
        scraper = ScriptedScraper(FetchBlocked(url=URL))

        with pytest.raises(FetchBlocked):
            await coordinator(store, scraper).ingest(URL, "CA-ON")
        assert len(scraper.urls) == 1
        assert store.list_sources() == []

    @pytest.mark.asyncio
    async def test_generates_slots_when_asked(self, store: LegalStore):
        client = MockLLMClient(default=fenced([slot_dict("ON_a", 0.9)]))
        orchestrator = BatchSlotOrchestrator(store, SlotGenerator(client, store, NO_WAIT), NO_WAIT)

        report = await coordinator(store, ScriptedScraper(make_statute(sections=2)), orchestrator).ingest(
            URL, "CA-ON", generate_slots=True
        )

        assert report.batch_result.completed
        assert report.batch_result.total_slots == 1
        assert store.get_source(report.source_id).ai_processed

    @pytest.mark.asyncio
    async def test_slot_generation_without_orchestrator_fails(self, store: LegalStore):
        with pytest.raises(PipelineError):
            await coordinator(store, ScriptedScraper(make_statute())).ingest(URL, "CA-ON", generate_slots=True)


class TestIngestMany:
    @pytest.mark.asyncio
    async def test_blocked_urls_are_skipped_and_errors_collected(self, store: LegalStore):
        scraper = ScriptedScraper(
            make_statute(citation="A"),
            FetchBlocked(url="https://blocked.example/act"),
            MalformedModelResponse("AI did not return valid JSON"),
            make_statute(citation="B"),
        )

        summary = await coordinator(store, scraper).ingest_many(
            ["https://a.example", "https://blocked.example/act", "https://c.example", "https://b.example"],
            "CA-ON",
        )

        assert [r.citation for r in summary.reports] == ["A", "B"]
        assert [s.url for s in summary.skipped] == ["https://blocked.example/act"]
        assert summary.skipped[0].type == "FetchBlocked"
        assert summary.errors[0].type == "MalformedModelResponse"
        assert summary.errors[0].url == "https://c.example"
