"""Tests for change detection on stored statutes."""
from __future__ import annotations

from dataclasses import replace

import pytest

from conftest import make_statute, slot_dict
from lexingest.config import CONFIG
from lexingest.errors import FetchBlocked, SourceNotFound
from lexingest.models import SlotDefinition
from lexingest.monitoring import ChangeMonitor, generate_simple_diff
from lexingest.storage import LegalStore


class UrlScraper:
    """Serves a fixed statute (or error) per URL."""

    def __init__(self, pages: dict):
        self.pages = pages
        self.calls: list[str] = []

    async def scrape(self, url: str):
        self.calls.append(url)
        page = self.pages[url]
        if isinstance(page, BaseException):
            raise page
        return page


class RecordingSleep:
    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def test_simple_diff_counts_lines():
    old = "line one\nline two\n\nline three"
    new = "line one\nline two changed\nline three\nline four"
    assert generate_simple_diff(old, new) == "Added: 2 lines, Removed: 1 lines"


class TestCheckSource:
    @pytest.mark.asyncio
    async def test_unchanged_source_records_nothing(self, store: LegalStore):
        statute = make_statute()
        source = store.upsert_source(statute, "CA-ON").source
        monitor = ChangeMonitor(UrlScraper({statute.url: statute}), store)

        result = await monitor.check_source(source.id)

        assert not result.has_changes
        assert result.diff is None
        assert store.pending_changes() == []

    @pytest.mark.asyncio
    async def test_changed_source_records_detection_with_affected_slots(self, store: LegalStore):
        statute = make_statute()
        source = store.upsert_source(statute, "CA-ON").source
        store.save_slots([SlotDefinition.model_validate(slot_dict("ON_a"))], source)
        amended = make_statute(text_prefix="Amended text")
        monitor = ChangeMonitor(UrlScraper({statute.url: amended}), store)

        result = await monitor.check_source(source.id)

        assert result.has_changes
        assert result.diff == "Added: 4 lines, Removed: 4 lines"
        [change] = store.pending_changes()
        assert change.legal_source_id == source.id
        assert change.detection_type == "amendment"
        assert change.detected_by == "automated-monitor"
        assert change.confidence_score == 0.85
        assert change.affected_slot_ids == [s.id for s in store.existing_slots_for_source(source.id)]

    @pytest.mark.asyncio
    async def test_unknown_source(self, store: LegalStore):
        with pytest.raises(SourceNotFound):
            await ChangeMonitor(UrlScraper({}), store).check_source("missing")


class TestCheckAllSources:
    @pytest.mark.asyncio
    async def test_collects_errors_and_pauses_between_checks(self, store: LegalStore):
        a = make_statute(citation="A", url="https://laws.example/a")
        b = make_statute(citation="B", url="https://laws.example/b")
        c = make_statute(citation="C", url="https://laws.example/c")
        for statute in (a, b, c):
            store.upsert_source(statute, "CA-ON")
        scraper = UrlScraper(
            {
                a.url: a,
                b.url: FetchBlocked(url=b.url),
                c.url: make_statute(citation="C", url=c.url, text_prefix="Changed"),
            }
        )
        sleep = RecordingSleep()
        monitor = ChangeMonitor(scraper, store, replace(CONFIG, monitor_delay=5.0), sleep=sleep)

        summary = await monitor.check_all_sources()

        assert summary.checked == 2
        assert summary.unchanged == 1
        assert summary.changed == 1
        assert len(summary.errors) == 1 and summary.errors[0].startswith("B: ")
        assert sleep.calls == [5.0, 5.0]
