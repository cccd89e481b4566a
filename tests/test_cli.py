"""Tests for the Typer command line."""
from __future__ import annotations

from pathlib import Path

import pytest
from rich.console import Console
from typer.testing import CliRunner

from conftest import fenced, make_statute, slot_dict
from lexingest import cli
from lexingest.cli import app
from lexingest.errors import FetchBlocked
from lexingest.llm import MockLLMClient


class StubScraper:
    def __init__(self, outcome):
        self.outcome = outcome

    async def scrape(self, url: str):
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


@pytest.fixture
def runner(tmp_path: Path, monkeypatch) -> CliRunner:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LEXINGEST_DATABASE_PATH", str(tmp_path / "cli.db"))
    monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")
    monkeypatch.setattr(cli, "console", Console(width=200))
    return CliRunner()


def invoke(runner: CliRunner, *args: str):
    return runner.invoke(app, list(args), catch_exceptions=False)


class TestDomains:
    def test_seed_then_list(self, runner: CliRunner):
        result = invoke(runner, "domains", "seed")
        assert result.exit_code == 0
        assert "Seeded" in result.output

        result = invoke(runner, "domains", "list")
        assert result.exit_code == 0
        assert "wrongful-termination" in result.output
        assert "police-misconduct" in result.output


class TestUpload:
    def test_template_then_upload(self, runner: CliRunner, tmp_path: Path):
        template = tmp_path / "esa.json"
        assert invoke(runner, "template", str(template)).exit_code == 0

        result = invoke(runner, "upload", str(template), "--domain", "wrongful-termination")

        assert result.exit_code == 0
        assert "Uploaded SO 2000, c 41 with 2 provisions" in result.output

    def test_text_upload_needs_metadata(self, runner: CliRunner, tmp_path: Path):
        path = tmp_path / "act.txt"
        path.write_text("Section 1 - Title\nBody", encoding="utf-8")
        result = invoke(runner, "upload", str(path))
        assert result.exit_code == 1
        assert "--citation" in result.output

    def test_missing_file(self, runner: CliRunner, tmp_path: Path):
        result = invoke(runner, "upload", str(tmp_path / "nope.json"))
        assert result.exit_code == 1
        assert "File not found" in result.output


class TestScrape:
    def test_scrape_stores_statute(self, runner: CliRunner, monkeypatch, tmp_path: Path):
        monkeypatch.setattr(cli, "get_scraper", lambda config: StubScraper(make_statute()))
        invoke(runner, "domains", "seed")
        output = tmp_path / "statute.json"

        result = invoke(runner, "scrape", "EMPLOYMENT_STANDARDS_ACT", "-o", str(output))

        assert result.exit_code == 0
        assert "Created SO 2000, c 41 with 4 provisions" in result.output
        assert "wrongful-termination" in result.output
        assert '"longTitle"' in output.read_text(encoding="utf-8")

    def test_blocked_site_prints_structured_error(self, runner: CliRunner, monkeypatch):
        blocked = FetchBlocked(url="https://www.example.gov/act")
        monkeypatch.setattr(cli, "get_scraper", lambda config: StubScraper(blocked))

        result = invoke(runner, "scrape", "https://www.example.gov/act")

        assert result.exit_code == 1
        assert '"type": "FetchBlocked"' in result.output
        assert "Traceback" not in result.output


class TestProcess:
    def test_nothing_to_process(self, runner: CliRunner, monkeypatch):
        monkeypatch.setattr(cli, "get_llm_client", lambda config, model=None: MockLLMClient())
        result = invoke(runner, "process")
        assert result.exit_code == 0
        assert "No unprocessed legal sources found" in result.output

    def test_processes_most_recent_upload(self, runner: CliRunner, monkeypatch, tmp_path: Path):
        client = MockLLMClient(default=fenced([slot_dict("CA-ON_emp_notice", 0.9)]))
        monkeypatch.setattr(cli, "get_llm_client", lambda config, model=None: client)
        template = tmp_path / "esa.json"
        invoke(runner, "template", str(template))
        invoke(runner, "upload", str(template))

        result = invoke(runner, "process")

        assert result.exit_code == 0
        assert "Source marked as processed" in result.output
        assert len(client.call_history) == 1

    def test_unknown_source_id(self, runner: CliRunner, monkeypatch):
        monkeypatch.setattr(cli, "get_llm_client", lambda config, model=None: MockLLMClient())
        result = invoke(runner, "reprocess", "missing-id")
        assert result.exit_code == 1
        assert '"type": "SourceNotFound"' in result.output


class TestRelevance:
    def test_relevance_for_missing_source(self, runner: CliRunner):
        result = invoke(runner, "relevance", "missing-id")
        assert result.exit_code == 1
        assert '"type": "SourceNotFound"' in result.output

    def test_domain_buckets(self, runner: CliRunner, tmp_path: Path):
        invoke(runner, "domains", "seed")
        template = tmp_path / "esa.json"
        invoke(runner, "template", str(template))
        invoke(runner, "upload", str(template), "--domain", "employment-contracts")

        result = invoke(runner, "relevance")

        assert result.exit_code == 0
        assert "primary" in result.output
        assert "wrong" in result.output


class TestStoreLifecycle:
    """Every command releases its database connection, including on failure."""

    @pytest.fixture
    def opened(self, monkeypatch) -> list:
        stores: list = []
        real_get_store = cli.get_store

        def tracking_get_store(config):
            store = real_get_store(config)
            stores.append(store)
            return store

        monkeypatch.setattr(cli, "get_store", tracking_get_store)
        return stores

    def test_store_closed_after_success(self, runner: CliRunner, opened: list):
        invoke(runner, "domains", "seed")
        result = invoke(runner, "domains", "list")

        assert result.exit_code == 0
        assert len(opened) == 2
        assert all(store._connection is None for store in opened)

    def test_store_closed_after_failed_command(self, runner: CliRunner, monkeypatch, opened: list):
        monkeypatch.setattr(cli, "get_llm_client", lambda config, model=None: MockLLMClient())

        result = invoke(runner, "reprocess", "missing-id")

        assert result.exit_code == 1
        assert len(opened) == 1
        assert opened[0]._connection is None

    def test_store_closed_when_monitoring(self, runner: CliRunner, monkeypatch, opened: list):
        monkeypatch.setattr(cli, "get_scraper", lambda config: StubScraper(make_statute()))

        result = invoke(runner, "monitor", "--pending")

        assert result.exit_code == 0
        assert "0 change(s) awaiting review" in result.output
        assert opened[0]._connection is None
