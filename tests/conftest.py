"""Shared fixtures: a temporary store, fake browser sessions and slot payloads."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from lexingest.models import Jurisdiction, LegalDomain, ScrapedSection, ScrapedStatute
from lexingest.storage import LegalStore


# ---------------------- Fake Playwright ----------------------


class FakeResponse:
    def __init__(self, status: int = 200, status_text: str = "OK"):
        self.status = status
        self.status_text = status_text


class FakePage:
    def __init__(self, html: str, status: int = 200, goto_error: Exception | None = None):
        self.html = html
        self.status = status
        self.goto_error = goto_error
        self.goto_calls: list[tuple[str, dict[str, Any]]] = []

    async def goto(self, url: str, **kwargs: Any) -> FakeResponse:
        self.goto_calls.append((url, kwargs))
        if self.goto_error is not None:
            raise self.goto_error
        return FakeResponse(self.status, "Forbidden" if self.status == 403 else "OK")

    async def content(self) -> str:
        return self.html


class FakeContext:
    def __init__(self, page: FakePage):
        self.page = page
        self.init_scripts: list[str] = []

    async def add_init_script(self, script: str) -> None:
        self.init_scripts.append(script)

    async def new_page(self) -> FakePage:
        return self.page


class FakeBrowser:
    def __init__(self, page: FakePage, context_error: Exception | None = None):
        self.context = FakeContext(page)
        self.context_kwargs: dict[str, Any] = {}
        self.context_error = context_error
        self.closed = False

    async def new_context(self, **kwargs: Any) -> FakeContext:
        self.context_kwargs = kwargs
        if self.context_error is not None:
            raise self.context_error
        return self.context

    async def close(self) -> None:
        self.closed = True


class FakeChromium:
    def __init__(
        self,
        page: FakePage,
        launch_error: Exception | None = None,
        context_error: Exception | None = None,
    ):
        self.browsers: list[FakeBrowser] = []
        self._page = page
        self._launch_error = launch_error
        self._context_error = context_error
        self.launch_kwargs: dict[str, Any] = {}

    async def launch(self, **kwargs: Any) -> FakeBrowser:
        self.launch_kwargs = kwargs
        if self._launch_error is not None:
            raise self._launch_error
        browser = FakeBrowser(self._page, self._context_error)
        self.browsers.append(browser)
        return browser


class FakePlaywright:
    """Stands in for ``async_playwright()``; usable as an async context manager."""

    def __init__(self, page: FakePage, **errors: Exception):
        self.chromium = FakeChromium(page, **errors)

    async def __aenter__(self) -> FakePlaywright:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


# ---------------------- Builders ----------------------


def make_statute(
    citation: str = "SO 2000, c 41",
    long_title: str = "Employment Standards Act, 2000",
    sections: int = 4,
    url: str = "https://www.ontario.ca/laws/statute/00e41",
    text_prefix: str = "Provision text",
) -> ScrapedStatute:
    secs = [
        ScrapedSection(number=str(50 + i), heading=f"Heading {i}", text=f"{text_prefix} {i}", order=i)
        for i in range(sections)
    ]
    return ScrapedStatute(
        citation=citation,
        long_title=long_title,
        short_title="ESA",
        full_text="\n\n".join(s.text for s in secs),
        sections=secs,
        url=url,
    )


def slot_dict(key: str, confidence: float = 0.9, slot_type: str = "input", **extra: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "slotKey": key,
        "slotName": key.replace("_", " ").title(),
        "description": "A fact that changes the outcome.",
        "slotType": slot_type,
        "dataType": "text",
        "importance": "HIGH",
        "requiredFor": [],
        "legalBasis": {"sourceId": "model-invented", "provisionIds": [], "citationText": "s. 54"},
        "validation": {"required": True},
        "ui": {"component": "text", "label": "Question?"},
        "ai": {"confidence": confidence, "model": "mock-model", "humanReviewed": False},
    }
    if slot_type in ("calculated", "outcome"):
        data["calculation"] = {"formula": "a + b"}
    data.update(extra)
    return data


def fenced(slots: list[dict[str, Any]]) -> str:
    return "Here are the slots:\n```json\n" + json.dumps(slots, indent=2) + "\n```"


# ---------------------- Fixtures ----------------------


@pytest.fixture
def store(tmp_path: Path) -> LegalStore:
    s = LegalStore(tmp_path / "lexingest.db")
    s.save_jurisdiction(Jurisdiction(code="CA-ON", name="Ontario"))
    yield s
    s.close()


@pytest.fixture
def domains(store: LegalStore) -> list[LegalDomain]:
    for slug, name in [
        ("wrongful-termination", "Wrongful Termination"),
        ("employment-contracts", "Employment Contracts"),
        ("landlord-tenant-residential", "Landlord and Tenant"),
        ("child-support", "Child Support"),
    ]:
        store.save_domain(LegalDomain(slug=slug, name=name))
    return store.list_domains()
