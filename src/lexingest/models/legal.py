"""Legal source, provision, domain and scrape-output models."""
from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


def new_id() -> str:
    return uuid4().hex


def utcnow() -> datetime:
    return datetime.now(UTC)


class Jurisdiction(BaseModel):
    """An owning jurisdiction such as ``CA-ON``."""

    id: str = Field(default_factory=new_id)
    code: str = Field(description="ISO-style jurisdiction code (e.g., 'CA-ON')")
    name: str


class LegalDomain(BaseModel):
    """A legal practice area used to scope relevance and slot generation."""

    id: str = Field(default_factory=new_id)
    slug: str = Field(description="Stable identifier (e.g., 'wrongful-termination')")
    name: str
    description: str | None = None


class ScrapedSection(BaseModel):
    number: str
    heading: str | None = None
    text: str = ""
    order: int = Field(ge=0, description="Zero-based position in the source document")


class ScrapedStatute(BaseModel):
    """Output of one scrape: the statute as the page presented it."""

    citation: str
    long_title: str
    short_title: str | None = None
    full_text: str = ""
    sections: list[ScrapedSection] = Field(default_factory=list)
    url: str

    def to_payload(self) -> dict[str, Any]:
        """Serialize with the external camelCase contract."""
        payload: dict[str, Any] = {
            "citation": self.citation,
            "longTitle": self.long_title,
            "fullText": self.full_text,
            "sections": [
                {k: v for k, v in s.model_dump().items() if v is not None}
                for s in self.sections
            ],
            "url": self.url,
        }
        if self.short_title:
            payload["shortTitle"] = self.short_title
        return payload


class LegalProvision(BaseModel):
    """One addressable section of a legal source."""

    id: str = Field(default_factory=new_id)
    legal_source_id: str
    provision_number: str = Field(description="Statute-scoped number, e.g. '54' or '5(1)'")
    heading: str | None = None
    provision_text: str = ""
    sort_order: int = Field(ge=0)
    version_number: int = 1
    in_force: bool = True


class LegalSource(BaseModel):
    """One statute or regulation instance."""

    id: str = Field(default_factory=new_id)
    citation: str
    long_title: str
    short_title: str | None = None
    full_text: str = ""
    official_url: str | None = None
    source_type: str = "statute"
    scraped_at: datetime | None = None
    ai_processed: bool = False
    ai_processed_at: datetime | None = None
    created_by: str = "ai-scraper"
    version_number: int = 1
    in_force: bool = True
    jurisdiction_code: str
    legal_domain_slug: str | None = None
    content_hash: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ExtractedStatute(BaseModel):
    """Repaired model extraction, before it is tied to a URL."""

    citation: str = Field(min_length=1)
    title: str = Field(min_length=1)
    short_title: str | None = None
    sections: list[ScrapedSection] = Field(default_factory=list)
    full_text: str = ""
