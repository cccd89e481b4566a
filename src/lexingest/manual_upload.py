"""Manual statute upload for sites that block automated access.

Accepts a structured JSON file (see ``write_template``) or a plain text
file split into sections on header lines such as ``Section 5``, ``54.`` or
``57 - Period of notice``.
"""
from __future__ import annotations

import json
import re
from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from lexingest.models import LegalSource, ScrapedSection, ScrapedStatute
from lexingest.storage import LegalStore

logger = structlog.get_logger(__name__)

CREATED_BY = "manual-upload"
UPLOADER_VERSION = "manual-1.0.0"

SECTION_HEADER_RE = re.compile(r"^(?:Section\s+)?([\d.]+)(?:\s+[-–—]\s+)?(.*)$", re.IGNORECASE)
MAX_HEADER_LENGTH = 200


class ManualSection(BaseModel):
    number: str
    heading: str | None = None
    text: str = ""


class ManualStatuteData(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    citation: str = Field(min_length=1)
    long_title: str = Field(min_length=1)
    short_title: str | None = None
    url: str
    sections: list[ManualSection] = Field(default_factory=list)

    def to_statute(self) -> ScrapedStatute:
        return ScrapedStatute(
            citation=self.citation,
            long_title=self.long_title,
            short_title=self.short_title,
            full_text="\n\n".join(s.text for s in self.sections),
            sections=[
                ScrapedSection(number=s.number, heading=s.heading, text=s.text, order=i)
                for i, s in enumerate(self.sections)
            ],
            url=self.url,
        )


def parse_text_into_sections(text: str) -> list[ManualSection]:
    """Split plain statute text on section header lines.

    Lines before the first header are ignored, as are headers with no body.
    """
    sections: list[ManualSection] = []
    current: ManualSection | None = None

    for line in text.split("\n"):
        trimmed = line.strip()
        match = SECTION_HEADER_RE.match(trimmed) if trimmed else None
        if match and len(trimmed) < MAX_HEADER_LENGTH:
            if current and current.text.strip():
                sections.append(current)
            number, heading = match.groups()
            current = ManualSection(number=number.strip().rstrip(".") or number, heading=heading.strip() or None)
        elif current is not None:
            current.text += line + "\n"

    if current and current.text.strip():
        sections.append(current)

    for section in sections:
        section.text = section.text.strip()
    return sections


class StatuteUploader:
    def __init__(self, store: LegalStore) -> None:
        self.store = store

    def upload(
        self,
        data: ManualStatuteData,
        jurisdiction_code: str,
        domain_slug: str | None = None,
    ) -> LegalSource:
        statute = data.to_statute()
        result = self.store.upsert_source(statute, jurisdiction_code, domain_slug, created_by=CREATED_BY)
        self.store.record_job(
            "manual_upload",
            data.url,
            jurisdiction_code,
            domain_slug,
            items=len(statute.sections),
            scraper_version=UPLOADER_VERSION,
        )
        logger.info(
            "upload.completed",
            source_id=result.source.id,
            citation=data.citation,
            provisions=len(statute.sections),
            created=result.created,
        )
        return result.source

    def upload_json(
        self,
        path: Path | str,
        jurisdiction_code: str,
        domain_slug: str | None = None,
    ) -> LegalSource:
        logger.info("upload.reading", path=str(path), format="json")
        data = ManualStatuteData.model_validate_json(Path(path).read_text(encoding="utf-8"))
        return self.upload(data, jurisdiction_code, domain_slug)

    def upload_text(
        self,
        path: Path | str,
        jurisdiction_code: str,
        *,
        citation: str,
        long_title: str,
        url: str,
        short_title: str | None = None,
        domain_slug: str | None = None,
    ) -> LegalSource:
        logger.info("upload.reading", path=str(path), format="text")
        sections = parse_text_into_sections(Path(path).read_text(encoding="utf-8"))
        data = ManualStatuteData(
            citation=citation,
            long_title=long_title,
            short_title=short_title,
            url=url,
            sections=sections,
        )
        return self.upload(data, jurisdiction_code, domain_slug)


TEMPLATE = {
    "citation": "SO 2000, c 41",
    "longTitle": "Employment Standards Act, 2000",
    "shortTitle": "ESA",
    "url": "https://www.ontario.ca/laws/statute/00e41",
    "sections": [
        {
            "number": "54",
            "heading": "Notice of termination",
            "text": (
                "No employer shall terminate the employment of an employee who has been "
                "continuously employed for three months or more unless the employer gives "
                "the employee written notice of termination..."
            ),
        },
        {
            "number": "57",
            "heading": "Period of notice",
            "text": "The period of notice required under section 54 shall be determined as follows...",
        },
    ],
}


def write_template(path: Path | str) -> Path:
    """Write an example JSON file to fill in and pass to ``upload_json``."""
    path = Path(path)
    path.write_text(json.dumps(TEMPLATE, indent=2), encoding="utf-8")
    logger.info("upload.template_written", path=str(path))
    return path
