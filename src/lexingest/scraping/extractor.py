"""Model-assisted structured extraction of statutes from raw HTML.

There are no jurisdiction-specific selectors. The model reads truncated HTML
and answers with JSON; because that JSON is not schema-guaranteed, the
result goes through a fixed repair policy:

1. a missing or ``unknown`` citation is synthesized from the URL,
2. a missing or ``unknown`` title falls back to the citation,
3. sections are renumbered by array position (``order``), ignoring any
   ordering implied by their free-text numbers.
"""
from __future__ import annotations

import time
from typing import Any, Callable
from urllib.parse import urlparse
from uuid import uuid4

import structlog

from lexingest.config import CONFIG
from lexingest.llm.client import LLMClient, complete_with_deadline
from lexingest.llm.parsing import extract_json_object
from lexingest.llm.prompts import STATUTE_EXTRACTION_PROMPT
from lexingest.models import ExtractedStatute, ScrapedSection

logger = structlog.get_logger(__name__)

PLACEHOLDER = "unknown"


def _clean(value: Any) -> str:
    if value is None:
        return ""
    text = str(value).strip()
    return "" if text.lower() == PLACEHOLDER else text


def synthesize_citation(url: str, now_ms: int | None = None) -> str:
    """Citation from the URL's trailing path segment plus a timestamp.

    A short random token keeps repeated runs within the same millisecond
    distinct.
    """
    parsed = urlparse(url)
    segment = parsed.path.rstrip("/").rsplit("/", 1)[-1]
    for suffix in (".html", ".htm"):
        if segment.lower().endswith(suffix):
            segment = segment[: -len(suffix)]
    segment = segment or parsed.netloc or "statute"
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"Source-{segment}-{now_ms}-{uuid4().hex[:6]}"


def repair_sections(raw_sections: Any) -> list[ScrapedSection]:
    """Coerce model sections and assign zero-based ``order`` by position."""
    if not isinstance(raw_sections, list):
        return []
    sections: list[ScrapedSection] = []
    for position, raw in enumerate(raw_sections):
        if not isinstance(raw, dict):
            raw = {"text": str(raw)}
        number = str(raw.get("number") or "").strip() or str(position + 1)
        heading = str(raw["heading"]).strip() if raw.get("heading") else None
        sections.append(
            ScrapedSection(
                number=number,
                heading=heading or None,
                text=str(raw.get("text") or "").strip(),
                order=position,
            )
        )
    return sections


class StructuredExtractor:
    """Turns rendered HTML into an ``ExtractedStatute`` via the model."""

    def __init__(
        self,
        client: LLMClient,
        *,
        max_html_chars: int = CONFIG.max_html_chars,
        timeout_seconds: float = CONFIG.extraction_timeout_seconds,
        max_tokens: int = CONFIG.extraction_max_tokens,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self.max_html_chars = max_html_chars
        self.timeout_seconds = timeout_seconds
        self.max_tokens = max_tokens
        self._clock = clock

    def truncate(self, html: str) -> str:
        if len(html) > self.max_html_chars:
            logger.warning(
                "extract.html_truncated",
                kb=round(len(html) / 1024, 1),
                limit_kb=round(self.max_html_chars / 1024, 1),
            )
            return html[: self.max_html_chars]
        return html

    def build_prompt(self, html: str, url: str) -> str:
        return STATUTE_EXTRACTION_PROMPT.format(url=url, html=self.truncate(html))

    async def extract(self, html: str, url: str) -> ExtractedStatute:
        """Extract and repair a statute record.

        Raises:
            ExtractionTimeout: The model did not answer within the deadline
            MalformedModelResponse: No JSON object in the answer
        """
        prompt = self.build_prompt(html, url)
        logger.info("extract.model_call", url=url, model=self._client.model)
        raw = await complete_with_deadline(
            self._client,
            system_prompt="",
            user_message=prompt,
            timeout=self.timeout_seconds,
            max_tokens=self.max_tokens,
        )
        data = extract_json_object(raw)
        statute = self.repair(data, url)
        logger.info(
            "extract.done",
            citation=statute.citation,
            title=statute.title,
            sections=len(statute.sections),
        )
        return statute

    def repair(self, data: dict[str, Any], url: str) -> ExtractedStatute:
        citation = _clean(data.get("citation"))
        if not citation:
            citation = synthesize_citation(url, int(self._clock() * 1000))
            logger.warning("extract.citation_synthesized", citation=citation)

        title = _clean(data.get("title"))
        if not title:
            title = citation
            logger.warning("extract.title_from_citation", citation=citation)

        sections = repair_sections(data.get("sections"))

        full_text = data.get("fullText")
        if not isinstance(full_text, str) or not full_text.strip():
            full_text = "\n\n".join(s.text for s in sections if s.text)

        return ExtractedStatute(
            citation=citation,
            title=title,
            short_title=_clean(data.get("shortTitle")) or None,
            sections=sections,
            full_text=full_text,
        )
