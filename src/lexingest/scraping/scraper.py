"""Scrape a statute from any URL: throttle, render, extract."""
from __future__ import annotations

import structlog

from lexingest.models import ScrapedStatute
from lexingest.net import SCRAPE_LIMITER, RateLimiter

from .extractor import StructuredExtractor
from .fetcher import PageFetcher

logger = structlog.get_logger(__name__)

ONTARIO_LAWS_URL = "https://www.ontario.ca/laws/statute/{code}"

# Common Ontario statute codes
ONTARIO_STATUTES = {
    "EMPLOYMENT_STANDARDS_ACT": "00e41",
    "HUMAN_RIGHTS_CODE": "90h19",
    "RESIDENTIAL_TENANCIES_ACT": "06r17",
    "FAMILY_LAW_ACT": "90f3",
    "LABOUR_RELATIONS_ACT": "95l1",
    "OCCUPATIONAL_HEALTH_AND_SAFETY_ACT": "90o1",
    "WORKPLACE_SAFETY_AND_INSURANCE_ACT": "97w16",
}


class StatuteScraper:
    """Composes the shared rate limiter, a page fetcher and the extractor."""

    def __init__(
        self,
        fetcher: PageFetcher,
        extractor: StructuredExtractor,
        limiter: RateLimiter = SCRAPE_LIMITER,
    ) -> None:
        self.fetcher = fetcher
        self.extractor = extractor
        self.limiter = limiter

    async def scrape(self, url: str) -> ScrapedStatute:
        logger.info("scrape.start", url=url)
        await self.limiter.throttle()

        html = await self.fetcher.fetch(url)
        extracted = await self.extractor.extract(html, url)

        return ScrapedStatute(
            citation=extracted.citation,
            long_title=extracted.title,
            short_title=extracted.short_title,
            full_text=extracted.full_text,
            sections=extracted.sections,
            url=url,
        )

    async def scrape_ontario_statute(self, statute_code: str) -> ScrapedStatute:
        return await self.scrape(ONTARIO_LAWS_URL.format(code=statute_code))
