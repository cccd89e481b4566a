"""Web extraction: headless fetching and model-assisted statute parsing."""
from .extractor import StructuredExtractor, repair_sections, synthesize_citation
from .fetcher import FetcherConfig, PageFetcher
from .scraper import ONTARIO_STATUTES, StatuteScraper

__all__ = [
    "FetcherConfig",
    "ONTARIO_STATUTES",
    "PageFetcher",
    "StatuteScraper",
    "StructuredExtractor",
    "repair_sections",
    "synthesize_citation",
]
