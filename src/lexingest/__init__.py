"""lexingest - statute ingestion and slot inference pipeline.

Scrapes statutory text from government websites, extracts structured
provisions with a language model, links each source to the legal domains
it governs and generates decision slots per domain.
"""

__version__ = "0.3.0"

# Lazy imports to avoid pulling Playwright and the model SDK on import
def __getattr__(name: str):
    if name == "models":
        from lexingest import models
        return models
    if name == "scraping":
        from lexingest import scraping
        return scraping
    if name == "analysis":
        from lexingest import analysis
        return analysis
    if name == "processing":
        from lexingest import processing
        return processing
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
