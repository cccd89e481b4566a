from __future__ import annotations

import os
from dataclasses import dataclass


def _f(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except Exception:
        return default


def _i(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except Exception:
        return default


def _s(name: str, default: str) -> str:
    return os.getenv(name) or default


@dataclass(frozen=True)
class PipelineConfig:
    # Scraping
    min_request_delay: float = _f("LEXINGEST_MIN_REQUEST_DELAY", 3.0)
    navigation_timeout_ms: int = _i("LEXINGEST_NAVIGATION_TIMEOUT_MS", 30000)
    render_settle_seconds: float = _f("LEXINGEST_RENDER_SETTLE_SECONDS", 5.0)
    fetch_attempts: int = _i("LEXINGEST_FETCH_ATTEMPTS", 3)
    fetch_backoff_initial: float = _f("LEXINGEST_FETCH_BACKOFF_INITIAL", 2.0)
    fetch_backoff_max: float = _f("LEXINGEST_FETCH_BACKOFF_MAX", 30.0)

    # Structured extraction
    max_html_chars: int = _i("LEXINGEST_MAX_HTML_CHARS", 80000)
    extraction_timeout_seconds: float = _f("LEXINGEST_EXTRACTION_TIMEOUT", 120.0)
    extraction_model: str = _s("LEXINGEST_EXTRACTION_MODEL", "claude-sonnet-4-5-20250929")
    extraction_max_tokens: int = _i("LEXINGEST_EXTRACTION_MAX_TOKENS", 8192)

    # Slot generation
    slot_model: str = _s("LEXINGEST_SLOT_MODEL", "claude-sonnet-4-5")
    slot_max_tokens: int = _i("LEXINGEST_SLOT_MAX_TOKENS", 16000)
    slot_temperature: float = _f("LEXINGEST_SLOT_TEMPERATURE", 0.3)
    slot_timeout_seconds: float = _f("LEXINGEST_SLOT_TIMEOUT", 300.0)
    batch_size: int = _i("LEXINGEST_BATCH_SIZE", 2)
    inter_batch_delay: float = _f("LEXINGEST_INTER_BATCH_DELAY", 2.0)

    # Change monitoring
    monitor_delay: float = _f("LEXINGEST_MONITOR_DELAY", 5.0)

    # Persistence
    database_path: str = _s("LEXINGEST_DATABASE_PATH", "./data/lexingest.db")


CONFIG = PipelineConfig()
