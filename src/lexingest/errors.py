"""Typed failures raised by the ingestion pipeline.

``FetchBlocked`` is terminal for a URL, ``FetchTimeout`` is retryable by the
caller, model failures surface as ``ModelError`` subclasses and a failed slot
batch is isolated as ``BatchInferenceFailure``. Zero relevance matches is not
an error and has no exception type.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse


class PipelineError(Exception):
    """Root of every failure the pipeline raises on purpose."""


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class FetchError(PipelineError):
    url: str
    reason: str = "fetch failed"

    @property
    def site(self) -> str:
        return urlparse(self.url).netloc or self.url

    def __str__(self) -> str:
        return f"Failed to fetch {self.url}: {self.reason}"


@dataclass(eq=False)
class FetchBlocked(FetchError):
    """The site denied automated access (HTTP 401/403)."""

    reason: str = "403 Forbidden"
    status: int | None = 403

    def __str__(self) -> str:
        return (
            f"Website blocked access ({self.reason}): {self.url}. "
            f"{self.site} may block automated access."
        )


@dataclass(eq=False)
class FetchTimeout(FetchError):
    """Navigation did not settle within the configured bound."""

    reason: str = "navigation timeout"

    def __str__(self) -> str:
        return f"Timed out fetching {self.url}: {self.reason}"


# ---------------------------------------------------------------------------
# Model inference
# ---------------------------------------------------------------------------


class ModelError(PipelineError):
    """The model step failed; never silently defaulted."""


class MalformedModelResponse(ModelError):
    def __init__(self, message: str, preview: str = "") -> None:
        super().__init__(message)
        self.preview = preview[:500]


class ExtractionTimeout(ModelError):
    def __init__(self, seconds: float) -> None:
        super().__init__(f"Model call timed out after {seconds:g} seconds")
        self.seconds = seconds


class ModelRefused(ModelError):
    pass


class ModelUnavailable(ModelError):
    pass


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class BatchInferenceFailure(PipelineError):
    batch_index: int
    provision_numbers: list[str] = field(default_factory=list)
    cause: str = ""

    def __str__(self) -> str:
        numbers = ", ".join(self.provision_numbers)
        return f"Batch {self.batch_index + 1} ({numbers}) failed: {self.cause}"


@dataclass(eq=False)
class SourceNotFound(PipelineError):
    source_id: str

    def __str__(self) -> str:
        return f"Legal source {self.source_id} not found"


def error_payload(exc: BaseException) -> dict[str, Any]:
    """Structured error body for trigger surfaces; never includes a traceback."""
    payload: dict[str, Any] = {"error": str(exc) or exc.__class__.__name__, "type": exc.__class__.__name__}
    if isinstance(exc, FetchError):
        payload["url"] = exc.url
        payload["retryable"] = isinstance(exc, FetchTimeout)
    if isinstance(exc, FetchBlocked):
        payload["site"] = exc.site
    return payload
