"""Tests for error messages, payloads and configuration defaults."""
from __future__ import annotations

from lexingest.config import CONFIG, PipelineConfig
from lexingest.errors import (
    BatchInferenceFailure,
    ExtractionTimeout,
    FetchBlocked,
    FetchError,
    FetchTimeout,
    PipelineError,
    SourceNotFound,
    error_payload,
)


class TestErrors:
    def test_fetch_blocked_names_url_and_site(self):
        exc = FetchBlocked(url="https://www.flsenate.gov/Laws/Statutes/760")
        assert isinstance(exc, FetchError) and isinstance(exc, PipelineError)
        assert "https://www.flsenate.gov/Laws/Statutes/760" in str(exc)
        assert exc.site == "www.flsenate.gov"

    def test_payload_for_blocked_fetch(self):
        payload = error_payload(FetchBlocked(url="https://a.example/x"))
        assert payload["type"] == "FetchBlocked"
        assert payload["site"] == "a.example"
        assert payload["retryable"] is False

    def test_payload_for_timeout_is_retryable(self):
        assert error_payload(FetchTimeout(url="https://a.example"))["retryable"] is True

    def test_payload_for_plain_errors(self):
        assert error_payload(SourceNotFound("abc")) == {"error": "Legal source abc not found", "type": "SourceNotFound"}

    def test_extraction_timeout_message(self):
        assert str(ExtractionTimeout(120.0)) == "Model call timed out after 120 seconds"

    def test_batch_failure_message(self):
        exc = BatchInferenceFailure(0, ["1", "2"], "bad json")
        assert str(exc) == "Batch 1 (1, 2) failed: bad json"


class TestConfig:
    def test_defaults(self):
        config = PipelineConfig()
        assert config.min_request_delay == 3.0
        assert config.max_html_chars == 80000
        assert config.extraction_timeout_seconds == 120.0
        assert config.batch_size == 2
        assert config.slot_temperature == 0.3
        assert config.slot_max_tokens == 16000

    def test_process_default_is_frozen(self):
        import dataclasses

        import pytest

        with pytest.raises(dataclasses.FrozenInstanceError):
            CONFIG.batch_size = 5  # type: ignore[misc]
