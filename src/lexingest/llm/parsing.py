"""Locate JSON inside free-form model output.

The model's output is never schema-guaranteed: objects are taken from the
first ``{`` to the last ``}``, arrays from a fenced ```json block (closing a
truncated block when needed) or a bare ``[...]`` span.
"""
from __future__ import annotations

import json
import re
from typing import Any

import structlog

from lexingest.errors import MalformedModelResponse

logger = structlog.get_logger(__name__)

_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_FENCED_RE = re.compile(r"```json\s*([\s\S]*?)\s*```")
_FENCED_OPEN_RE = re.compile(r"```json\s*([\s\S]*)")
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")


def extract_json_object(text: str) -> dict[str, Any]:
    """Parse the first brace-delimited JSON object in ``text``."""
    match = _OBJECT_RE.search(text or "")
    if not match:
        raise MalformedModelResponse("AI did not return valid JSON", preview=text or "")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise MalformedModelResponse(f"Invalid JSON in AI response: {e}", preview=match.group(0)) from e
    if not isinstance(data, dict):
        raise MalformedModelResponse("AI response is not a JSON object", preview=match.group(0))
    return data


def close_truncated_array(json_text: str) -> str:
    """Append the braces and bracket a truncated array is missing."""
    json_text = json_text.strip()
    missing = json_text.count("{") - json_text.count("}")
    json_text += "}" * max(missing, 0)
    if not json_text.endswith("]"):
        json_text += "]"
    return json_text


def extract_json_array(text: str) -> list[Any]:
    """Parse a JSON array from a fenced block, a truncated block or bare text."""
    text = text or ""
    match = _FENCED_RE.search(text)
    if match:
        candidate = match.group(1)
    else:
        open_match = _FENCED_OPEN_RE.search(text)
        if open_match:
            logger.warning("llm.truncated_response", chars=len(text))
            candidate = close_truncated_array(open_match.group(1))
        else:
            bare = _ARRAY_RE.search(text)
            if not bare:
                raise MalformedModelResponse("AI response did not contain valid JSON", preview=text)
            candidate = bare.group(0)

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise MalformedModelResponse(f"Failed to parse AI response: {e}", preview=candidate) from e
    if not isinstance(data, list):
        raise MalformedModelResponse("AI response is not an array", preview=candidate)
    return data
