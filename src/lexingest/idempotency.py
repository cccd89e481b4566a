"""Deterministic fingerprints used as idempotency keys.

- Batch keys: SHA-256 over the provision ids of a slot batch in sort order,
  so a re-run can tell which batches already produced slots.
- Content hashes: SHA-256 over whitespace-normalized statute text, used by
  the change monitor and the citation upsert to detect real edits.

Fingerprints are SHA-256 of a canonical tuple joined with "\n".
"""
from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from typing import Iterable

_WS_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class Fingerprint:
    kind: str
    value: str  # hex sha256

    def __str__(self) -> str:  # pragma: no cover - convenience
        return f"{self.kind}:{self.value}"


def _normalize_text(s: str | None) -> str:
    return _WS_RE.sub(" ", s or "").strip()


def _sha(parts: Iterable[str]) -> str:
    return hashlib.sha256("\n".join(parts).encode("utf-8")).hexdigest()


def fingerprint_batch(provision_ids: Iterable[str]) -> Fingerprint:
    return Fingerprint("batch", _sha(["batch", *provision_ids]))


def fingerprint_content(text: str | None) -> Fingerprint:
    return Fingerprint("content", _sha(["content", _normalize_text(text)]))
