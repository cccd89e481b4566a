"""SQLite persistence for legal sources, provisions, domains and slots.

This is the persistence collaborator the pipeline writes through. Sources
are upserted by citation; provisions are owned by their source; slots are
upserted by slot key, and each batch records the slot keys it produced.
"""
from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Generator, Iterable

import structlog

from .idempotency import fingerprint_content
from .models import (
    ChangeDetection,
    Jurisdiction,
    LegalDomain,
    LegalProvision,
    LegalSource,
    ScrapedStatute,
    SlotDefinition,
    new_id,
)

logger = structlog.get_logger(__name__)


# =============================================================================
# Schema Definitions
# =============================================================================


SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS jurisdictions (
    id TEXT PRIMARY KEY,
    code TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS legal_domains (
    id TEXT PRIMARY KEY,
    slug TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    description TEXT
);

CREATE TABLE IF NOT EXISTS legal_sources (
    id TEXT PRIMARY KEY,
    citation TEXT NOT NULL UNIQUE,
    long_title TEXT NOT NULL,
    short_title TEXT,
    full_text TEXT,
    official_url TEXT,
    source_type TEXT DEFAULT 'statute',
    scraped_at TEXT,
    ai_processed INTEGER DEFAULT 0,
    ai_processed_at TEXT,
    created_by TEXT NOT NULL,
    version_number INTEGER DEFAULT 1,
    in_force INTEGER DEFAULT 1,
    jurisdiction_code TEXT NOT NULL,
    legal_domain_slug TEXT,
    content_hash TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_legal_sources_processed ON legal_sources(ai_processed, created_at);

CREATE TABLE IF NOT EXISTS legal_provisions (
    id TEXT PRIMARY KEY,
    legal_source_id TEXT NOT NULL,
    provision_number TEXT NOT NULL,
    heading TEXT,
    provision_text TEXT,
    sort_order INTEGER NOT NULL,
    version_number INTEGER DEFAULT 1,
    in_force INTEGER DEFAULT 1,
    UNIQUE (legal_source_id, sort_order),
    FOREIGN KEY (legal_source_id) REFERENCES legal_sources(id)
);

CREATE TABLE IF NOT EXISTS slot_definitions (
    id TEXT PRIMARY KEY,
    slot_key TEXT NOT NULL UNIQUE,
    slot_name TEXT NOT NULL,
    description TEXT,
    slot_category TEXT NOT NULL,
    jurisdiction_code TEXT,
    legal_domain_slug TEXT,
    legal_source_id TEXT NOT NULL,
    confidence REAL NOT NULL,
    config TEXT NOT NULL,  -- JSON slot definition
    version_number INTEGER DEFAULT 1,
    is_active INTEGER DEFAULT 0,
    changed_by TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (legal_source_id) REFERENCES legal_sources(id)
);
CREATE INDEX IF NOT EXISTS idx_slot_definitions_source ON slot_definitions(legal_source_id);

-- Slot keys each successful batch produced; one slot key may belong to several batches
CREATE TABLE IF NOT EXISTS slot_batches (
    legal_source_id TEXT NOT NULL,
    batch_key TEXT NOT NULL,
    slot_key TEXT NOT NULL,
    confidence REAL NOT NULL,
    PRIMARY KEY (batch_key, slot_key)
);
CREATE INDEX IF NOT EXISTS idx_slot_batches_source ON slot_batches(legal_source_id);

CREATE TABLE IF NOT EXISTS change_detections (
    id TEXT PRIMARY KEY,
    legal_source_id TEXT NOT NULL,
    detection_type TEXT NOT NULL,
    change_summary TEXT NOT NULL,
    old_content TEXT,
    new_content TEXT,
    detected_by TEXT NOT NULL,
    confidence_score REAL,
    requires_human_review INTEGER DEFAULT 1,
    human_reviewed INTEGER DEFAULT 0,
    impact_severity TEXT,
    affected_slot_ids TEXT,  -- JSON array
    detected_at TEXT NOT NULL,
    FOREIGN KEY (legal_source_id) REFERENCES legal_sources(id)
);

CREATE TABLE IF NOT EXISTS scraping_jobs (
    id TEXT PRIMARY KEY,
    job_type TEXT NOT NULL,
    source_url TEXT,
    jurisdiction_code TEXT,
    legal_domain_slug TEXT,
    status TEXT NOT NULL,
    items_found INTEGER DEFAULT 0,
    items_created INTEGER DEFAULT 0,
    scraper_version TEXT,
    completed_at TEXT NOT NULL
);
"""

_SOURCE_UPSERT_SQL = """
INSERT INTO legal_sources (
    id, citation, long_title, short_title, full_text, official_url, source_type,
    scraped_at, ai_processed, ai_processed_at, created_by, version_number, in_force,
    jurisdiction_code, legal_domain_slug, content_hash, created_at, updated_at
) VALUES (?, ?, ?, ?, ?, ?, 'statute', ?, 0, NULL, ?, 1, 1, ?, ?, ?, ?, ?)
ON CONFLICT(citation) DO UPDATE SET
    long_title = excluded.long_title,
    short_title = excluded.short_title,
    full_text = excluded.full_text,
    official_url = excluded.official_url,
    scraped_at = excluded.scraped_at,
    jurisdiction_code = excluded.jurisdiction_code,
    legal_domain_slug = COALESCE(excluded.legal_domain_slug, legal_sources.legal_domain_slug),
    ai_processed = CASE WHEN legal_sources.content_hash = excluded.content_hash
        THEN legal_sources.ai_processed ELSE 0 END,
    ai_processed_at = CASE WHEN legal_sources.content_hash = excluded.content_hash
        THEN legal_sources.ai_processed_at ELSE NULL END,
    version_number = CASE WHEN legal_sources.content_hash = excluded.content_hash
        THEN legal_sources.version_number ELSE legal_sources.version_number + 1 END,
    content_hash = excluded.content_hash,
    updated_at = excluded.updated_at
"""


@dataclass
class StoredSlot:
    """A persisted slot definition."""
    id: str
    slot_key: str
    legal_source_id: str
    confidence: float
    version_number: int
    definition: SlotDefinition


@dataclass
class UpsertResult:
    source: LegalSource
    created: bool
    content_changed: bool


# =============================================================================
# Storage Class
# =============================================================================


class LegalStore:
    """SQLite storage for the ingestion pipeline."""

    def __init__(self, db_path: Path | str = ":memory:"):
        """Initialize storage.

        Args:
            db_path: Path to SQLite database file, or ":memory:" for in-memory
        """
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._connection: sqlite3.Connection | None = None
        self._initialize_schema()

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._connection is None:
            self._connection = sqlite3.connect(self.db_path)
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA foreign_keys = ON")
        return self._connection

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Cursor, None, None]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()

    def _initialize_schema(self) -> None:
        with self.transaction() as cursor:
            cursor.executescript(SCHEMA_SQL)
            cursor.execute("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1")
            if cursor.fetchone() is None:
                cursor.execute(
                    "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                    (SCHEMA_VERSION, _now()),
                )

    def close(self) -> None:
        """Close database connection."""
        if self._connection:
            self._connection.close()
            self._connection = None

    # =========================================================================
    # Serialization Helpers
    # =========================================================================

    @staticmethod
    def _serialize_datetime(dt: datetime | None) -> str | None:
        return dt.isoformat() if dt else None

    @staticmethod
    def _deserialize_datetime(s: str | None) -> datetime | None:
        if not s:
            return None
        return datetime.fromisoformat(s)

    def _row_to_source(self, row: sqlite3.Row) -> LegalSource:
        return LegalSource(
            id=row["id"],
            citation=row["citation"],
            long_title=row["long_title"],
            short_title=row["short_title"],
            full_text=row["full_text"] or "",
            official_url=row["official_url"],
            source_type=row["source_type"],
            scraped_at=self._deserialize_datetime(row["scraped_at"]),
            ai_processed=bool(row["ai_processed"]),
            ai_processed_at=self._deserialize_datetime(row["ai_processed_at"]),
            created_by=row["created_by"],
            version_number=row["version_number"],
            in_force=bool(row["in_force"]),
            jurisdiction_code=row["jurisdiction_code"],
            legal_domain_slug=row["legal_domain_slug"],
            content_hash=row["content_hash"],
            created_at=self._deserialize_datetime(row["created_at"]),
            updated_at=self._deserialize_datetime(row["updated_at"]),
        )

    def _row_to_slot(self, row: sqlite3.Row) -> StoredSlot:
        return StoredSlot(
            id=row["id"],
            slot_key=row["slot_key"],
            legal_source_id=row["legal_source_id"],
            confidence=row["confidence"],
            version_number=row["version_number"],
            definition=SlotDefinition.model_validate_json(row["config"]),
        )

    # =========================================================================
    # Jurisdictions & Domains
    # =========================================================================

    def save_jurisdiction(self, jurisdiction: Jurisdiction) -> Jurisdiction:
        with self.transaction() as cursor:
            cursor.execute(
                """
                INSERT INTO jurisdictions (id, code, name) VALUES (?, ?, ?)
                ON CONFLICT(code) DO UPDATE SET name = excluded.name
                """,
                (jurisdiction.id, jurisdiction.code, jurisdiction.name),
            )
        return self.get_jurisdiction(jurisdiction.code)  # type: ignore[return-value]

    def get_jurisdiction(self, code: str) -> Jurisdiction | None:
        row = self._get_connection().execute(
            "SELECT * FROM jurisdictions WHERE code = ?", (code,)
        ).fetchone()
        return Jurisdiction(**dict(row)) if row else None

    def save_domain(self, domain: LegalDomain) -> LegalDomain:
        with self.transaction() as cursor:
            cursor.execute(
                """
                INSERT INTO legal_domains (id, slug, name, description) VALUES (?, ?, ?, ?)
                ON CONFLICT(slug) DO UPDATE SET
                    name = excluded.name, description = excluded.description
                """,
                (domain.id, domain.slug, domain.name, domain.description),
            )
        return self.get_domain(domain.slug)  # type: ignore[return-value]

    def get_domain(self, slug: str) -> LegalDomain | None:
        row = self._get_connection().execute(
            "SELECT * FROM legal_domains WHERE slug = ?", (slug,)
        ).fetchone()
        return LegalDomain(**dict(row)) if row else None

    def list_domains(self) -> list[LegalDomain]:
        rows = self._get_connection().execute("SELECT * FROM legal_domains ORDER BY slug").fetchall()
        return [LegalDomain(**dict(r)) for r in rows]

    # =========================================================================
    # Sources & Provisions
    # =========================================================================

    def upsert_source(
        self,
        statute: ScrapedStatute,
        jurisdiction_code: str,
        legal_domain_slug: str | None = None,
        created_by: str = "ai-scraper",
    ) -> UpsertResult:
        """Insert or update a source keyed by citation.

        Provisions are replaced only when the full text changed; a content
        change also resets the processed flag so slots get regenerated.
        """
        now = _now()
        content_hash = fingerprint_content(statute.full_text).value
        conn = self._get_connection()
        previous = conn.execute(
            "SELECT id, content_hash FROM legal_sources WHERE citation = ?", (statute.citation,)
        ).fetchone()

        with self.transaction() as cursor:
            cursor.execute(
                _SOURCE_UPSERT_SQL,
                (
                    new_id(),
                    statute.citation,
                    statute.long_title,
                    statute.short_title,
                    statute.full_text,
                    statute.url,
                    now,
                    created_by,
                    jurisdiction_code,
                    legal_domain_slug,
                    content_hash,
                    now,
                    now,
                ),
            )
            cursor.execute("SELECT * FROM legal_sources WHERE citation = ?", (statute.citation,))
            source = self._row_to_source(cursor.fetchone())
            source_id = source.id

            content_changed = previous is None or previous["content_hash"] != content_hash
            if content_changed:
                cursor.execute("DELETE FROM legal_provisions WHERE legal_source_id = ?", (source_id,))
                cursor.executemany(
                    """
                    INSERT INTO legal_provisions (
                        id, legal_source_id, provision_number, heading, provision_text,
                        sort_order, version_number, in_force
                    ) VALUES (?, ?, ?, ?, ?, ?, 1, 1)
                    """,
                    [
                        (new_id(), source_id, s.number, s.heading, s.text, s.order)
                        for s in statute.sections
                    ],
                )

        logger.info(
            "store.source_upserted",
            source_id=source_id,
            citation=statute.citation,
            created=previous is None,
            content_changed=content_changed,
            provisions=len(statute.sections),
        )
        return UpsertResult(source=source, created=previous is None, content_changed=content_changed)

    def get_source(self, source_id: str) -> LegalSource | None:
        row = self._get_connection().execute(
            "SELECT * FROM legal_sources WHERE id = ?", (source_id,)
        ).fetchone()
        return self._row_to_source(row) if row else None

    def get_source_by_citation(self, citation: str) -> LegalSource | None:
        row = self._get_connection().execute(
            "SELECT * FROM legal_sources WHERE citation = ?", (citation,)
        ).fetchone()
        return self._row_to_source(row) if row else None

    def list_sources(self) -> list[LegalSource]:
        rows = self._get_connection().execute(
            "SELECT * FROM legal_sources ORDER BY created_at"
        ).fetchall()
        return [self._row_to_source(r) for r in rows]

    def list_monitored_sources(self) -> list[LegalSource]:
        """In-force sources that have an official URL to re-check."""
        rows = self._get_connection().execute(
            "SELECT * FROM legal_sources WHERE in_force = 1 AND COALESCE(official_url, '') != '' ORDER BY created_at"
        ).fetchall()
        return [self._row_to_source(r) for r in rows]

    def most_recent_unprocessed(self) -> LegalSource | None:
        row = self._get_connection().execute(
            """
            SELECT * FROM legal_sources WHERE ai_processed = 0
            ORDER BY created_at DESC, rowid DESC LIMIT 1
            """
        ).fetchone()
        return self._row_to_source(row) if row else None

    def list_provisions(self, source_id: str, in_force_only: bool = False, limit: int | None = None) -> list[LegalProvision]:
        sql = "SELECT * FROM legal_provisions WHERE legal_source_id = ?"
        if in_force_only:
            sql += " AND in_force = 1"
        sql += " ORDER BY sort_order ASC"
        params: tuple[Any, ...] = (source_id,)
        if limit is not None:
            sql += " LIMIT ?"
            params += (limit,)
        rows = self._get_connection().execute(sql, params).fetchall()
        return [
            LegalProvision(
                id=r["id"],
                legal_source_id=r["legal_source_id"],
                provision_number=r["provision_number"],
                heading=r["heading"],
                provision_text=r["provision_text"] or "",
                sort_order=r["sort_order"],
                version_number=r["version_number"],
                in_force=bool(r["in_force"]),
            )
            for r in rows
        ]

    def mark_processed(self, source_id: str) -> bool:
        """Flip ``ai_processed`` to true; returns False if it already was."""
        with self.transaction() as cursor:
            cursor.execute(
                "UPDATE legal_sources SET ai_processed = 1, ai_processed_at = ?, updated_at = ? "
                "WHERE id = ? AND ai_processed = 0",
                (_now(), _now(), source_id),
            )
            return cursor.rowcount == 1

    def reset_processed(self, source_id: str) -> None:
        with self.transaction() as cursor:
            cursor.execute(
                "UPDATE legal_sources SET ai_processed = 0, ai_processed_at = NULL, updated_at = ? WHERE id = ?",
                (_now(), source_id),
            )

    # =========================================================================
    # Slots
    # =========================================================================

    def existing_slots_for_source(self, source_id: str) -> list[StoredSlot]:
        rows = self._get_connection().execute(
            "SELECT * FROM slot_definitions WHERE legal_source_id = ? ORDER BY created_at, rowid",
            (source_id,),
        ).fetchall()
        return [self._row_to_slot(r) for r in rows]

    def slots_by_batch(self, source_id: str) -> dict[str, list[StoredSlot]]:
        """Stored slots grouped by the batch key that produced them.

        Confidence is the value the batch reported, so re-aggregating a
        skipped batch gives the same numbers as the run that stored it.
        """
        rows = self._get_connection().execute(
            """
            SELECT s.*, b.batch_key, b.confidence AS batch_confidence
            FROM slot_batches b
            JOIN slot_definitions s ON s.slot_key = b.slot_key
            WHERE b.legal_source_id = ?
            ORDER BY b.rowid
            """,
            (source_id,),
        ).fetchall()
        grouped: dict[str, list[StoredSlot]] = {}
        for r in rows:
            slot = self._row_to_slot(r)
            slot.confidence = r["batch_confidence"]
            grouped.setdefault(r["batch_key"], []).append(slot)
        return grouped

    def save_slots(
        self,
        slots: Iterable[SlotDefinition],
        source: LegalSource,
        batch_key: str | None = None,
        changed_by: str = "ai-agent",
    ) -> tuple[int, int]:
        """Upsert slots by key. New slots start inactive pending human review.

        When ``batch_key`` is given the batch records each slot key it
        produced. Membership is additive: a later batch that returns the same
        key updates the definition but does not take the key from the earlier
        batch.

        Returns:
            ``(created, updated)`` counts
        """
        created = updated = 0
        now = _now()
        with self.transaction() as cursor:
            for slot in slots:
                cursor.execute("SELECT version_number FROM slot_definitions WHERE slot_key = ?", (slot.slot_key,))
                existing = cursor.fetchone()
                config = slot.model_dump_json(by_alias=True)
                if existing:
                    cursor.execute(
                        """
                        UPDATE slot_definitions SET
                            slot_name = ?, description = ?, slot_category = ?, legal_source_id = ?,
                            confidence = ?, config = ?, version_number = ?,
                            changed_by = ?, updated_at = ?
                        WHERE slot_key = ?
                        """,
                        (
                            slot.slot_name,
                            slot.description,
                            slot.slot_type.value,
                            source.id,
                            slot.confidence,
                            config,
                            existing["version_number"] + 1,
                            changed_by,
                            now,
                            slot.slot_key,
                        ),
                    )
                    updated += 1
                else:
                    cursor.execute(
                        """
                        INSERT INTO slot_definitions (
                            id, slot_key, slot_name, description, slot_category,
                            jurisdiction_code, legal_domain_slug, legal_source_id,
                            confidence, config, version_number, is_active, changed_by,
                            created_at, updated_at
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, 0, ?, ?, ?)
                        """,
                        (
                            new_id(),
                            slot.slot_key,
                            slot.slot_name,
                            slot.description,
                            slot.slot_type.value,
                            source.jurisdiction_code,
                            source.legal_domain_slug,
                            source.id,
                            slot.confidence,
                            config,
                            changed_by,
                            now,
                            now,
                        ),
                    )
                    created += 1
                if batch_key is not None:
                    cursor.execute(
                        """
                        INSERT INTO slot_batches (legal_source_id, batch_key, slot_key, confidence)
                        VALUES (?, ?, ?, ?)
                        ON CONFLICT(batch_key, slot_key) DO UPDATE SET confidence = excluded.confidence
                        """,
                        (source.id, batch_key, slot.slot_key, slot.confidence),
                    )
        logger.info("store.slots_saved", source_id=source.id, created=created, updated=updated)
        return created, updated

    def clear_slot_batches(self, source_id: str) -> None:
        """Forget which batches produced the source's slots; definitions stay."""
        with self.transaction() as cursor:
            cursor.execute("DELETE FROM slot_batches WHERE legal_source_id = ?", (source_id,))

    def delete_slots_for_source(self, source_id: str) -> int:
        with self.transaction() as cursor:
            cursor.execute("DELETE FROM slot_batches WHERE legal_source_id = ?", (source_id,))
            cursor.execute("DELETE FROM slot_definitions WHERE legal_source_id = ?", (source_id,))
            return cursor.rowcount

    # =========================================================================
    # Change detection & job log
    # =========================================================================

    def record_change(self, change: ChangeDetection, old_content: str, new_content: str) -> None:
        with self.transaction() as cursor:
            cursor.execute(
                """
                INSERT INTO change_detections (
                    id, legal_source_id, detection_type, change_summary, old_content,
                    new_content, detected_by, confidence_score, requires_human_review,
                    human_reviewed, impact_severity, affected_slot_ids, detected_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    change.id,
                    change.legal_source_id,
                    change.detection_type,
                    change.change_summary,
                    old_content,
                    new_content,
                    change.detected_by,
                    change.confidence_score,
                    int(change.requires_human_review),
                    int(change.human_reviewed),
                    change.impact_severity,
                    json.dumps(change.affected_slot_ids),
                    self._serialize_datetime(change.detected_at),
                ),
            )

    def pending_changes(self) -> list[ChangeDetection]:
        rows = self._get_connection().execute(
            """
            SELECT * FROM change_detections
            WHERE human_reviewed = 0 AND requires_human_review = 1
            ORDER BY detected_at DESC
            """
        ).fetchall()
        return [
            ChangeDetection(
                id=r["id"],
                legal_source_id=r["legal_source_id"],
                detection_type=r["detection_type"],
                change_summary=r["change_summary"],
                detected_by=r["detected_by"],
                confidence_score=r["confidence_score"],
                requires_human_review=bool(r["requires_human_review"]),
                human_reviewed=bool(r["human_reviewed"]),
                impact_severity=r["impact_severity"],
                affected_slot_ids=json.loads(r["affected_slot_ids"] or "[]"),
                detected_at=self._deserialize_datetime(r["detected_at"]),
            )
            for r in rows
        ]

    def record_job(
        self,
        job_type: str,
        source_url: str | None,
        jurisdiction_code: str | None,
        legal_domain_slug: str | None,
        items: int,
        scraper_version: str,
        status: str = "completed",
    ) -> None:
        with self.transaction() as cursor:
            cursor.execute(
                """
                INSERT INTO scraping_jobs (
                    id, job_type, source_url, jurisdiction_code, legal_domain_slug,
                    status, items_found, items_created, scraper_version, completed_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (new_id(), job_type, source_url, jurisdiction_code, legal_domain_slug,
                 status, items, items, scraper_version, _now()),
            )


def _now() -> str:
    return datetime.now(UTC).isoformat()
