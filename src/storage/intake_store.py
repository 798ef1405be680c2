"""
SQLite-based intake storage.

Holds the three tables the intake pipeline touches: homeowners (read),
claims (read + insert) and calls (upsert keyed by Vapi call id).
No external database setup required - just works.
"""

import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Optional

from ..intake.errors import StoreError
from ..intake.schema import (
    OPEN_CLAIM_STATUSES,
    CallRecord,
    Claim,
    ClaimStatus,
    Homeowner,
)
from ..utils.config import settings

logger = logging.getLogger(__name__)


NOTIFICATION_COLUMNS = ("notified_at", "notification_scenario", "notification_message_id")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_iso(dt: datetime) -> str:
    """ISO timestamp in UTC so stored values compare correctly as text."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def _parse_claim_number(value: Optional[str]) -> int:
    try:
        return int(value) if value else 0
    except (TypeError, ValueError):
        return 0


class IntakeStore:
    """
    SQLite-based storage for homeowners, warranty claims and call records.

    Usage:
        store = IntakeStore()

        # Record a call (insert or update by Vapi call id)
        store.upsert_call(CallRecord(vapi_call_id="call-123", ...))

        # Auto-create a claim with the next per-homeowner number
        claim = store.create_claim_with_next_number(homeowner, "Leaking faucet")

        # Duplicate guard query
        store.has_open_claim_since(homeowner.id, since)
    """

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize the intake store."""
        self.db_path = Path(db_path) if db_path else settings.database_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        """Create tables if they don't exist."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS homeowners (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL DEFAULT '',
                    phone TEXT,
                    address TEXT NOT NULL DEFAULT '',
                    builder TEXT,
                    job_name TEXT
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS claims (
                    id TEXT PRIMARY KEY,
                    homeowner_id TEXT NOT NULL REFERENCES homeowners(id),

                    -- Denormalized homeowner snapshot
                    homeowner_name TEXT,
                    homeowner_email TEXT,
                    builder_name TEXT,
                    job_name TEXT,
                    address TEXT,

                    title TEXT NOT NULL,
                    description TEXT NOT NULL,
                    category TEXT NOT NULL DEFAULT 'General',
                    claim_number TEXT,
                    status TEXT NOT NULL DEFAULT 'SUBMITTED',
                    classification TEXT NOT NULL DEFAULT 'Unclassified',
                    summary TEXT,
                    date_submitted TEXT NOT NULL,
                    source_call_id TEXT
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS calls (
                    vapi_call_id TEXT PRIMARY KEY,
                    homeowner_id TEXT REFERENCES homeowners(id),

                    -- Call data from Vapi
                    homeowner_name TEXT,
                    phone_number TEXT,
                    property_address TEXT,
                    issue_description TEXT,
                    call_intent TEXT,
                    is_urgent INTEGER NOT NULL DEFAULT 0,
                    transcript TEXT,
                    recording_url TEXT,

                    -- Verification status
                    is_verified INTEGER NOT NULL DEFAULT 0,
                    address_match_similarity REAL,

                    -- Notification history (set after a successful send)
                    notified_at TEXT,
                    notification_scenario TEXT,
                    notification_message_id TEXT,

                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            # Create indexes for common queries
            conn.execute("CREATE INDEX IF NOT EXISTS idx_claims_homeowner ON claims(homeowner_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_claims_submitted ON claims(date_submitted)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_claims_source_call ON claims(source_call_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_calls_created ON calls(created_at)")

            # Add notification columns to databases created before they existed
            for column in NOTIFICATION_COLUMNS:
                try:
                    conn.execute(f"ALTER TABLE calls ADD COLUMN {column} TEXT")
                except sqlite3.OperationalError:
                    pass  # Column already exists

            conn.commit()

    @contextmanager
    def _get_connection(self):
        """Get a database connection; sqlite errors surface as StoreError."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.rollback()
            raise StoreError(f"Database error: {e}") from e
        finally:
            conn.close()

    # =========================================================================
    # Homeowners
    # =========================================================================

    def add_homeowner(self, homeowner: Homeowner) -> Homeowner:
        """Insert or replace a homeowner (seeding and tests only)."""
        with self._get_connection() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO homeowners (id, name, email, phone, address, builder, job_name)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                homeowner.id,
                homeowner.name,
                homeowner.email,
                homeowner.phone,
                homeowner.address,
                homeowner.builder,
                homeowner.job_name,
            ))
            conn.commit()
        return homeowner

    def list_homeowners(self) -> list[Homeowner]:
        """All homeowners, in insertion order."""
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM homeowners ORDER BY rowid").fetchall()
            return [Homeowner(**dict(row)) for row in rows]

    def get_homeowner(self, homeowner_id: str) -> Optional[Homeowner]:
        """Retrieve a homeowner by id."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM homeowners WHERE id = ?",
                (homeowner_id,)
            ).fetchone()
            return Homeowner(**dict(row)) if row else None

    # =========================================================================
    # Calls
    # =========================================================================

    def upsert_call(self, record: CallRecord) -> CallRecord:
        """
        Insert a call record, or update it if the Vapi call id already exists.

        created_at is kept from the first delivery.

        Returns:
            The stored CallRecord
        """
        now = _to_iso(_utcnow())

        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO calls (
                    vapi_call_id, homeowner_id, homeowner_name, phone_number,
                    property_address, issue_description, call_intent, is_urgent,
                    transcript, recording_url, is_verified, address_match_similarity,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(vapi_call_id) DO UPDATE SET
                    homeowner_id = excluded.homeowner_id,
                    homeowner_name = excluded.homeowner_name,
                    phone_number = excluded.phone_number,
                    property_address = excluded.property_address,
                    issue_description = excluded.issue_description,
                    call_intent = excluded.call_intent,
                    is_urgent = excluded.is_urgent,
                    transcript = excluded.transcript,
                    recording_url = excluded.recording_url,
                    is_verified = excluded.is_verified,
                    address_match_similarity = excluded.address_match_similarity,
                    updated_at = excluded.updated_at
            """, (
                record.vapi_call_id,
                record.homeowner_id,
                record.homeowner_name,
                record.phone_number,
                record.property_address,
                record.issue_description,
                record.call_intent,
                int(record.is_urgent),
                record.transcript,
                record.recording_url,
                int(record.is_verified),
                record.address_match_similarity,
                now,
                now,
            ))
            conn.commit()

        return self.get_call(record.vapi_call_id)

    def get_call(self, vapi_call_id: str) -> Optional[CallRecord]:
        """Retrieve a call record by Vapi call id."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM calls WHERE vapi_call_id = ?",
                (vapi_call_id,)
            ).fetchone()
            return self._row_to_call(row) if row else None

    def list_calls(
        self,
        verified: Optional[bool] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[CallRecord]:
        """
        List call records, newest first.

        Args:
            verified: Filter by match outcome
            limit: Max results
            offset: Pagination offset
        """
        query = "SELECT * FROM calls WHERE 1=1"
        params: list = []

        if verified is not None:
            query += " AND is_verified = ?"
            params.append(int(verified))

        query += " ORDER BY created_at DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
            return [self._row_to_call(row) for row in rows]

    def mark_call_notified(
        self,
        vapi_call_id: str,
        scenario: str,
        message_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Record that the notification for a call went out.

        Returns:
            True if updated, False if the call record does not exist
        """
        with self._get_connection() as conn:
            result = conn.execute("""
                UPDATE calls
                SET notified_at = ?, notification_scenario = ?, notification_message_id = ?
                WHERE vapi_call_id = ?
            """, (_to_iso(now or _utcnow()), scenario, message_id, vapi_call_id))
            conn.commit()
            return result.rowcount > 0

    def count_calls(self) -> int:
        """Count call records."""
        with self._get_connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM calls").fetchone()[0]

    # =========================================================================
    # Claims
    # =========================================================================

    def create_claim_with_next_number(
        self,
        homeowner: Homeowner,
        description: Optional[str],
        source_call_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Claim:
        """
        Create a claim numbered max(existing numbers for the homeowner) + 1.

        Numbering and insert run in one BEGIN IMMEDIATE transaction, which
        serialises writers on the same database file.
        """
        submitted = _to_iso(now or _utcnow())

        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            rows = conn.execute(
                "SELECT claim_number FROM claims WHERE homeowner_id = ?",
                (homeowner.id,)
            ).fetchall()
            next_number = max((_parse_claim_number(r["claim_number"]) for r in rows), default=0) + 1

            claim = Claim(
                id=str(uuid.uuid4()),
                homeowner_id=homeowner.id,
                homeowner_name=homeowner.name,
                homeowner_email=homeowner.email,
                builder_name=homeowner.builder,
                job_name=homeowner.job_name,
                address=homeowner.address,
                title="Call in",
                description=description or "Service request from AI voice intake",
                claim_number=str(next_number),
                status=ClaimStatus.SUBMITTED,
                summary=description,
                date_submitted=datetime.fromisoformat(submitted),
                source_call_id=source_call_id,
            )
            self._insert_claim(conn, claim)
            conn.commit()

        logger.info(f"Claim #{claim.claim_number} created for homeowner {homeowner.id} (ID: {claim.id})")
        return claim

    def add_claim(self, claim: Claim) -> Claim:
        """Insert a claim as-is (seeding and tests only)."""
        with self._get_connection() as conn:
            self._insert_claim(conn, claim)
            conn.commit()
        return claim

    def _insert_claim(self, conn: sqlite3.Connection, claim: Claim) -> None:
        conn.execute("""
            INSERT INTO claims (
                id, homeowner_id, homeowner_name, homeowner_email, builder_name,
                job_name, address, title, description, category, claim_number,
                status, classification, summary, date_submitted, source_call_id
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            claim.id,
            claim.homeowner_id,
            claim.homeowner_name,
            claim.homeowner_email,
            claim.builder_name,
            claim.job_name,
            claim.address,
            claim.title,
            claim.description,
            claim.category,
            claim.claim_number,
            claim.status.value,
            claim.classification,
            claim.summary,
            _to_iso(claim.date_submitted),
            claim.source_call_id,
        ))

    def get_claim(self, claim_id: str) -> Optional[Claim]:
        """Retrieve a claim by id."""
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM claims WHERE id = ?", (claim_id,)).fetchone()
            return self._row_to_claim(row) if row else None

    def get_claim_by_source_call(self, vapi_call_id: str) -> Optional[Claim]:
        """Claim auto-created from a given call, if any."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM claims WHERE source_call_id = ? ORDER BY date_submitted LIMIT 1",
                (vapi_call_id,)
            ).fetchone()
            return self._row_to_claim(row) if row else None

    def list_claims(self, homeowner_id: Optional[str] = None, limit: int = 100) -> list[Claim]:
        """List claims, newest first, optionally for one homeowner."""
        query = "SELECT * FROM claims"
        params: list = []
        if homeowner_id:
            query += " WHERE homeowner_id = ?"
            params.append(homeowner_id)
        query += " ORDER BY date_submitted DESC LIMIT ?"
        params.append(limit)

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
            return [self._row_to_claim(row) for row in rows]

    def update_claim_status(self, claim_id: str, status: ClaimStatus) -> bool:
        """
        Update claim status.

        Returns:
            True if updated, False if claim not found
        """
        with self._get_connection() as conn:
            result = conn.execute(
                "UPDATE claims SET status = ? WHERE id = ?",
                (status.value, claim_id)
            )
            conn.commit()
            return result.rowcount > 0

    def has_open_claim_since(self, homeowner_id: str, since: datetime) -> bool:
        """Whether the homeowner has an open claim submitted at or after `since`."""
        placeholders = ", ".join("?" for _ in OPEN_CLAIM_STATUSES)
        with self._get_connection() as conn:
            row = conn.execute(
                f"""
                SELECT 1 FROM claims
                WHERE homeowner_id = ?
                  AND date_submitted >= ?
                  AND status IN ({placeholders})
                LIMIT 1
                """,
                (homeowner_id, _to_iso(since), *(s.value for s in OPEN_CLAIM_STATUSES)),
            ).fetchone()
            return row is not None

    # =========================================================================
    # Row Conversion
    # =========================================================================

    def _row_to_call(self, row: sqlite3.Row) -> CallRecord:
        """Convert a database row to CallRecord."""
        data = dict(row)
        data["is_urgent"] = bool(data["is_urgent"])
        data["is_verified"] = bool(data["is_verified"])
        return CallRecord(**data)

    def _row_to_claim(self, row: sqlite3.Row) -> Claim:
        """Convert a database row to Claim."""
        return Claim(**dict(row))


# =============================================================================
# Convenience Functions
# =============================================================================

@lru_cache
def get_intake_store() -> IntakeStore:
    """Get the default intake store (singleton)."""
    return IntakeStore()
