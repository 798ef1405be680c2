"""
Tests for SQLite intake storage: call upserts, claim numbering and the
duplicate-guard query.
"""

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from src.intake.errors import StoreError
from src.intake.schema import CallRecord, Claim, ClaimStatus, Homeowner
from src.storage import IntakeStore


NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_claim(homeowner_id: str, claim_number: str, submitted: datetime, status=ClaimStatus.SUBMITTED) -> Claim:
    return Claim(
        id=f"claim-{homeowner_id}-{claim_number}-{submitted.isoformat()}",
        homeowner_id=homeowner_id,
        description="Existing issue",
        claim_number=claim_number,
        status=status,
        date_submitted=submitted,
    )


# ============================================================================
# Homeowners
# ============================================================================


def test_homeowners_listed_in_insertion_order(seeded_store):
    assert [h.id for h in seeded_store.list_homeowners()] == ["ho-1", "ho-2", "ho-3"]


def test_get_homeowner(seeded_store):
    homeowner = seeded_store.get_homeowner("ho-1")
    assert homeowner.name == "Jane Smith"
    assert homeowner.builder == "Cascade Homes"
    assert seeded_store.get_homeowner("missing") is None


# ============================================================================
# Calls
# ============================================================================


class TestCalls:

    def test_insert_and_get(self, store):
        stored = store.upsert_call(CallRecord(
            vapi_call_id="call-1",
            property_address="123 Main St",
            call_intent="new_claim",
            is_urgent=True,
        ))

        assert stored.vapi_call_id == "call-1"
        assert stored.is_urgent is True
        assert stored.is_verified is False
        assert stored.created_at is not None
        assert store.get_call("call-1") == stored

    def test_upsert_is_idempotent(self, seeded_store):
        first = seeded_store.upsert_call(CallRecord(vapi_call_id="call-1"))
        second = seeded_store.upsert_call(CallRecord(
            vapi_call_id="call-1",
            homeowner_id="ho-1",
            property_address="123 Main St",
            is_verified=True,
            address_match_similarity=0.95,
        ))

        assert seeded_store.count_calls() == 1
        assert second.created_at == first.created_at
        assert second.updated_at >= first.updated_at
        assert second.homeowner_id == "ho-1"
        assert second.is_verified is True
        assert second.address_match_similarity == 0.95

    def test_same_payload_twice_leaves_one_row(self, store):
        record = CallRecord(vapi_call_id="call-1", issue_description="Leak")
        store.upsert_call(record)
        store.upsert_call(record)

        assert store.count_calls() == 1
        assert store.get_call("call-1").issue_description == "Leak"

    def test_list_calls_filter(self, seeded_store):
        seeded_store.upsert_call(CallRecord(vapi_call_id="a", homeowner_id="ho-1", is_verified=True))
        seeded_store.upsert_call(CallRecord(vapi_call_id="b"))

        assert {c.vapi_call_id for c in seeded_store.list_calls()} == {"a", "b"}
        assert [c.vapi_call_id for c in seeded_store.list_calls(verified=True)] == ["a"]
        assert [c.vapi_call_id for c in seeded_store.list_calls(verified=False)] == ["b"]
        assert len(seeded_store.list_calls(limit=1)) == 1

    def test_get_missing_call(self, store):
        assert store.get_call("nope") is None

    def test_empty_call_id_rejected(self):
        with pytest.raises(ValueError):
            CallRecord(vapi_call_id="   ")


# ============================================================================
# Claims
# ============================================================================


class TestClaimNumbering:

    def test_first_claim_is_one(self, seeded_store, homeowners):
        claim = seeded_store.create_claim_with_next_number(homeowners[0], "Faucet leaking", source_call_id="call-1")

        assert claim.claim_number == "1"
        assert claim.title == "Call in"
        assert claim.status == ClaimStatus.SUBMITTED
        assert claim.description == "Faucet leaking"
        assert claim.summary == "Faucet leaking"
        assert claim.homeowner_name == "Jane Smith"
        assert claim.homeowner_email == "jane@example.com"
        assert claim.builder_name == "Cascade Homes"
        assert claim.job_name == "Main Street Lot 4"
        assert claim.address == "123 Main St, Seattle, WA 98101"
        assert claim.source_call_id == "call-1"
        assert seeded_store.get_claim(claim.id) == claim

    def test_numbers_increment_per_homeowner(self, seeded_store, homeowners):
        jane, bob = homeowners[0], homeowners[1]

        assert seeded_store.create_claim_with_next_number(jane, "one").claim_number == "1"
        assert seeded_store.create_claim_with_next_number(jane, "two").claim_number == "2"
        assert seeded_store.create_claim_with_next_number(bob, "one").claim_number == "1"

    def test_number_follows_max_existing(self, seeded_store, homeowners):
        seeded_store.add_claim(make_claim("ho-1", "7", NOW))
        seeded_store.add_claim(make_claim("ho-1", "legacy", NOW))

        claim = seeded_store.create_claim_with_next_number(homeowners[0], "next")
        assert claim.claim_number == "8"

    def test_missing_description_gets_default(self, seeded_store, homeowners):
        claim = seeded_store.create_claim_with_next_number(homeowners[0], None)
        assert claim.description == "Service request from AI voice intake"
        assert claim.summary is None

    def test_list_and_update_status(self, seeded_store, homeowners):
        claim = seeded_store.create_claim_with_next_number(homeowners[0], "Leak")

        assert seeded_store.update_claim_status(claim.id, ClaimStatus.COMPLETED) is True
        assert seeded_store.get_claim(claim.id).status == ClaimStatus.COMPLETED
        assert seeded_store.update_claim_status("missing", ClaimStatus.COMPLETED) is False
        assert [c.id for c in seeded_store.list_claims("ho-1")] == [claim.id]
        assert seeded_store.list_claims("ho-2") == []


class TestOpenClaimQuery:

    def test_open_claim_inside_window(self, seeded_store):
        seeded_store.add_claim(make_claim("ho-1", "1", NOW - timedelta(hours=2)))
        assert seeded_store.has_open_claim_since("ho-1", NOW - timedelta(hours=24))

    def test_open_claim_outside_window(self, seeded_store):
        seeded_store.add_claim(make_claim("ho-1", "1", NOW - timedelta(hours=30)))
        assert not seeded_store.has_open_claim_since("ho-1", NOW - timedelta(hours=24))

    def test_window_start_is_inclusive(self, seeded_store):
        since = NOW - timedelta(hours=24)
        seeded_store.add_claim(make_claim("ho-1", "1", since))
        assert seeded_store.has_open_claim_since("ho-1", since)

    def test_completed_claim_ignored(self, seeded_store):
        seeded_store.add_claim(make_claim("ho-1", "1", NOW, status=ClaimStatus.COMPLETED))
        assert not seeded_store.has_open_claim_since("ho-1", NOW - timedelta(hours=24))

    @pytest.mark.parametrize("status", [
        ClaimStatus.SUBMITTED,
        ClaimStatus.REVIEWING,
        ClaimStatus.SCHEDULING,
        ClaimStatus.SCHEDULED,
    ])
    def test_open_statuses(self, seeded_store, status):
        seeded_store.add_claim(make_claim("ho-1", "1", NOW, status=status))
        assert seeded_store.has_open_claim_since("ho-1", NOW - timedelta(hours=1))

    def test_other_homeowner_ignored(self, seeded_store):
        seeded_store.add_claim(make_claim("ho-2", "1", NOW))
        assert not seeded_store.has_open_claim_since("ho-1", NOW - timedelta(hours=24))

    def test_naive_datetimes_treated_as_utc(self, seeded_store):
        seeded_store.add_claim(make_claim("ho-1", "1", NOW))
        assert seeded_store.has_open_claim_since("ho-1", datetime(2025, 6, 1, 11, 0))
        assert not seeded_store.has_open_claim_since("ho-1", datetime(2025, 6, 1, 13, 0))


# ============================================================================
# Errors
# ============================================================================


def test_sqlite_errors_become_store_errors(store):
    with sqlite3.connect(store.db_path) as conn:
        conn.execute("DROP TABLE calls")

    with pytest.raises(StoreError):
        store.get_call("call-1")

    with pytest.raises(StoreError):
        store.upsert_call(CallRecord(vapi_call_id="call-1"))


def test_homeowner_defaults():
    homeowner = Homeowner(id="h", name="Name")
    assert homeowner.email == ""
    assert homeowner.address == ""


# ============================================================================
# Redelivery Support
# ============================================================================


class TestNotificationHistory:

    def test_new_call_not_notified(self, store):
        record = store.upsert_call(CallRecord(vapi_call_id="call-1"))
        assert record.notified_at is None
        assert record.notification_scenario is None

    def test_mark_call_notified(self, store):
        store.upsert_call(CallRecord(vapi_call_id="call-1"))

        assert store.mark_call_notified("call-1", "CLAIM_CREATED", "msg-1", now=NOW) is True

        record = store.get_call("call-1")
        assert record.notified_at == NOW
        assert record.notification_scenario == "CLAIM_CREATED"
        assert record.notification_message_id == "msg-1"

    def test_upsert_keeps_notification_marker(self, store):
        store.upsert_call(CallRecord(vapi_call_id="call-1"))
        store.mark_call_notified("call-1", "NO_MATCH", now=NOW)

        record = store.upsert_call(CallRecord(vapi_call_id="call-1", property_address="123 Main St"))

        assert record.property_address == "123 Main St"
        assert record.notified_at == NOW
        assert record.notification_scenario == "NO_MATCH"

    def test_mark_missing_call(self, store):
        assert store.mark_call_notified("missing", "NO_MATCH") is False

    def test_existing_database_gets_notification_columns(self, tmp_path):
        db_path = tmp_path / "old.db"
        with sqlite3.connect(db_path) as conn:
            conn.execute("""
                CREATE TABLE calls (
                    vapi_call_id TEXT PRIMARY KEY,
                    homeowner_id TEXT,
                    homeowner_name TEXT,
                    phone_number TEXT,
                    property_address TEXT,
                    issue_description TEXT,
                    call_intent TEXT,
                    is_urgent INTEGER NOT NULL DEFAULT 0,
                    transcript TEXT,
                    recording_url TEXT,
                    is_verified INTEGER NOT NULL DEFAULT 0,
                    address_match_similarity REAL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

        store = IntakeStore(db_path)
        store.upsert_call(CallRecord(vapi_call_id="call-1"))

        assert store.mark_call_notified("call-1", "NO_MATCH") is True
        assert store.get_call("call-1").notification_scenario == "NO_MATCH"


class TestClaimBySourceCall:

    def test_found(self, seeded_store, homeowners):
        claim = seeded_store.create_claim_with_next_number(homeowners[0], "Leak", source_call_id="call-1")

        found = seeded_store.get_claim_by_source_call("call-1")
        assert found.id == claim.id
        assert found.claim_number == "1"

    def test_not_found(self, seeded_store, homeowners):
        seeded_store.create_claim_with_next_number(homeowners[0], "Leak", source_call_id="call-1")

        assert seeded_store.get_claim_by_source_call("call-2") is None
