"""
Shared fixtures for intake tests.

Every test gets its own SQLite file under tmp_path; no network access is
needed (the Vapi client and email transport are faked).
"""

import logging
from typing import Any, Optional

import pytest

from src.intake.errors import VendorAPIError
from src.intake.extractor import CallDataExtractor
from src.intake.schema import Homeowner
from src.notifications import LoggingTransport, Notifier
from src.storage import IntakeStore
from src.utils.config import IntakeConfig
from src.workflow import IntakeProcessor


# Setup logging for tests
logging.basicConfig(level=logging.INFO)


TEST_SECRET = "test-secret"


class FakeVapiClient:
    """Stands in for VapiClient; returns a canned call or raises."""

    def __init__(self, call: Optional[dict] = None, error: Optional[Exception] = None):
        self.call = call or {}
        self.error = error
        self.requested: list[str] = []

    async def fetch_call(self, call_id: str) -> dict[str, Any]:
        self.requested.append(call_id)
        if self.error:
            raise self.error
        return self.call


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def store(tmp_path):
    """Empty intake store backed by a temporary SQLite file."""
    return IntakeStore(tmp_path / "intake.db")


@pytest.fixture
def homeowners():
    """Demo homeowners."""
    return [
        Homeowner(
            id="ho-1",
            name="Jane Smith",
            email="jane@example.com",
            phone="503-555-0100",
            address="123 Main St, Seattle, WA 98101",
            builder="Cascade Homes",
            job_name="Main Street Lot 4",
        ),
        Homeowner(
            id="ho-2",
            name="Bob Jones",
            email="bob@example.com",
            address="456 Oak Ave, Portland, OR 97001",
            builder="Cascade Homes",
        ),
        Homeowner(
            id="ho-3",
            name="No Address",
            email="none@example.com",
            address="",
        ),
    ]


@pytest.fixture
def seeded_store(store, homeowners):
    """Intake store with the demo homeowners."""
    for homeowner in homeowners:
        store.add_homeowner(homeowner)
    return store


@pytest.fixture
def config():
    """Pipeline configuration without network access or delays."""
    return IntakeConfig(
        vapi_secret=TEST_SECRET,
        vapi_api_key=None,
        fallback_delay_seconds=0,
        notification_recipients=["ops@example.com", "warranty@example.com"],
    )


@pytest.fixture
def transport():
    """Email transport that records instead of sending."""
    return LoggingTransport()


@pytest.fixture
def fake_vapi_client():
    """The FakeVapiClient class, for tests that need a canned call or error."""
    return FakeVapiClient


@pytest.fixture
def vapi_client():
    """Vapi client fake with no extra data."""
    return FakeVapiClient()


@pytest.fixture
def processor(config, seeded_store, transport, vapi_client):
    """Intake processor wired to fakes."""
    return IntakeProcessor(
        config=config,
        store=seeded_store,
        extractor=CallDataExtractor(vapi_client=vapi_client, fallback_delay_seconds=0),
        notifier=Notifier(transport, recipients=config.notification_recipients),
    )


@pytest.fixture
def make_payload():
    """Factory for end-of-call-report payloads in the structuredOutputs format."""
    def _make(
        call_id: Optional[str] = "call-1",
        message_type: Optional[str] = "end-of-call-report",
        customer_number: Optional[str] = None,
        **structured,
    ) -> dict:
        call: dict[str, Any] = {
            "transcript": "Caller reported a warranty issue.",
            "recordingUrl": "https://example.com/recording.mp3",
            "artifact": {"structuredOutputs": structured},
        }
        if call_id is not None:
            call["id"] = call_id
        if customer_number:
            call["customer"] = {"number": customer_number}

        message: dict[str, Any] = {"call": call}
        if message_type is not None:
            message["type"] = message_type
        return {"message": message}

    return _make


@pytest.fixture
def vendor_error():
    """Vapi client fake whose lookup always fails."""
    return FakeVapiClient(error=VendorAPIError("Vapi API error: 401 - unauthorized"))
