"""
Canonical records for voice-call intake.

Defines Pydantic models for extracted call facts, homeowners, call records
and auto-created warranty claims.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Enums
# ============================================================================


class CallIntent(str, Enum):
    """Why the caller called."""
    NEW_CLAIM = "new_claim"
    EMERGENCY = "emergency"
    QUESTION = "question"
    FOLLOW_UP = "follow_up"
    OTHER = "other"


class ClaimStatus(str, Enum):
    """Warranty claim lifecycle."""
    SUBMITTED = "SUBMITTED"
    REVIEWING = "REVIEWING"
    SCHEDULING = "SCHEDULING"
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"


OPEN_CLAIM_STATUSES = (
    ClaimStatus.SUBMITTED,
    ClaimStatus.REVIEWING,
    ClaimStatus.SCHEDULING,
    ClaimStatus.SCHEDULED,
)


class NotificationScenario(str, Enum):
    """The three mutually exclusive notification classes."""
    CLAIM_CREATED = "CLAIM_CREATED"
    MATCH_NO_CLAIM = "MATCH_NO_CLAIM"
    NO_MATCH = "NO_MATCH"


# ============================================================================
# Extraction
# ============================================================================


class ExtractedCall(BaseModel):
    """Normalized facts pulled out of a Vapi webhook payload."""

    vapi_call_id: Optional[str] = Field(None, description="Vapi call identifier")
    message_type: Optional[str] = Field(None, description="Webhook event type, e.g. end-of-call-report")

    property_address: Optional[str] = Field(None, description="Address given by the caller")
    homeowner_name: Optional[str] = Field(None, description="Caller name as stated on the call")
    phone_number: Optional[str] = Field(None, description="Callback number or caller ID")
    issue_description: Optional[str] = Field(None, description="What the caller reported")
    call_intent: Optional[CallIntent] = Field(None, description="Normalized call intent")
    intent_was_inferred: bool = Field(default=False, description="Intent came from the defaulting rule")
    is_urgent: bool = Field(default=False, description="Caller flagged the issue as urgent")

    transcript: Optional[str] = None
    recording_url: Optional[str] = None

    def missing_fields(self, required: tuple[str, ...] | list[str]) -> list[str]:
        """Names of required fields that are still empty."""
        return [name for name in required if not getattr(self, name, None)]

    def has_structured_data(self) -> bool:
        """Whether the delivery carried an address or an explicit intent."""
        return bool(self.property_address) or (
            self.call_intent is not None and not self.intent_was_inferred
        )


# ============================================================================
# Stored records
# ============================================================================


class Homeowner(BaseModel):
    """Homeowner as held in the system of record."""

    id: str
    name: str
    email: str = ""
    phone: Optional[str] = None
    address: str = Field(default="", description="Canonical address used as the matching target")
    builder: Optional[str] = None
    job_name: Optional[str] = None


class MatchResult(BaseModel):
    """Best homeowner match for an address."""

    homeowner: Homeowner
    similarity: float = Field(ge=0.0, le=1.0)


class CallRecord(BaseModel):
    """One row per Vapi call, upserted on every webhook delivery."""

    vapi_call_id: str
    homeowner_id: Optional[str] = None
    homeowner_name: Optional[str] = None
    phone_number: Optional[str] = None
    property_address: Optional[str] = None
    issue_description: Optional[str] = None
    call_intent: Optional[str] = None
    is_urgent: bool = False
    is_verified: bool = Field(default=False, description="True iff the address matched a homeowner")
    address_match_similarity: Optional[float] = Field(None, ge=0.0, le=1.0)
    transcript: Optional[str] = None
    recording_url: Optional[str] = None
    notified_at: Optional[datetime] = Field(None, description="When the call notification was sent")
    notification_scenario: Optional[str] = None
    notification_message_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("vapi_call_id")
    @classmethod
    def validate_call_id(cls, v: str) -> str:
        """Ensure vapi_call_id is not empty."""
        if not v or not v.strip():
            raise ValueError("vapi_call_id cannot be empty")
        return v.strip()


class Claim(BaseModel):
    """Warranty claim created from a matched call."""

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "id": "4f6c3f0e-0a51-4a55-9a57-7c1f3b8f2d10",
                    "homeowner_id": "ho-001",
                    "homeowner_name": "Jane Smith",
                    "homeowner_email": "jane@example.com",
                    "builder_name": "Cascade Homes",
                    "address": "123 Main St, Seattle, WA 98101",
                    "title": "Call in",
                    "description": "Master bathroom faucet is leaking onto the floor.",
                    "claim_number": "3",
                    "status": "SUBMITTED",
                    "date_submitted": "2025-01-15T18:30:00+00:00",
                    "source_call_id": "call-abc123",
                }
            ]
        }
    )

    id: str
    homeowner_id: str
    homeowner_name: Optional[str] = None
    homeowner_email: Optional[str] = None
    builder_name: Optional[str] = None
    job_name: Optional[str] = None
    address: Optional[str] = None
    title: str = "Call in"
    description: str
    category: str = "General"
    claim_number: str
    status: ClaimStatus = ClaimStatus.SUBMITTED
    classification: str = "Unclassified"
    summary: Optional[str] = None
    date_submitted: datetime
    source_call_id: Optional[str] = None

    def is_open(self) -> bool:
        """Whether the claim is still in an open status."""
        return self.status in OPEN_CLAIM_STATUSES
