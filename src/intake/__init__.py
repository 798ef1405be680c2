"""
Voice-call intake module.

Extraction of call facts from Vapi webhook payloads and fuzzy matching of
callers to homeowners.
"""

from .errors import (
    IntakeError,
    InvalidPayloadError,
    MissingCallIdError,
    StoreError,
    VendorAPIError,
    WebhookAuthError,
)
from .extractor import (
    CallDataExtractor,
    extract_call_data,
    is_final_event,
    log_call_data,
    normalize_intent,
    parse_webhook_body,
    require_vapi_secret,
    verify_vapi_secret,
)
from .matching import (
    are_addresses_similar,
    calculate_similarity,
    find_matching_homeowner,
    find_multiple_matches,
    get_match_quality_description,
    levenshtein_distance,
    normalize_address,
)
from .schema import (
    # Enums
    CallIntent,
    ClaimStatus,
    NotificationScenario,
    # Models
    CallRecord,
    Claim,
    ExtractedCall,
    Homeowner,
    MatchResult,
)
from .vendor_client import VapiClient

__all__ = [
    # Extraction
    "CallDataExtractor",
    "VapiClient",
    "extract_call_data",
    "is_final_event",
    "log_call_data",
    "normalize_intent",
    "parse_webhook_body",
    "require_vapi_secret",
    "verify_vapi_secret",
    # Matching
    "are_addresses_similar",
    "calculate_similarity",
    "find_matching_homeowner",
    "find_multiple_matches",
    "get_match_quality_description",
    "levenshtein_distance",
    "normalize_address",
    # Enums
    "CallIntent",
    "ClaimStatus",
    "NotificationScenario",
    # Models
    "CallRecord",
    "Claim",
    "ExtractedCall",
    "Homeowner",
    "MatchResult",
    # Errors
    "IntakeError",
    "InvalidPayloadError",
    "MissingCallIdError",
    "StoreError",
    "VendorAPIError",
    "WebhookAuthError",
]
